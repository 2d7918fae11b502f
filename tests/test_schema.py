import pytest

from octo_provisioner.schema import (
    Field,
    FieldType,
    Resource,
    ResourceData,
    SchemaValidationError,
    apply_defaults,
    format_bool,
    parse_bool,
    validate_value_func,
)


def _noop(d, client) -> None:
    pass


def make_resource() -> Resource:
    return Resource(
        schema={
            "name": Field(FieldType.STRING, required=True),
            "kind": Field(
                FieldType.STRING,
                optional=True,
                default="a",
                force_new=True,
                validate=validate_value_func(["a", "b"]),
            ),
            "count": Field(FieldType.INT, optional=True, default=3),
            "enabled": Field(FieldType.BOOL, optional=True),
            "tags": Field(FieldType.LIST, optional=True, elem=Field(FieldType.STRING)),
            "server_id": Field(FieldType.STRING, computed=True),
            "block": Field(
                FieldType.SET,
                optional=True,
                min_items=1,
                max_items=1,
                elem={
                    "name": Field(FieldType.STRING, required=True),
                    "mode": Field(
                        FieldType.STRING,
                        optional=True,
                        default="fast",
                        validate=validate_value_func(["fast", "slow"]),
                    ),
                },
            ),
        },
        create=_noop,
        read=_noop,
        update=_noop,
        delete=_noop,
    )


class TestValidation:
    def test_valid_config_has_no_errors(self) -> None:
        resource = make_resource()
        assert resource.validate({"name": "x", "tags": ["one"], "block": [{"name": "b"}]}) == []

    def test_missing_required_attribute(self) -> None:
        errors = make_resource().validate({})
        assert errors == ["name: required attribute is missing"]

    def test_unsupported_attribute(self) -> None:
        errors = make_resource().validate({"name": "x", "colour": "red"})
        assert "colour: unsupported attribute" in errors

    def test_computed_attribute_cannot_be_set(self) -> None:
        errors = make_resource().validate({"name": "x", "server_id": "1"})
        assert errors == ["server_id: computed attribute cannot be set"]

    def test_type_mismatch(self) -> None:
        errors = make_resource().validate({"name": "x", "count": "3", "enabled": "yes"})
        assert "count: expected int, got str" in errors
        assert "enabled: expected bool, got str" in errors

    def test_bool_is_not_an_int(self) -> None:
        errors = make_resource().validate({"name": "x", "count": True})
        assert errors == ["count: expected int, got bool"]

    def test_value_outside_allowed_set(self) -> None:
        errors = make_resource().validate({"name": "x", "kind": "c"})
        assert errors == ["kind: expected one of ['a', 'b'], got 'c'"]

    def test_list_member_type(self) -> None:
        errors = make_resource().validate({"name": "x", "tags": ["ok", 1]})
        assert errors == ["tags.1: expected string, got int"]

    def test_nested_block_errors_carry_path(self) -> None:
        errors = make_resource().validate({"name": "x", "block": [{"mode": "slow"}]})
        assert errors == ["block.0.name: required attribute is missing"]

    def test_nested_block_validator(self) -> None:
        errors = make_resource().validate({"name": "x", "block": [{"name": "b", "mode": "warp"}]})
        assert errors == ["block.0.mode: expected one of ['fast', 'slow'], got 'warp'"]

    def test_max_items(self) -> None:
        errors = make_resource().validate({"name": "x", "block": [{"name": "a"}, {"name": "b"}]})
        assert errors == ["block: at most 1 item(s) allowed"]

    def test_error_type_carries_all_messages(self) -> None:
        exc = SchemaValidationError("thing.one", ["a: bad", "b: worse"])
        assert isinstance(exc, ValueError)
        assert exc.errors == ["a: bad", "b: worse"]
        assert str(exc) == "Invalid thing.one configuration: a: bad; b: worse"


class TestDefaults:
    def test_defaults_fill_missing_attributes(self) -> None:
        resource = make_resource()
        result = apply_defaults(resource.schema, {"name": "x"})
        assert result == {"name": "x", "kind": "a", "count": 3}

    def test_defaults_apply_inside_blocks(self) -> None:
        resource = make_resource()
        result = apply_defaults(resource.schema, {"name": "x", "block": [{"name": "b"}]})
        assert result["block"] == [{"name": "b", "mode": "fast"}]

    def test_input_is_not_modified(self) -> None:
        resource = make_resource()
        attributes = {"name": "x", "block": [{"name": "b"}]}
        apply_defaults(resource.schema, attributes)
        assert attributes == {"name": "x", "block": [{"name": "b"}]}


class TestResourceData:
    def test_get_returns_zero_values(self) -> None:
        d = make_resource().data({"name": "x"})
        assert d.get("enabled") is False
        assert d.get("tags") == []
        assert d.get("server_id") == ""

    def test_get_ok_reports_non_zero(self) -> None:
        d = make_resource().data({"name": "x", "tags": []})
        assert d.get_ok("name") == ("x", True)
        assert d.get_ok("tags") == ([], False)
        assert d.get_ok("enabled") == (False, False)

    def test_set_none_removes_attribute(self) -> None:
        d = make_resource().data({"name": "x", "enabled": True})
        d.set("enabled", None)
        assert not d.has("enabled")
        assert "enabled" not in d.to_state()

    def test_unknown_attribute_raises(self) -> None:
        d = make_resource().data()
        with pytest.raises(KeyError):
            d.get("colour")
        with pytest.raises(KeyError):
            d.set("colour", "red")

    def test_id_handling(self) -> None:
        d = ResourceData(make_resource().schema, id="Things-1")
        assert d.id == "Things-1"
        d.set_id(None)
        assert d.id == ""

    def test_to_state_is_a_copy(self) -> None:
        d = make_resource().data({"name": "x", "tags": ["a"]})
        state = d.to_state()
        state["tags"].append("b")
        assert d.get("tags") == ["a"]


class TestForceNew:
    def test_detects_changed_force_new_attribute(self) -> None:
        resource = make_resource()
        assert resource.force_new_changed({"name": "x"}, {"name": "x", "kind": "b"}) == ["kind"]

    def test_default_equals_explicit_value(self) -> None:
        resource = make_resource()
        assert resource.force_new_changed({"name": "x"}, {"name": "y", "kind": "a"}) == []


class TestBooleans:
    @pytest.mark.parametrize("raw", ["True", "true", "TRUE", "1", "t", "T"])
    def test_true_spellings(self, raw: str) -> None:
        assert parse_bool(raw) is True

    @pytest.mark.parametrize("raw", ["False", "false", "FALSE", "0", "f", "F"])
    def test_false_spellings(self, raw: str) -> None:
        assert parse_bool(raw) is False

    @pytest.mark.parametrize("raw", [None, "", "yes", "#{Variable}"])
    def test_unparseable(self, raw) -> None:
        assert parse_bool(raw) is None

    def test_format(self) -> None:
        assert format_bool(True) == "True"
        assert format_bool(False) == "False"
