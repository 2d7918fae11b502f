import json
import tempfile
import unittest
from pathlib import Path

from fakes import FakeOctopusClient

from octo_provisioner.config import ServerConfig
from octo_provisioner.provider import Provider, UnknownResourceTypeError
from octo_provisioner.schema import SchemaValidationError
from octo_provisioner.state import STATE_VERSION, ResourceState, StateStore
from octo_provisioner.workflow import (
    ResourceDefinition,
    ResourceWorkflow,
    load_definitions,
    resolve_references,
)

FEED = ResourceDefinition(
    type="octopusdeploy_feed",
    name="nuget",
    config={"name": "Internal NuGet", "feed_uri": "https://nuget.example.com/v3/index.json"},
)


def website(**overrides) -> ResourceDefinition:
    config = {
        "project_id": "Projects-1",
        "step_name": "Deploy Acme",
        "target_roles": ["web"],
        "feed_id": "${octopusdeploy_feed.nuget.id}",
        "package": "Acme.Web",
        "website_name": "Acme",
        "application_pool": [{"name": "AcmePool"}],
    }
    config.update(overrides)
    return ResourceDefinition(type="octopusdeploy_deployment_step_iis_website", name="acme", config=config)


def warmup(**overrides) -> ResourceDefinition:
    config = {
        "project_id": "Projects-1",
        "step_name": "Warm up",
        "script_body": "Invoke-WebRequest http://localhost/",
        "run_on_server": True,
        "after_step_id": "${octopusdeploy_deployment_step_iis_website.acme.id}",
    }
    config.update(overrides)
    return ResourceDefinition(type="octopusdeploy_deployment_step_inline_script", name="warmup", config=config)


class WorkflowTestCase(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.state_path = Path(tmp.name) / "state.json"
        self.store = StateStore(self.state_path)
        self.client = FakeOctopusClient()
        self.client.add_project(step_ids=["existing"])
        self.workflow = ResourceWorkflow(Provider(ServerConfig(), client=self.client), self.store)


class ApplyTests(WorkflowTestCase):
    def test_creates_in_order_and_resolves_references(self) -> None:
        result = self.workflow.apply([FEED, website(), warmup()])

        self.assertEqual(
            result.created,
            [
                "octopusdeploy_feed.nuget",
                "octopusdeploy_deployment_step_iis_website.acme",
                "octopusdeploy_deployment_step_inline_script.warmup",
            ],
        )
        state = self.store.load()
        step_id = state["octopusdeploy_deployment_step_iis_website.acme"].id
        warmup_id = state["octopusdeploy_deployment_step_inline_script.warmup"].id
        self.assertEqual(self.client.step_ids(), ["existing", step_id, warmup_id])

        step = self.client.step(step_id)
        self.assertEqual(step.action.properties["Octopus.Action.Package.FeedId"], "Feeds-1")
        self.assertEqual(state["octopusdeploy_deployment_step_iis_website.acme"].config["feed_id"], "Feeds-1")
        self.assertEqual(
            state["octopusdeploy_deployment_step_iis_website.acme"].attributes["deployment_process_id"],
            "deploymentprocess-Projects-1",
        )

    def test_state_file_layout(self) -> None:
        self.workflow.apply([FEED])
        payload = json.loads(self.state_path.read_text(encoding="utf-8"))
        self.assertEqual(payload["version"], STATE_VERSION)
        entry = payload["resources"]["octopusdeploy_feed.nuget"]
        self.assertEqual(entry["id"], "Feeds-1")
        self.assertEqual(entry["type"], "octopusdeploy_feed")
        self.assertEqual(entry["attributes"]["feed_type"], "NuGet")

    def test_second_apply_is_a_no_op(self) -> None:
        self.workflow.apply([FEED, website()])
        writes = self.client.deployment_processes.update_calls

        result = self.workflow.apply([FEED, website()])

        self.assertEqual(len(result.unchanged), 2)
        self.assertEqual(result.created + result.updated + result.replaced + result.deleted, [])
        self.assertEqual(self.client.deployment_processes.update_calls, writes)

    def test_changed_attribute_updates_in_place(self) -> None:
        self.workflow.apply([FEED, website()])
        step_id = self.store.load()["octopusdeploy_deployment_step_iis_website.acme"].id

        result = self.workflow.apply([FEED, website(website_name="Acme Store", first_step=True)])

        self.assertEqual(result.updated, ["octopusdeploy_deployment_step_iis_website.acme"])
        entry = self.store.load()["octopusdeploy_deployment_step_iis_website.acme"]
        self.assertEqual(entry.id, step_id)
        self.assertEqual(entry.attributes["website_name"], "Acme Store")
        self.assertTrue(entry.attributes["first_step"])
        self.assertEqual(self.client.step_ids(), [step_id, "existing"])

    def test_project_change_replaces_step(self) -> None:
        self.client.add_project("Projects-2", "deploymentprocess-Projects-2")
        self.workflow.apply([FEED, website()])
        old_id = self.store.load()["octopusdeploy_deployment_step_iis_website.acme"].id

        result = self.workflow.apply([FEED, website(project_id="Projects-2")])

        self.assertEqual(result.replaced, ["octopusdeploy_deployment_step_iis_website.acme"])
        entry = self.store.load()["octopusdeploy_deployment_step_iis_website.acme"]
        self.assertEqual(self.client.step_ids(), ["existing"])
        self.assertEqual(self.client.step_ids("deploymentprocess-Projects-2"), [entry.id])
        self.assertEqual(entry.attributes["deployment_process_id"], "deploymentprocess-Projects-2")
        self.assertNotEqual(entry.id, old_id)

    def test_removed_definitions_are_deleted(self) -> None:
        self.workflow.apply([FEED, website(), warmup()])

        result = self.workflow.apply([FEED])

        self.assertEqual(
            result.deleted,
            [
                "octopusdeploy_deployment_step_inline_script.warmup",
                "octopusdeploy_deployment_step_iis_website.acme",
            ],
        )
        self.assertEqual(self.client.step_ids(), ["existing"])
        self.assertEqual(list(self.store.load()), ["octopusdeploy_feed.nuget"])

    def test_step_deleted_on_server_is_recreated(self) -> None:
        self.workflow.apply([FEED, website()])
        process = self.client.deployment_processes.processes["deploymentprocess-Projects-1"]
        process.steps = process.steps[:1]

        result = self.workflow.apply([FEED, website(package="Acme.Web2")])

        self.assertEqual(result.updated, ["octopusdeploy_deployment_step_iis_website.acme"])
        self.assertEqual(len(self.client.step_ids()), 2)

    def test_invalid_config_stops_apply(self) -> None:
        with self.assertRaises(SchemaValidationError) as ctx:
            self.workflow.apply([FEED, website(step_condition="sometimes")])
        self.assertEqual(ctx.exception.resource_type, "octopusdeploy_deployment_step_iis_website.acme")
        # Resources before the failure are kept
        self.assertEqual(list(self.store.load()), ["octopusdeploy_feed.nuget"])

    def test_unresolved_reference(self) -> None:
        with self.assertRaises(ValueError):
            self.workflow.apply([website()])

    def test_unknown_type(self) -> None:
        with self.assertRaises(UnknownResourceTypeError):
            self.workflow.apply([ResourceDefinition(type="octopusdeploy_tenant", name="t")])


class RefreshAndDestroyTests(WorkflowTestCase):
    def test_refresh_drops_missing_resources(self) -> None:
        self.workflow.apply([FEED, website()])
        del self.client.feeds.items["Feeds-1"]

        removed = self.workflow.refresh()

        self.assertEqual(removed, ["octopusdeploy_feed.nuget"])
        self.assertEqual(list(self.store.load()), ["octopusdeploy_deployment_step_iis_website.acme"])

    def test_refresh_picks_up_server_changes(self) -> None:
        self.workflow.apply([FEED, website()])
        step_id = self.store.load()["octopusdeploy_deployment_step_iis_website.acme"].id
        self.client.step(step_id).action.properties["Octopus.Action.IISWebSite.WebSiteName"] = "Renamed"

        self.workflow.refresh()

        entry = self.store.load()["octopusdeploy_deployment_step_iis_website.acme"]
        self.assertEqual(entry.attributes["website_name"], "Renamed")

    def test_destroy_in_reverse_order(self) -> None:
        self.workflow.apply([FEED, website(), warmup()])

        deleted = self.workflow.destroy()

        self.assertEqual(
            deleted,
            [
                "octopusdeploy_deployment_step_inline_script.warmup",
                "octopusdeploy_deployment_step_iis_website.acme",
                "octopusdeploy_feed.nuget",
            ],
        )
        self.assertEqual(self.client.step_ids(), ["existing"])
        self.assertEqual(self.client.feeds.items, {})
        self.assertEqual(self.store.load(), {})


class ValidateTests(WorkflowTestCase):
    def test_reports_errors_per_address(self) -> None:
        problems = self.workflow.validate([FEED, website(step_name=None, port=1)])
        self.assertEqual(
            problems,
            {
                "octopusdeploy_deployment_step_iis_website.acme": [
                    "port: unsupported attribute",
                    "step_name: required attribute is missing",
                ]
            },
        )

    def test_reference_in_typed_attribute_is_not_an_error(self) -> None:
        definition = ResourceDefinition(
            type="octopusdeploy_feed",
            name="mirror",
            config={
                "name": "Mirror",
                "feed_uri": "https://mirror",
                "download_attempts": "${octopusdeploy_feed.nuget.download_attempts}",
            },
        )
        self.assertEqual(self.workflow.validate([definition]), {})


class DefinitionTests(unittest.TestCase):
    def write(self, payload) -> Path:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        path = Path(tmp.name) / "resources.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    def test_load_definitions(self) -> None:
        path = self.write(
            {"resources": [{"type": "octopusdeploy_feed", "name": "nuget", "config": {"name": "n"}}]}
        )
        definitions = load_definitions(path)
        self.assertEqual(definitions, [ResourceDefinition("octopusdeploy_feed", "nuget", {"name": "n"})])
        self.assertEqual(definitions[0].address, "octopusdeploy_feed.nuget")

    def test_missing_name(self) -> None:
        path = self.write({"resources": [{"type": "octopusdeploy_feed"}]})
        with self.assertRaises(ValueError):
            load_definitions(path)

    def test_duplicates(self) -> None:
        entry = {"type": "octopusdeploy_feed", "name": "nuget"}
        path = self.write({"resources": [entry, entry]})
        with self.assertRaises(ValueError):
            load_definitions(path)

    def test_resolve_references(self) -> None:
        resources = {
            "octopusdeploy_feed.nuget": ResourceState(
                type="octopusdeploy_feed",
                name="nuget",
                id="Feeds-3",
                attributes={"download_attempts": 4},
            )
        }
        value = {
            "feed_id": "${octopusdeploy_feed.nuget.id}",
            "attempts": "${octopusdeploy_feed.nuget.download_attempts}",
            "label": "feed ${octopusdeploy_feed.nuget.id} x${octopusdeploy_feed.nuget.download_attempts}",
            "list": ["${octopusdeploy_feed.nuget.id}", 1],
        }
        self.assertEqual(
            resolve_references(value, resources),
            {"feed_id": "Feeds-3", "attempts": 4, "label": "feed Feeds-3 x4", "list": ["Feeds-3", 1]},
        )
        with self.assertRaises(ValueError):
            resolve_references("${octopusdeploy_feed.nuget.password}", resources)


class StateStoreTests(unittest.TestCase):
    def test_missing_file_is_empty(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(StateStore(Path(tmp) / "state.json").load(), {})

    def test_rejects_other_versions(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "state.json"
            path.write_text(json.dumps({"version": 99, "resources": {}}), encoding="utf-8")
            with self.assertRaises(ValueError):
                StateStore(path).load()


if __name__ == "__main__":
    unittest.main()
