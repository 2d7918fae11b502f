"""Data models for the Octopus REST API.

The API speaks PascalCase JSON. Every model keeps the keys it does not know
about in ``extra`` and writes them back in ``to_dict``, so that a
fetch-modify-write of a whole deployment process does not lose data.

Property bags are split the same way: ``properties`` holds the readable
string values, ``raw_properties`` the original JSON of every non-string
value (sensitive values, ``{"Value": ...}`` objects), which is written back
unchanged unless the string under the same key was changed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple


def _extra(data: Dict[str, Any], known: Iterable[str]) -> Dict[str, Any]:
    known_keys = set(known)
    return {k: v for k, v in data.items() if k not in known_keys}


def _with_id(payload: Dict[str, Any], item_id: Optional[str]) -> Dict[str, Any]:
    if item_id:
        payload["Id"] = item_id
    else:
        payload.pop("Id", None)
    return payload


@dataclass
class SensitiveValue:
    """Write-only secret as the API expects it."""

    has_value: bool = False
    new_value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"HasValue": self.has_value, "NewValue": self.new_value}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["SensitiveValue"]:
        if data is None:
            return None
        return cls(has_value=bool(data.get("HasValue")), new_value=data.get("NewValue"))

    @classmethod
    def of(cls, value: Optional[str]) -> "SensitiveValue":
        return cls(has_value=bool(value), new_value=value or None)


@dataclass
class DeploymentAction:
    """A single action executed by a deployment step."""

    name: str
    action_type: str
    id: Optional[str] = None
    is_required: bool = False
    is_disabled: bool = False
    properties: Dict[str, str] = field(default_factory=dict)
    raw_properties: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = ("Id", "Name", "ActionType", "IsRequired", "IsDisabled", "Properties")

    def to_dict(self) -> Dict[str, Any]:
        payload = dict(self.extra)
        payload.update(
            {
                "Name": self.name,
                "ActionType": self.action_type,
                "IsRequired": self.is_required,
                "IsDisabled": self.is_disabled,
                "Properties": _merge_properties(self.properties, self.raw_properties),
            }
        )
        return _with_id(payload, self.id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentAction":
        properties, raw_properties = _split_properties(data.get("Properties"))
        return cls(
            id=data.get("Id"),
            name=data.get("Name", ""),
            action_type=data.get("ActionType", ""),
            is_required=bool(data.get("IsRequired", False)),
            is_disabled=bool(data.get("IsDisabled", False)),
            properties=properties,
            raw_properties=raw_properties,
            extra=_extra(data, cls._KEYS),
        )


@dataclass
class DeploymentStep:
    """A named entry of a deployment process."""

    name: str
    id: Optional[str] = None
    package_requirement: str = "LetOctopusDecide"
    condition: str = "Success"
    start_trigger: str = "StartAfterPrevious"
    properties: Dict[str, str] = field(default_factory=dict)
    raw_properties: Dict[str, Any] = field(default_factory=dict)
    actions: List[DeploymentAction] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = (
        "Id",
        "Name",
        "PackageRequirement",
        "Condition",
        "StartTrigger",
        "Properties",
        "Actions",
    )

    def to_dict(self) -> Dict[str, Any]:
        payload = dict(self.extra)
        payload.update(
            {
                "Name": self.name,
                "PackageRequirement": self.package_requirement,
                "Condition": self.condition,
                "StartTrigger": self.start_trigger,
                "Properties": _merge_properties(self.properties, self.raw_properties),
                "Actions": [action.to_dict() for action in self.actions],
            }
        )
        return _with_id(payload, self.id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentStep":
        properties, raw_properties = _split_properties(data.get("Properties"))
        return cls(
            id=data.get("Id"),
            name=data.get("Name", ""),
            package_requirement=data.get("PackageRequirement", "LetOctopusDecide"),
            condition=data.get("Condition", "Success"),
            start_trigger=data.get("StartTrigger", "StartAfterPrevious"),
            properties=properties,
            raw_properties=raw_properties,
            actions=[DeploymentAction.from_dict(a) for a in data.get("Actions") or []],
            extra=_extra(data, cls._KEYS),
        )

    @property
    def action(self) -> DeploymentAction:
        """The first action; every step managed here carries exactly one."""
        return self.actions[0]


@dataclass
class DeploymentProcess:
    """The ordered list of steps executed for a project."""

    id: str
    project_id: Optional[str] = None
    version: Optional[int] = None
    steps: List[DeploymentStep] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = ("Id", "ProjectId", "Version", "Steps")

    def to_dict(self) -> Dict[str, Any]:
        payload = dict(self.extra)
        payload.update(
            {
                "Id": self.id,
                "ProjectId": self.project_id,
                "Version": self.version,
                "Steps": [step.to_dict() for step in self.steps],
            }
        )
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentProcess":
        return cls(
            id=data.get("Id", ""),
            project_id=data.get("ProjectId"),
            version=data.get("Version"),
            steps=[DeploymentStep.from_dict(s) for s in data.get("Steps") or []],
            extra=_extra(data, cls._KEYS),
        )


@dataclass
class Project:
    id: str
    name: str
    deployment_process_id: str
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = ("Id", "Name", "DeploymentProcessId")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        return cls(
            id=data.get("Id", ""),
            name=data.get("Name", ""),
            deployment_process_id=data.get("DeploymentProcessId", ""),
            extra=_extra(data, cls._KEYS),
        )


@dataclass
class Feed:
    """An external package feed."""

    name: str
    feed_uri: str
    feed_type: str = "NuGet"
    id: Optional[str] = None
    enhanced_mode: bool = False
    username: Optional[str] = None
    password: Optional[SensitiveValue] = None
    download_attempts: int = 5
    download_retry_backoff_seconds: int = 10
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = (
        "Id",
        "Name",
        "FeedType",
        "FeedUri",
        "EnhancedMode",
        "Username",
        "Password",
        "DownloadAttempts",
        "DownloadRetryBackoffSeconds",
    )

    def to_dict(self) -> Dict[str, Any]:
        payload = dict(self.extra)
        payload.update(
            {
                "Name": self.name,
                "FeedType": self.feed_type,
                "FeedUri": self.feed_uri,
                "EnhancedMode": self.enhanced_mode,
                "Username": self.username,
                "DownloadAttempts": self.download_attempts,
                "DownloadRetryBackoffSeconds": self.download_retry_backoff_seconds,
            }
        )
        if self.password is not None:
            payload["Password"] = self.password.to_dict()
        return _with_id(payload, self.id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Feed":
        return cls(
            id=data.get("Id"),
            name=data.get("Name", ""),
            feed_type=data.get("FeedType", "NuGet"),
            feed_uri=data.get("FeedUri", ""),
            enhanced_mode=bool(data.get("EnhancedMode", False)),
            username=data.get("Username"),
            password=SensitiveValue.from_dict(data.get("Password")),
            download_attempts=int(data.get("DownloadAttempts", 5)),
            download_retry_backoff_seconds=int(data.get("DownloadRetryBackoffSeconds", 10)),
            extra=_extra(data, cls._KEYS),
        )


@dataclass
class Account:
    """Credentials stored on the server and referenced by deployments."""

    name: str
    account_type: str
    id: Optional[str] = None
    description: Optional[str] = None
    client_id: Optional[str] = None
    tenant_id: Optional[str] = None
    subscription_number: Optional[str] = None
    password: Optional[SensitiveValue] = None
    environment_ids: List[str] = field(default_factory=list)
    tenant_tags: List[str] = field(default_factory=list)
    tenanted_deployment_participation: str = "Untenanted"
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = (
        "Id",
        "Name",
        "AccountType",
        "Description",
        "ClientId",
        "TenantId",
        "SubscriptionNumber",
        "Password",
        "EnvironmentIds",
        "TenantTags",
        "TenantedDeploymentParticipation",
    )

    def to_dict(self) -> Dict[str, Any]:
        payload = dict(self.extra)
        payload.update(
            {
                "Name": self.name,
                "AccountType": self.account_type,
                "Description": self.description,
                "ClientId": self.client_id,
                "TenantId": self.tenant_id,
                "SubscriptionNumber": self.subscription_number,
                "EnvironmentIds": list(self.environment_ids),
                "TenantTags": list(self.tenant_tags),
                "TenantedDeploymentParticipation": self.tenanted_deployment_participation,
            }
        )
        if self.password is not None:
            payload["Password"] = self.password.to_dict()
        return _with_id(payload, self.id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Account":
        return cls(
            id=data.get("Id"),
            name=data.get("Name", ""),
            account_type=data.get("AccountType", ""),
            description=data.get("Description"),
            client_id=data.get("ClientId"),
            tenant_id=data.get("TenantId"),
            subscription_number=data.get("SubscriptionNumber"),
            password=SensitiveValue.from_dict(data.get("Password")),
            environment_ids=list(data.get("EnvironmentIds") or []),
            tenant_tags=list(data.get("TenantTags") or []),
            tenanted_deployment_participation=data.get(
                "TenantedDeploymentParticipation", "Untenanted"
            ),
            extra=_extra(data, cls._KEYS),
        )


def is_sensitive_property(value: Any) -> bool:
    """True for a property value the server hides, e.g. a stored password."""
    return isinstance(value, dict) and bool(value.get("IsSensitive") or value.get("SensitiveValue"))


def property_text(value: Any) -> Optional[str]:
    """Readable string form of a property value; ``None`` when it has none."""
    if isinstance(value, str):
        return value
    if value is None or is_sensitive_property(value):
        return None
    if isinstance(value, dict):
        # Newer servers return some property values as objects
        inner = value.get("Value")
        return None if inner is None or isinstance(inner, (dict, list)) else str(inner)
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, (int, float)):
        return str(value)
    return None


def _split_properties(data: Optional[Dict[str, Any]]) -> Tuple[Dict[str, str], Dict[str, Any]]:
    """Split a property bag into readable strings and the non-string originals."""
    properties: Dict[str, str] = {}
    raw_properties: Dict[str, Any] = {}
    for key, value in (data or {}).items():
        if isinstance(value, str):
            properties[key] = value
            continue
        raw_properties[key] = value
        text = property_text(value)
        if text is not None:
            properties[key] = text
    return properties, raw_properties


def _merge_properties(properties: Dict[str, str], raw_properties: Dict[str, Any]) -> Dict[str, Any]:
    # Original values go back untouched unless the string form was changed
    merged: Dict[str, Any] = {}
    for key, value in raw_properties.items():
        if key not in properties or properties[key] == property_text(value):
            merged[key] = value
    for key, value in properties.items():
        merged.setdefault(key, value)
    return merged
