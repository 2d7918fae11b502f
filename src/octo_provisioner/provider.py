"""Registry of resource types and the client they share."""

from __future__ import annotations

from typing import Callable, Dict, Optional

from .client import OctopusClient
from .config import ServerConfig
from .resources import (
    resource_account,
    resource_deployment_step_iis_website,
    resource_deployment_step_inline_script,
    resource_deployment_step_package,
    resource_feed,
)
from .schema import Resource

RESOURCE_TYPES: Dict[str, Callable[[], Resource]] = {
    "octopusdeploy_account": resource_account,
    "octopusdeploy_feed": resource_feed,
    "octopusdeploy_deployment_step_iis_website": resource_deployment_step_iis_website,
    "octopusdeploy_deployment_step_inline_script": resource_deployment_step_inline_script,
    "octopusdeploy_deployment_step_package": resource_deployment_step_package,
}


class UnknownResourceTypeError(KeyError):
    """Raised when a definition names a resource type that is not registered."""

    def __init__(self, resource_type: str) -> None:
        self.resource_type = resource_type
        super().__init__(
            f"Unsupported resource type: {resource_type}. "
            f"Supported types: {', '.join(sorted(RESOURCE_TYPES))}"
        )

    def __str__(self) -> str:
        return self.args[0]


class Provider:
    """Hands out resources and the client their lifecycle functions receive."""

    def __init__(self, config: ServerConfig, client: Optional[object] = None) -> None:
        self.config = config
        self._client = client
        self._resources: Dict[str, Resource] = {}

    @property
    def client(self):
        if self._client is None:
            self._client = OctopusClient(self.config)
        return self._client

    def resource(self, resource_type: str) -> Resource:
        if resource_type not in RESOURCE_TYPES:
            raise UnknownResourceTypeError(resource_type)
        if resource_type not in self._resources:
            self._resources[resource_type] = RESOURCE_TYPES[resource_type]()
        return self._resources[resource_type]
