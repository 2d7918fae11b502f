"""Deployment step that deploys a package to the target machines."""

from __future__ import annotations

from ..client import DeploymentStep
from ..schema import Resource, ResourceData
from .deployment_step import (
    add_default_schema,
    add_package_properties,
    add_package_schema,
    create_basic_step,
    create_step,
    delete_step,
    read_step,
    set_basic_schema,
    set_package_schema,
    update_step,
)

RESOURCE_TYPE = "octopusdeploy_deployment_step_package"
ACTION_TYPE = "Octopus.TentaclePackage"


def resource_deployment_step_package() -> Resource:
    resource = Resource(
        schema={},
        create=resource_deployment_step_package_create,
        read=resource_deployment_step_package_read,
        update=resource_deployment_step_package_update,
        delete=resource_deployment_step_package_delete,
        description="Deploys a package from a feed to the target roles.",
    )

    add_default_schema(resource, True)
    add_package_schema(resource)

    return resource


def build_package_deployment_step(d: ResourceData) -> DeploymentStep:
    step = create_basic_step(d, ACTION_TYPE)
    add_package_properties(d, step)
    return step


def set_package_deployment_schema(d: ResourceData, step: DeploymentStep) -> None:
    set_basic_schema(d, step)
    set_package_schema(d, step)


def resource_deployment_step_package_create(d: ResourceData, client) -> None:
    create_step(d, client, build_package_deployment_step)


def resource_deployment_step_package_read(d: ResourceData, client) -> None:
    read_step(d, client, set_package_deployment_schema)


def resource_deployment_step_package_update(d: ResourceData, client) -> None:
    update_step(d, client, build_package_deployment_step)


def resource_deployment_step_package_delete(d: ResourceData, client) -> None:
    delete_step(d, client)
