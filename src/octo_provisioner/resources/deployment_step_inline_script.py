"""Deployment step that runs an inline script on the server or the targets."""

from __future__ import annotations

from ..client import DeploymentStep
from ..schema import Field, FieldType, Resource, ResourceData, validate_value_func
from .deployment_step import (
    add_default_schema,
    create_basic_step,
    create_step,
    delete_step,
    read_step,
    set_basic_schema,
    update_step,
)

RESOURCE_TYPE = "octopusdeploy_deployment_step_inline_script"
ACTION_TYPE = "Octopus.Script"

SCRIPT_SOURCE = "Octopus.Action.Script.ScriptSource"
SCRIPT_SYNTAX = "Octopus.Action.Script.Syntax"
SCRIPT_BODY = "Octopus.Action.Script.ScriptBody"


def resource_deployment_step_inline_script() -> Resource:
    resource = Resource(
        schema={
            "script_type": Field(
                FieldType.STRING,
                optional=True,
                default="PowerShell",
                description="The scripting language of the script",
                validate=validate_value_func(["PowerShell", "CSharp", "Bash", "FSharp", "Python"]),
            ),
            "script_body": Field(
                FieldType.STRING,
                required=True,
                description="The script body.",
            ),
        },
        create=resource_deployment_step_inline_script_create,
        read=resource_deployment_step_inline_script_read,
        update=resource_deployment_step_inline_script_update,
        delete=resource_deployment_step_inline_script_delete,
        description="Runs an inline script.",
    )

    add_default_schema(resource, False)

    return resource


def build_inline_script_deployment_step(d: ResourceData) -> DeploymentStep:
    step = create_basic_step(d, ACTION_TYPE)

    properties = step.action.properties
    properties[SCRIPT_SOURCE] = "Inline"
    properties[SCRIPT_SYNTAX] = d.get("script_type")
    properties[SCRIPT_BODY] = d.get("script_body")

    return step


def set_inline_script_schema(d: ResourceData, step: DeploymentStep) -> None:
    set_basic_schema(d, step)

    properties = step.action.properties
    if SCRIPT_SYNTAX in properties:
        d.set("script_type", properties[SCRIPT_SYNTAX])
    if SCRIPT_BODY in properties:
        d.set("script_body", properties[SCRIPT_BODY])


def resource_deployment_step_inline_script_create(d: ResourceData, client) -> None:
    create_step(d, client, build_inline_script_deployment_step)


def resource_deployment_step_inline_script_read(d: ResourceData, client) -> None:
    read_step(d, client, set_inline_script_schema)


def resource_deployment_step_inline_script_update(d: ResourceData, client) -> None:
    update_step(d, client, build_inline_script_deployment_step)


def resource_deployment_step_inline_script_delete(d: ResourceData, client) -> None:
    delete_step(d, client)
