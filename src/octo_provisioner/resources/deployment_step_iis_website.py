"""Deployment step that creates or updates an IIS web site."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from ..client import DeploymentStep
from ..schema import Field, FieldType, Resource, ResourceData, format_bool, parse_bool, validate_value_func
from ..utils.logging import get_logger
from .deployment_step import (
    add_default_schema,
    add_iis_app_pool_properties,
    add_iis_app_pool_schema,
    add_package_properties,
    add_package_schema,
    create_basic_step,
    create_step,
    delete_step,
    enable_feature,
    read_step,
    set_basic_schema,
    set_iis_app_pool_schema,
    set_package_schema,
    update_step,
)

logger = get_logger(__name__)

RESOURCE_TYPE = "octopusdeploy_deployment_step_iis_website"
ACTION_TYPE = "Octopus.IIS"

BINDINGS = "Octopus.Action.IISWebSite.Bindings"

# Written when no binding block is configured
DEFAULT_BINDING = {
    "protocol": "http",
    "ip": "*",
    "port": "80",
    "host": "",
    "thumbprint": "",
    "cert_var": "",
    "require_sni": False,
    "enable": True,
}

# attribute -> key in the serialized bindings
_BINDING_KEYS = (
    ("protocol", "protocol"),
    ("ip", "ipAddress"),
    ("port", "port"),
    ("host", "host"),
    ("thumbprint", "thumbprint"),
    ("cert_var", "certificateVariable"),
    ("require_sni", "requireSni"),
    ("enable", "enabled"),
)

# (property suffix, attribute)
_WEBSITE_BOOLS = (
    ("StartWebSite", "start_web_site"),
    ("EnableAnonymousAuthentication", "anonymous_authentication"),
    ("EnableBasicAuthentication", "basic_authentication"),
    ("EnableWindowsAuthentication", "windows_authentication"),
)


def resource_deployment_step_iis_website() -> Resource:
    resource = Resource(
        schema={
            "website_name": Field(
                FieldType.STRING,
                required=True,
                description="The name of the Website to be created",
            ),
            "deployment_type": Field(FieldType.STRING, computed=True),
            "path_type": Field(FieldType.STRING, computed=True),
            "relative_path": Field(
                FieldType.STRING,
                optional=True,
                description="Relative Path to package Root for the physical Path",
            ),
            "start_web_site": Field(
                FieldType.BOOL,
                optional=True,
                default=True,
                description="Start Web Site",
            ),
            "anonymous_authentication": Field(
                FieldType.BOOL,
                optional=True,
                default=False,
                description="Whether IIS should allow anonymous authentication.",
            ),
            "basic_authentication": Field(
                FieldType.BOOL,
                optional=True,
                default=False,
                description="Whether IIS should allow basic authentication with a 401 challenge.",
            ),
            "windows_authentication": Field(
                FieldType.BOOL,
                optional=True,
                default=True,
                description="Whether IIS should allow integrated Windows authentication with a 401 challenge.",
            ),
            "binding": Field(
                FieldType.LIST,
                optional=True,
                elem={
                    "protocol": Field(
                        FieldType.STRING,
                        optional=True,
                        default="https",
                        description="Protocol to bind to",
                        validate=validate_value_func(["http", "https"]),
                    ),
                    "ip": Field(FieldType.STRING, optional=True, default="*", description="IP Address to bind to"),
                    "port": Field(FieldType.STRING, optional=True, default="*", description="Port to bind to"),
                    "host": Field(FieldType.STRING, optional=True, default="", description="Host Name to bind to"),
                    "enable": Field(FieldType.BOOL, optional=True, default=True, description="Enable the binding"),
                    "thumbprint": Field(
                        FieldType.STRING,
                        optional=True,
                        default="",
                        description="Thumbprint for the SSL Binding",
                    ),
                    "cert_var": Field(
                        FieldType.STRING,
                        optional=True,
                        default="",
                        description="Certificate Variable Name for the SSL Binding",
                    ),
                    "require_sni": Field(
                        FieldType.BOOL,
                        optional=True,
                        default=False,
                        description="Require Server Name Indication for the SSL binding",
                    ),
                },
            ),
        },
        create=resource_deployment_step_iis_website_create,
        read=resource_deployment_step_iis_website_read,
        update=resource_deployment_step_iis_website_update,
        delete=resource_deployment_step_iis_website_delete,
        description="Deploys a package as an IIS web site.",
    )

    add_default_schema(resource, True)
    add_package_schema(resource)
    add_iis_app_pool_schema(resource)

    return resource


def flatten_bindings(bindings: List[Dict[str, Any]]) -> str:
    """Serialize binding blocks the way the IIS step stores them."""
    payload = [{api_key: binding[attr] for attr, api_key in _BINDING_KEYS} for binding in bindings]
    return json.dumps(payload, separators=(",", ":"))


def expand_bindings(raw: str) -> List[Dict[str, Any]]:
    """Parse the stored bindings back into binding blocks."""
    bindings = []
    for item in json.loads(raw) or []:
        binding = {}
        for attr, api_key in _BINDING_KEYS:
            value = item.get(api_key)
            if value is None:
                value = DEFAULT_BINDING[attr] if attr in ("require_sni", "enable") else ""
            elif attr in ("require_sni", "enable"):
                value = bool(parse_bool(value) if isinstance(value, str) else value)
            binding[attr] = value
        bindings.append(binding)
    return bindings


def build_iis_website_deployment_step(d: ResourceData) -> DeploymentStep:
    d.set("deployment_type", "webSite")

    step = create_basic_step(d, ACTION_TYPE)
    enable_feature(step.action, "Octopus.Features.IISWebSite")

    add_package_properties(d, step)
    add_iis_app_pool_properties(d, step, "IISWebSite")

    properties = step.action.properties
    properties["Octopus.Action.IISWebSite.DeploymentType"] = d.get("deployment_type")
    properties["Octopus.Action.IISWebSite.CreateOrUpdateWebSite"] = "True"
    properties["Octopus.Action.IISWebSite.WebApplication.CreateOrUpdate"] = "False"
    properties["Octopus.Action.IISWebSite.VirtualDirectory.CreateOrUpdate"] = "False"

    relative_path, ok = d.get_ok("relative_path")
    if ok:
        d.set("path_type", "relativeToPackageRoot")
        properties["Octopus.Action.IISWebSite.PhysicalPath"] = relative_path
    else:
        d.set("path_type", "packageRoot")
    properties["Octopus.Action.IISWebSite.WebRootType"] = d.get("path_type")

    properties["Octopus.Action.IISWebSite.WebSiteName"] = d.get("website_name")
    for suffix, attr in _WEBSITE_BOOLS:
        properties[f"Octopus.Action.IISWebSite.{suffix}"] = format_bool(d.get(attr))

    bindings, ok = d.get_ok("binding")
    if not ok:
        bindings = [DEFAULT_BINDING]
    properties[BINDINGS] = flatten_bindings(bindings)
    logger.debug("bindings: %s", properties[BINDINGS])

    return step


def set_iis_website_schema(d: ResourceData, step: DeploymentStep) -> None:
    set_basic_schema(d, step)
    set_package_schema(d, step)
    set_iis_app_pool_schema(d, step, "IISWebSite")

    properties = step.action.properties

    d.set("deployment_type", properties.get("Octopus.Action.IISWebSite.DeploymentType"))

    if "Octopus.Action.IISWebSite.WebRootType" in properties:
        d.set("path_type", properties["Octopus.Action.IISWebSite.WebRootType"])

    if "Octopus.Action.IISWebSite.PhysicalPath" in properties:
        d.set("relative_path", properties["Octopus.Action.IISWebSite.PhysicalPath"])

    if "Octopus.Action.IISWebSite.WebSiteName" in properties:
        d.set("website_name", properties["Octopus.Action.IISWebSite.WebSiteName"])

    for suffix, attr in _WEBSITE_BOOLS:
        parsed = parse_bool(properties.get(f"Octopus.Action.IISWebSite.{suffix}"))
        if parsed is not None:
            d.set(attr, parsed)

    raw_bindings = properties.get(BINDINGS)
    if raw_bindings:
        try:
            bindings = expand_bindings(raw_bindings)
        except (ValueError, AttributeError):
            logger.warning("Could not parse IIS bindings of step '%s': %s", step.id, raw_bindings)
            return
        if bindings != [DEFAULT_BINDING] or d.has("binding"):
            d.set("binding", bindings)


def resource_deployment_step_iis_website_create(d: ResourceData, client) -> None:
    create_step(d, client, build_iis_website_deployment_step)


def resource_deployment_step_iis_website_read(d: ResourceData, client) -> None:
    read_step(d, client, set_iis_website_schema)


def resource_deployment_step_iis_website_update(d: ResourceData, client) -> None:
    update_step(d, client, build_iis_website_deployment_step)


def resource_deployment_step_iis_website_delete(d: ResourceData, client) -> None:
    delete_step(d, client)
