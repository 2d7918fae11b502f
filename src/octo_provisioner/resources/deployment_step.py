"""Shared pieces of every deployment-step resource.

Each step type declares its schema with the ``add_*_schema`` helpers, maps
its attributes into the step property bag with the ``add_*_properties``
builders, maps them back with the ``set_*_schema`` setters, and plugs a
builder/setter pair into the generic lifecycle functions at the bottom.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

from ..client import DeploymentProcess, DeploymentStep, ItemNotFoundError, OctopusAPIError
from ..client.models import DeploymentAction, is_sensitive_property
from ..schema import (
    Field,
    FieldType,
    Resource,
    ResourceData,
    ResourceOperationError,
    format_bool,
    parse_bool,
    validate_value_func,
)
from ..utils.logging import get_logger
from .step_order import insert_step, neighbours, remove_step

logger = get_logger(__name__)

BuildStepFunc = Callable[[ResourceData], DeploymentStep]
SetSchemaFunc = Callable[[ResourceData, DeploymentStep], None]

ENABLED_FEATURES = "Octopus.Action.EnabledFeatures"
TARGET_ROLES = "Octopus.Action.TargetRoles"
RUN_ON_SERVER = "Octopus.Action.RunOnServer"

SCRIPT_LANGUAGES = ["PowerShell", "CSharp", "Bash", "FSharp"]
SCRIPT_EXTENSIONS = {
    "PowerShell": "ps1",
    "CSharp": "csx",
    "Bash": "sh",
    "FSharp": "fsx",
}
# phase -> (attribute, script file name)
SCRIPT_PHASES = {
    "pre": ("pre_deploy_script", "PreDeploy"),
    "deploy": ("deploy_script", "Deploy"),
    "post": ("post_deploy_script", "PostDeploy"),
}

# ---------------------------------------------------------------------------
# Schema builders
# ---------------------------------------------------------------------------


def add_default_schema(resource: Resource, target_roles_required: bool) -> None:
    schema = resource.schema

    schema["project_id"] = Field(FieldType.STRING, required=True, force_new=True)
    schema["deployment_process_id"] = Field(FieldType.STRING, computed=True)
    schema["enabled_features"] = Field(FieldType.STRING, computed=True)
    schema["first_step"] = Field(
        FieldType.BOOL,
        optional=True,
        default=False,
        description="Define as the first step",
    )
    schema["before_step_id"] = Field(
        FieldType.STRING,
        optional=True,
        description="Define the step this should precede",
    )
    schema["after_step_id"] = Field(
        FieldType.STRING,
        optional=True,
        description="Define Step this should follow, else will be added to the end at time of creation",
    )
    schema["step_name"] = Field(
        FieldType.STRING,
        required=True,
        description="The name of the deployment step.",
    )
    schema["step_condition"] = Field(
        FieldType.STRING,
        optional=True,
        default="success",
        description="Limit when this step will run by setting this condition.",
        validate=validate_value_func(["success", "failure", "always", "variable"]),
    )
    schema["required"] = Field(FieldType.BOOL, optional=True, default=False)
    schema["step_start_trigger"] = Field(
        FieldType.STRING,
        optional=True,
        default="StartAfterPrevious",
        description="Control whether the step waits for the previous step to complete, or runs parallel with it.",
        validate=validate_value_func(["StartAfterPrevious", "StartWithPrevious"]),
    )
    schema["target_roles"] = Field(
        FieldType.LIST,
        required=target_roles_required,
        optional=not target_roles_required,
        elem=Field(FieldType.STRING),
    )

    if not target_roles_required:
        schema["run_on_server"] = Field(
            FieldType.BOOL,
            optional=True,
            default=False,
            description="Whether the script runs on the server (true) or target (false)",
        )


def _script_block(description: str) -> Field:
    return Field(
        FieldType.SET,
        optional=True,
        min_items=1,
        max_items=1,
        description=description,
        elem={
            "type": Field(
                FieldType.STRING,
                required=True,
                description="The scripting language of the script",
                validate=validate_value_func(SCRIPT_LANGUAGES),
            ),
            "body": Field(FieldType.STRING, required=True, description="The script body."),
        },
    )


def add_package_schema(resource: Resource) -> None:
    schema = resource.schema

    schema["feed_id"] = Field(
        FieldType.STRING,
        required=True,
        description="The ID of the feed a package will be found in.",
    )
    schema["package"] = Field(
        FieldType.STRING,
        required=True,
        description="ID / Name of the package to be deployed.",
    )
    schema["configuration_transforms"] = Field(
        FieldType.BOOL,
        optional=True,
        default=True,
        description="Enables XML configuration transformations.",
    )
    schema["configuration_variables"] = Field(
        FieldType.BOOL,
        optional=True,
        default=True,
        description="Enables replacing appSettings and connectionString entries in any .config file.",
    )
    schema["json_file_variable_replacement"] = Field(
        FieldType.STRING,
        optional=True,
        description="A comma-separated list of file names to replace settings in, relative to the package contents.",
    )
    schema["variable_substitution_in_files"] = Field(
        FieldType.LIST,
        optional=True,
        elem=Field(FieldType.STRING),
        description="Array of file names to transform, relative to the package contents. Extended wildcard syntax is supported.",
    )
    schema["pre_deploy_script"] = _script_block("Custom Pre-deployment Script")
    schema["deploy_script"] = _script_block("Custom Deployment Script")
    schema["post_deploy_script"] = _script_block("Custom Post-deployment Script")


def add_iis_app_pool_schema(resource: Resource) -> None:
    resource.schema["application_pool"] = Field(
        FieldType.SET,
        required=True,
        min_items=1,
        max_items=1,
        description="Application Pool Settings",
        elem={
            "name": Field(
                FieldType.STRING,
                required=True,
                description="Name of the application pool in IIS to create or reconfigure.",
            ),
            "framework": Field(
                FieldType.STRING,
                optional=True,
                default="v4.0",
                description=(
                    "The version of the .NET common language runtime that this application pool will use. "
                    "Choose v2.0 for applications built against .NET 2.0, 3.0 or 3.5. "
                    "Choose v4.0 for .NET 4.0 or 4.5."
                ),
                validate=validate_value_func(["v2.0", "v4.0"]),
            ),
            "identity": Field(
                FieldType.STRING,
                optional=True,
                default="ApplicationPoolIdentity",
                description="Which account will the application pool run under.",
            ),
            "username": Field(
                FieldType.STRING,
                optional=True,
                description="Application Pool Identity Username",
            ),
            "password": Field(
                FieldType.STRING,
                optional=True,
                sensitive=True,
                description="Application Pool Identity Password",
            ),
            "start": Field(
                FieldType.BOOL,
                optional=True,
                default=True,
                description="Start Application Pool",
            ),
        },
    )


# ---------------------------------------------------------------------------
# Step builders
# ---------------------------------------------------------------------------


def enable_feature(action: DeploymentAction, feature: str) -> None:
    """Append ``feature`` to the action's enabled features once."""
    features = [f for f in action.properties.get(ENABLED_FEATURES, "").split(",") if f]
    if feature not in features:
        features.append(feature)
    action.properties[ENABLED_FEATURES] = ",".join(features)


def create_basic_step(d: ResourceData, action_type: str) -> DeploymentStep:
    step_name = d.get("step_name")

    step = DeploymentStep(
        name=step_name,
        package_requirement="LetOctopusDecide",
        condition=d.get("step_condition").capitalize(),
        start_trigger=d.get("step_start_trigger"),
        properties={},
        actions=[
            DeploymentAction(
                name=step_name,
                action_type=action_type,
                is_required=d.get("required"),
                properties={},
            )
        ],
    )

    if "run_on_server" in d.schema:
        run_on_server, ok = d.get_ok("run_on_server")
        if ok:
            step.action.properties[RUN_ON_SERVER] = str(bool(run_on_server)).lower()

    target_roles, ok = d.get_ok("target_roles")
    if ok:
        step.properties[TARGET_ROLES] = ",".join(target_roles)

    return step


def add_deploy_script_properties(d: ResourceData, step: DeploymentStep, phase: str) -> None:
    script_prop, script_name = SCRIPT_PHASES[phase]

    scripts, ok = d.get_ok(script_prop)
    if not ok:
        return

    script = scripts[0]
    extension = SCRIPT_EXTENSIONS[script["type"]]
    step.action.properties[f"Octopus.Action.CustomScripts.{script_name}.{extension}"] = script["body"]
    enable_feature(step.action, "Octopus.Features.CustomScripts")


def add_package_properties(d: ResourceData, step: DeploymentStep) -> None:
    properties = step.action.properties

    properties["Octopus.Action.Package.DownloadOnTentacle"] = "False"
    properties["Octopus.Action.Package.FeedId"] = d.get("feed_id")
    properties["Octopus.Action.Package.PackageId"] = d.get("package")

    json_targets, ok = d.get_ok("json_file_variable_replacement")
    if ok:
        properties["Octopus.Action.Package.JsonConfigurationVariablesTargets"] = json_targets
        properties["Octopus.Action.Package.JsonConfigurationVariablesEnabled"] = "True"
        enable_feature(step.action, "Octopus.Features.JsonConfigurationVariables")

    substitution_files, ok = d.get_ok("variable_substitution_in_files")
    if ok:
        properties["Octopus.Action.SubstituteInFiles.TargetFiles"] = "\n".join(substitution_files)
        properties["Octopus.Action.SubstituteInFiles.Enabled"] = "True"
        enable_feature(step.action, "Octopus.Features.SubstituteInFiles")

    if d.get("configuration_transforms"):
        properties["Octopus.Action.Package.AutomaticallyRunConfigurationTransformationFiles"] = format_bool(True)
        enable_feature(step.action, "Octopus.Features.ConfigurationTransforms")

    if d.get("configuration_variables"):
        properties["Octopus.Action.Package.AutomaticallyUpdateAppSettingsAndConnectionStrings"] = format_bool(True)
        enable_feature(step.action, "Octopus.Features.ConfigurationVariables")

    for phase in SCRIPT_PHASES:
        add_deploy_script_properties(d, step, phase)


def _iis_prefix(iis_type: str) -> str:
    if iis_type == "IISWebSite":
        return "Octopus.Action.IISWebSite"
    return f"Octopus.Action.IISWebSite.{iis_type}"


def add_iis_app_pool_properties(d: ResourceData, step: DeploymentStep, iis_type: str) -> None:
    prefix = _iis_prefix(iis_type)

    app_pools, ok = d.get_ok("application_pool")
    if not ok:
        return

    app_pool = app_pools[0]
    properties = step.action.properties

    properties[f"{prefix}.ApplicationPoolName"] = app_pool["name"]
    properties[f"{prefix}.ApplicationPoolFrameworkVersion"] = app_pool["framework"]
    properties[f"{prefix}.ApplicationPoolIdentityType"] = app_pool["identity"]

    if app_pool.get("username"):
        properties[f"{prefix}.ApplicationPoolUsername"] = app_pool["username"]

    if app_pool.get("password"):
        properties[f"{prefix}.ApplicationPoolPassword"] = app_pool["password"]

    properties["Octopus.Action.IISWebSite.StartApplicationPool"] = format_bool(app_pool["start"])


# ---------------------------------------------------------------------------
# Schema setters
# ---------------------------------------------------------------------------


def _set_parsed_bool(d: ResourceData, key: str, raw: Optional[str]) -> None:
    parsed = parse_bool(raw)
    if parsed is not None:
        d.set(key, parsed)


def set_basic_schema(d: ResourceData, step: DeploymentStep) -> None:
    d.set("step_name", step.name)
    d.set("step_condition", step.condition.lower())
    d.set("required", step.action.is_required)
    d.set("step_start_trigger", step.start_trigger)

    target_roles = step.properties.get(TARGET_ROLES)
    if target_roles:
        d.set("target_roles", target_roles.split(","))

    if "run_on_server" in d.schema and RUN_ON_SERVER in step.action.properties:
        _set_parsed_bool(d, "run_on_server", step.action.properties[RUN_ON_SERVER])


def set_deploy_script_schema(d: ResourceData, step: DeploymentStep, phase: str) -> None:
    script_prop, script_name = SCRIPT_PHASES[phase]
    properties = step.action.properties

    for language, extension in SCRIPT_EXTENSIONS.items():
        body = properties.get(f"Octopus.Action.CustomScripts.{script_name}.{extension}")
        if body is not None:
            d.set(script_prop, [{"type": language, "body": body}])
            return

    d.set(script_prop, None)


def set_package_schema(d: ResourceData, step: DeploymentStep) -> None:
    properties = step.action.properties

    d.set("feed_id", properties.get("Octopus.Action.Package.FeedId"))
    d.set("package", properties.get("Octopus.Action.Package.PackageId"))

    if "Octopus.Action.Package.JsonConfigurationVariablesTargets" in properties:
        d.set(
            "json_file_variable_replacement",
            properties["Octopus.Action.Package.JsonConfigurationVariablesTargets"],
        )

    target_files = properties.get("Octopus.Action.SubstituteInFiles.TargetFiles")
    if target_files:
        d.set("variable_substitution_in_files", target_files.split("\n"))

    # Builders only write these two when enabled
    _set_parsed_bool(
        d,
        "configuration_transforms",
        properties.get("Octopus.Action.Package.AutomaticallyRunConfigurationTransformationFiles", "False"),
    )
    _set_parsed_bool(
        d,
        "configuration_variables",
        properties.get("Octopus.Action.Package.AutomaticallyUpdateAppSettingsAndConnectionStrings", "False"),
    )

    for phase in SCRIPT_PHASES:
        set_deploy_script_schema(d, step, phase)


def set_iis_app_pool_schema(d: ResourceData, step: DeploymentStep, iis_type: str) -> None:
    prefix = _iis_prefix(iis_type)
    properties = step.action.properties

    app_pool: Dict[str, object] = {}
    for key, suffix in (
        ("name", "ApplicationPoolName"),
        ("framework", "ApplicationPoolFrameworkVersion"),
        ("identity", "ApplicationPoolIdentityType"),
        ("username", "ApplicationPoolUsername"),
        ("password", "ApplicationPoolPassword"),
    ):
        value = properties.get(f"{prefix}.{suffix}")
        if value is not None:
            app_pool[key] = value

    start = parse_bool(properties.get("Octopus.Action.IISWebSite.StartApplicationPool"))
    if start is not None:
        app_pool["start"] = start

    if app_pool:
        d.set("application_pool", [app_pool])


# ---------------------------------------------------------------------------
# Universal create, read, update, delete
# ---------------------------------------------------------------------------


def _load_process(client, process_id: str) -> DeploymentProcess:
    logger.info("Loading deployment process '%s' ...", process_id)
    return client.deployment_processes.get(process_id)


def _update_process(client, process: DeploymentProcess) -> DeploymentProcess:
    logger.info("Updating deployment process '%s' ...", process.id)
    for step in process.steps:
        logger.debug(
            "STEP - %s: id=%s action=%s",
            step.name,
            step.id,
            step.actions[0].action_type if step.actions else None,
        )
    try:
        return client.deployment_processes.update(process)
    except OctopusAPIError as exc:
        raise ResourceOperationError(
            f"error updating deployment process '{process.id}': {exc}"
        ) from exc


def _stored_secrets(raw_properties: Dict[str, object]) -> Dict[str, object]:
    # Secrets stay on the server until the configuration writes a new value
    return {k: v for k, v in raw_properties.items() if is_sensitive_property(v)}


def _position_refs(d: ResourceData, steps: List[DeploymentStep]) -> Tuple[Optional[str], Optional[str]]:
    before_id = d.get("before_step_id") or None
    if d.get("first_step") and steps:
        before_id = steps[0].id
    after_id = d.get("after_step_id") or None
    return before_id, after_id


def create_step(d: ResourceData, client, build_step: BuildStepFunc) -> None:
    project_id = d.get("project_id")

    logger.info("Loading project '%s' ...", project_id)
    try:
        project = client.projects.get(project_id)
    except OctopusAPIError as exc:
        raise ResourceOperationError(f"error loading project '{project_id}': {exc}") from exc

    try:
        process = _load_process(client, project.deployment_process_id)
    except OctopusAPIError as exc:
        raise ResourceOperationError(
            f"error reading deployment process '{project.deployment_process_id}': {exc}"
        ) from exc

    new_step = build_step(d)
    before_id, after_id = _position_refs(d, process.steps)
    process.steps, index = insert_step(process.steps, new_step, before_id, after_id)

    updated = _update_process(client, process)
    created = updated.steps[index]

    d.set_id(created.id)
    d.set("deployment_process_id", updated.id)
    d.set("enabled_features", created.action.properties.get(ENABLED_FEATURES, ""))


def read_step(d: ResourceData, client, set_schema: SetSchemaFunc) -> None:
    step_id = d.id
    process_id = d.get("deployment_process_id")

    try:
        process = _load_process(client, process_id)
    except ItemNotFoundError:
        d.set_id("")
        return
    except OctopusAPIError as exc:
        raise ResourceOperationError(f"error reading deployment process '{process_id}': {exc}") from exc

    index, previous_id, next_id = neighbours(process.steps, step_id)
    if index == -1:
        logger.info("Step '%s' no longer exists in '%s'", step_id, process_id)
        d.set_id("")
        return

    step = process.steps[index]

    d.set("first_step", index == 0)
    if d.get("before_step_id"):
        d.set("before_step_id", next_id or "")
    if d.get("after_step_id"):
        d.set("after_step_id", previous_id or "")

    d.set("enabled_features", step.action.properties.get(ENABLED_FEATURES, ""))

    set_schema(d, step)


def update_step(d: ResourceData, client, build_step: BuildStepFunc) -> None:
    step_id = d.id
    process_id = d.get("deployment_process_id")

    try:
        process = _load_process(client, process_id)
    except ItemNotFoundError:
        d.set_id("")
        return
    except OctopusAPIError as exc:
        raise ResourceOperationError(f"error reading deployment process '{process_id}': {exc}") from exc

    new_step = build_step(d)
    new_step.id = step_id

    # Keep server-managed fields of the step being edited
    for existing in process.steps:
        if existing.id == step_id:
            new_step.extra = dict(existing.extra)
            new_step.raw_properties = _stored_secrets(existing.raw_properties)
            if existing.actions:
                new_step.action.id = existing.action.id
                new_step.action.extra = dict(existing.action.extra)
                new_step.action.raw_properties = _stored_secrets(existing.action.raw_properties)
            break

    remaining = remove_step(process.steps, step_id)
    before_id, after_id = _position_refs(d, remaining)
    process.steps, index = insert_step(remaining, new_step, before_id, after_id)

    updated = _update_process(client, process)
    d.set("enabled_features", updated.steps[index].action.properties.get(ENABLED_FEATURES, ""))


def delete_step(d: ResourceData, client) -> None:
    step_id = d.id
    process_id = d.get("deployment_process_id")

    try:
        process = _load_process(client, process_id)
    except ItemNotFoundError:
        d.set_id("")
        return
    except OctopusAPIError as exc:
        raise ResourceOperationError(f"error reading deployment process '{process_id}': {exc}") from exc

    process.steps = remove_step(process.steps, step_id)
    _update_process(client, process)

    d.set_id("")
