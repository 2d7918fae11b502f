"""Account resource (Azure, AWS and generic credentials)."""

from __future__ import annotations

from ..client import Account, ItemNotFoundError, OctopusAPIError, SensitiveValue
from ..schema import Field, FieldType, Resource, ResourceData, ResourceOperationError, validate_value_func
from ..utils.logging import get_logger

logger = get_logger(__name__)

RESOURCE_TYPE = "octopusdeploy_account"

ACCOUNT_TYPES = [
    "AzureServicePrincipal",
    "AzureSubscription",
    "AmazonWebServicesAccount",
    "UsernamePassword",
    "Token",
]

TENANTED_DEPLOYMENT_PARTICIPATION = ["Untenanted", "TenantedOrUntenanted", "Tenanted"]


def resource_account() -> Resource:
    return Resource(
        schema={
            "name": Field(FieldType.STRING, required=True),
            "account_type": Field(
                FieldType.STRING,
                required=True,
                force_new=True,
                validate=validate_value_func(ACCOUNT_TYPES),
            ),
            "description": Field(FieldType.STRING, optional=True),
            "client_id": Field(FieldType.STRING, optional=True),
            "tenant_id": Field(FieldType.STRING, optional=True),
            "subscription_id": Field(FieldType.STRING, optional=True),
            "client_secret": Field(FieldType.STRING, optional=True, sensitive=True),
            "environments": Field(FieldType.LIST, optional=True, elem=Field(FieldType.STRING)),
            "tenant_tags": Field(
                FieldType.LIST,
                optional=True,
                elem=Field(FieldType.STRING),
                description="Tags in the form 'TagSet/Tag' used for tenanted deployments.",
            ),
            "tenanted_deployment_participation": Field(
                FieldType.STRING,
                optional=True,
                default="Untenanted",
                validate=validate_value_func(TENANTED_DEPLOYMENT_PARTICIPATION),
            ),
        },
        create=resource_account_create,
        read=resource_account_read,
        update=resource_account_update,
        delete=resource_account_delete,
        description="Credentials referenced by deployment targets and steps.",
    )


def build_account(d: ResourceData) -> Account:
    account = Account(
        name=d.get("name"),
        account_type=d.get("account_type"),
        environment_ids=list(d.get("environments")),
        tenant_tags=list(d.get("tenant_tags")),
        tenanted_deployment_participation=d.get("tenanted_deployment_participation"),
    )

    for attr, field_name in (
        ("description", "description"),
        ("client_id", "client_id"),
        ("tenant_id", "tenant_id"),
        ("subscription_id", "subscription_number"),
    ):
        value, ok = d.get_ok(attr)
        if ok:
            setattr(account, field_name, value)

    client_secret, ok = d.get_ok("client_secret")
    if ok:
        account.password = SensitiveValue.of(client_secret)

    return account


def resource_account_create(d: ResourceData, client) -> None:
    account = build_account(d)

    logger.info("Creating account '%s' ...", account.name)
    try:
        created = client.accounts.add(account)
    except OctopusAPIError as exc:
        raise ResourceOperationError(f"error creating account '{account.name}': {exc}") from exc

    d.set_id(created.id)


def resource_account_read(d: ResourceData, client) -> None:
    account_id = d.id

    try:
        account = client.accounts.get(account_id)
    except ItemNotFoundError:
        d.set_id("")
        return
    except OctopusAPIError as exc:
        raise ResourceOperationError(f"error reading account '{account_id}': {exc}") from exc

    d.set("name", account.name)
    d.set("account_type", account.account_type)
    d.set("description", account.description)
    d.set("client_id", account.client_id)
    d.set("tenant_id", account.tenant_id)
    d.set("subscription_id", account.subscription_number)
    d.set("environments", list(account.environment_ids))
    d.set("tenant_tags", list(account.tenant_tags))
    d.set("tenanted_deployment_participation", account.tenanted_deployment_participation)


def resource_account_update(d: ResourceData, client) -> None:
    account_id = d.id

    try:
        existing = client.accounts.get(account_id)
    except ItemNotFoundError:
        d.set_id("")
        return
    except OctopusAPIError as exc:
        raise ResourceOperationError(f"error reading account '{account_id}': {exc}") from exc

    account = build_account(d)
    account.id = account_id
    account.extra = dict(existing.extra)
    if account.password is None:
        account.password = existing.password

    logger.info("Updating account '%s' ...", account.id)
    try:
        client.accounts.update(account)
    except OctopusAPIError as exc:
        raise ResourceOperationError(f"error updating account '{account.id}': {exc}") from exc


def resource_account_delete(d: ResourceData, client) -> None:
    account_id = d.id

    logger.info("Deleting account '%s' ...", account_id)
    try:
        client.accounts.delete(account_id)
    except ItemNotFoundError:
        pass
    except OctopusAPIError as exc:
        raise ResourceOperationError(f"error deleting account '{account_id}': {exc}") from exc

    d.set_id("")
