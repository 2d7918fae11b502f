"""External package feed resource."""

from __future__ import annotations

from ..client import Feed, ItemNotFoundError, OctopusAPIError, SensitiveValue
from ..schema import Field, FieldType, Resource, ResourceData, ResourceOperationError, validate_value_func
from ..utils.logging import get_logger

logger = get_logger(__name__)

RESOURCE_TYPE = "octopusdeploy_feed"

FEED_TYPES = ["NuGet", "Docker", "Maven", "GitHub", "Helm", "AwsElasticContainerRegistry"]


def resource_feed() -> Resource:
    return Resource(
        schema={
            "name": Field(FieldType.STRING, required=True),
            "feed_type": Field(
                FieldType.STRING,
                optional=True,
                default="NuGet",
                validate=validate_value_func(FEED_TYPES),
            ),
            "feed_uri": Field(FieldType.STRING, required=True),
            "enhanced_mode": Field(FieldType.BOOL, optional=True, default=False),
            "username": Field(FieldType.STRING, optional=True),
            "password": Field(FieldType.STRING, optional=True, sensitive=True),
            "download_attempts": Field(FieldType.INT, optional=True, default=5),
            "download_retry_backoff_seconds": Field(FieldType.INT, optional=True, default=10),
        },
        create=resource_feed_create,
        read=resource_feed_read,
        update=resource_feed_update,
        delete=resource_feed_delete,
        description="A NuGet, Docker or other external package feed.",
    )


def build_feed(d: ResourceData) -> Feed:
    feed = Feed(
        name=d.get("name"),
        feed_type=d.get("feed_type"),
        feed_uri=d.get("feed_uri"),
        enhanced_mode=d.get("enhanced_mode"),
        download_attempts=d.get("download_attempts"),
        download_retry_backoff_seconds=d.get("download_retry_backoff_seconds"),
    )

    username, ok = d.get_ok("username")
    if ok:
        feed.username = username

    password, ok = d.get_ok("password")
    if ok:
        feed.password = SensitiveValue.of(password)

    return feed


def resource_feed_create(d: ResourceData, client) -> None:
    feed = build_feed(d)

    logger.info("Creating feed '%s' ...", feed.name)
    try:
        created = client.feeds.add(feed)
    except OctopusAPIError as exc:
        raise ResourceOperationError(f"error creating feed '{feed.name}': {exc}") from exc

    d.set_id(created.id)


def resource_feed_read(d: ResourceData, client) -> None:
    feed_id = d.id

    try:
        feed = client.feeds.get(feed_id)
    except ItemNotFoundError:
        d.set_id("")
        return
    except OctopusAPIError as exc:
        raise ResourceOperationError(f"error reading feed '{feed_id}': {exc}") from exc

    d.set("name", feed.name)
    d.set("feed_type", feed.feed_type)
    d.set("feed_uri", feed.feed_uri)
    d.set("enhanced_mode", feed.enhanced_mode)
    d.set("username", feed.username)
    d.set("download_attempts", feed.download_attempts)
    d.set("download_retry_backoff_seconds", feed.download_retry_backoff_seconds)
    # The server never returns the password


def resource_feed_update(d: ResourceData, client) -> None:
    feed_id = d.id

    try:
        existing = client.feeds.get(feed_id)
    except ItemNotFoundError:
        d.set_id("")
        return
    except OctopusAPIError as exc:
        raise ResourceOperationError(f"error reading feed '{feed_id}': {exc}") from exc

    feed = build_feed(d)
    feed.id = feed_id
    feed.extra = dict(existing.extra)
    if feed.password is None:
        # HasValue without a NewValue keeps the stored password
        feed.password = existing.password

    logger.info("Updating feed '%s' ...", feed.id)
    try:
        client.feeds.update(feed)
    except OctopusAPIError as exc:
        raise ResourceOperationError(f"error updating feed '{feed.id}': {exc}") from exc


def resource_feed_delete(d: ResourceData, client) -> None:
    feed_id = d.id

    logger.info("Deleting feed '%s' ...", feed_id)
    try:
        client.feeds.delete(feed_id)
    except ItemNotFoundError:
        pass
    except OctopusAPIError as exc:
        raise ResourceOperationError(f"error deleting feed '{feed_id}': {exc}") from exc

    d.set_id("")
