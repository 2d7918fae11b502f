"""Octopus Deploy REST client."""

from .client import (
    AccountService,
    DeploymentProcessService,
    FeedService,
    OctopusClient,
    ProjectService,
)
from .errors import ItemNotFoundError, OctopusAPIError
from .models import (
    Account,
    DeploymentAction,
    DeploymentProcess,
    DeploymentStep,
    Feed,
    Project,
    SensitiveValue,
)

__all__ = [
    "OctopusClient",
    "ProjectService",
    "DeploymentProcessService",
    "FeedService",
    "AccountService",
    "OctopusAPIError",
    "ItemNotFoundError",
    "Account",
    "DeploymentAction",
    "DeploymentProcess",
    "DeploymentStep",
    "Feed",
    "Project",
    "SensitiveValue",
]
