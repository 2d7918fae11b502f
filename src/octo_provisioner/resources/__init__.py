"""Resource handlers for the Octopus Deploy server."""

from .account import resource_account
from .deployment_step_iis_website import resource_deployment_step_iis_website
from .deployment_step_inline_script import resource_deployment_step_inline_script
from .deployment_step_package import resource_deployment_step_package
from .feed import resource_feed
from .step_order import insert_step, insertion_index, neighbours, remove_step, replace_step

__all__ = [
    "resource_account",
    "resource_deployment_step_iis_website",
    "resource_deployment_step_inline_script",
    "resource_deployment_step_package",
    "resource_feed",
    "insert_step",
    "insertion_index",
    "neighbours",
    "remove_step",
    "replace_step",
]
