"""Command-line interface for octo-provisioner."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from typing import Optional

from rich.console import Console
from rich.table import Table

from .client import OctopusAPIError
from .config import AppConfig, load_config
from .paths import get_state_file
from .provider import RESOURCE_TYPES, Provider, UnknownResourceTypeError
from .schema import ResourceOperationError, SchemaValidationError
from .state import StateStore
from .utils.logging import get_logger
from .workflow import ResourceWorkflow, load_definitions

logger = get_logger(__name__)

console = Console()

MASK = "(sensitive)"


@dataclass
class CLIContext:
    """Context captured from CLI arguments."""

    config: AppConfig
    state_path: str


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="octo-provisioner",
        description="Manage Octopus Deploy deployment steps, feeds and accounts declaratively.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a JSON config file overriding defaults.",
    )
    parser.add_argument(
        "--state",
        type=str,
        default=None,
        help="Path of the state file.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    resources_parser = subparsers.add_parser(
        "resources", help="List supported resource types"
    )
    resources_parser.add_argument(
        "--type", "-t", dest="resource_type", default=None,
        help="Show the attributes of one resource type"
    )

    validate_parser = subparsers.add_parser(
        "validate", help="Check a definitions file against the resource schemas"
    )
    validate_parser.add_argument("file", help="Resource definitions (JSON)")

    apply_parser = subparsers.add_parser(
        "apply", help="Create, update or delete resources to match a definitions file"
    )
    apply_parser.add_argument("file", help="Resource definitions (JSON)")

    subparsers.add_parser("refresh", help="Re-read every resource in state from the server")
    subparsers.add_parser("destroy", help="Delete every resource in state")
    subparsers.add_parser("show", help="Show the resources in state")

    return parser


def _build_context(args: argparse.Namespace) -> CLIContext:
    config = load_config(args.config)
    state_path = args.state or config.state.path
    return CLIContext(config=config, state_path=state_path)


def _workflow(context: CLIContext) -> ResourceWorkflow:
    provider = Provider(context.config.server)
    store = StateStore(get_state_file(context.state_path))
    return ResourceWorkflow(provider, store)


def handle_resources_command(args: argparse.Namespace) -> int:
    """List resource types, or the schema of one type."""
    if args.resource_type:
        if args.resource_type not in RESOURCE_TYPES:
            raise UnknownResourceTypeError(args.resource_type)
        resource = RESOURCE_TYPES[args.resource_type]()
        table = Table(title=args.resource_type)
        table.add_column("Attribute")
        table.add_column("Type")
        table.add_column("Mode")
        table.add_column("Default")
        table.add_column("Description")
        for key, spec in sorted(resource.schema.items()):
            if spec.required:
                mode = "required"
            elif spec.computed and not spec.optional:
                mode = "computed"
            else:
                mode = "optional"
            if spec.force_new:
                mode += ", force new"
            table.add_row(
                key,
                spec.type.value,
                mode,
                "" if spec.default is None else repr(spec.default),
                spec.description,
            )
        console.print(table)
        return 0

    table = Table(title="Resource types")
    table.add_column("Type")
    table.add_column("Description")
    for name, factory in sorted(RESOURCE_TYPES.items()):
        table.add_row(name, factory().description)
    console.print(table)
    return 0


def handle_validate_command(args: argparse.Namespace, context: CLIContext) -> int:
    definitions = load_definitions(args.file)
    problems = _workflow(context).validate(definitions)
    if not problems:
        print(f"✅ {len(definitions)} resource(s) valid")
        return 0
    for address, errors in problems.items():
        print(f"❌ {address}")
        for error in errors:
            print(f"    {error}")
    return 1


def handle_apply_command(args: argparse.Namespace, context: CLIContext) -> int:
    definitions = load_definitions(args.file)
    result = _workflow(context).apply(definitions)
    for label, addresses in (
        ("created", result.created),
        ("updated", result.updated),
        ("replaced", result.replaced),
        ("deleted", result.deleted),
    ):
        for address in addresses:
            print(f"  {label:<9} {address}")
    print(
        f"Apply complete: {len(result.created)} created, {len(result.updated)} updated, "
        f"{len(result.replaced)} replaced, {len(result.deleted)} deleted, "
        f"{len(result.unchanged)} unchanged."
    )
    return 0


def handle_refresh_command(context: CLIContext) -> int:
    removed = _workflow(context).refresh()
    for address in removed:
        print(f"  removed   {address}")
    print(f"Refresh complete: {len(removed)} resource(s) gone from the server.")
    return 0


def handle_destroy_command(context: CLIContext) -> int:
    deleted = _workflow(context).destroy()
    for address in deleted:
        print(f"  deleted   {address}")
    print(f"Destroy complete: {len(deleted)} resource(s) deleted.")
    return 0


def handle_show_command(context: CLIContext) -> int:
    workflow = _workflow(context)
    resources = workflow.store.load()
    if not resources:
        print("📁 No resources in state.")
        return 0

    for address, entry in resources.items():
        schema = workflow.provider.resource(entry.type).schema
        table = Table(title=f"{address} ({entry.id})")
        table.add_column("Attribute")
        table.add_column("Value")
        for key, value in sorted(entry.attributes.items()):
            spec = schema.get(key)
            shown = MASK if spec is not None and spec.sensitive else _masked(value, spec)
            table.add_row(key, str(shown))
        console.print(table)
    return 0


def _masked(value, spec):
    # Nested blocks can hold sensitive attributes too
    if spec is None or not isinstance(spec.elem, dict) or not isinstance(value, list):
        return value
    masked = []
    for item in value:
        if isinstance(item, dict):
            item = {
                k: (MASK if k in spec.elem and spec.elem[k].sensitive else v)
                for k, v in item.items()
            }
        masked.append(item)
    return masked


def dispatch_command(args: argparse.Namespace) -> int:
    if args.command == "resources":
        return handle_resources_command(args)

    context = _build_context(args)

    if args.command == "validate":
        return handle_validate_command(args, context)
    if args.command == "apply":
        return handle_apply_command(args, context)
    if args.command == "refresh":
        return handle_refresh_command(context)
    if args.command == "destroy":
        return handle_destroy_command(context)
    if args.command == "show":
        return handle_show_command(context)

    raise ValueError(f"Unsupported command: {args.command}")


def run_cli(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return dispatch_command(args)
    except (
        OctopusAPIError,
        ResourceOperationError,
        SchemaValidationError,
        UnknownResourceTypeError,
        FileNotFoundError,
        ValueError,
    ) as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"❌ {exc}")
        return 1


def main() -> None:
    """Console-script entry point."""
    sys.exit(run_cli())
