"""Allow running the CLI with ``python -m octo_provisioner``."""

import sys

from .cli import run_cli

sys.exit(run_cli())
