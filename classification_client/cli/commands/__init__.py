"""
CLI Commands.

Organized by area: the run lifecycle, per-operation run management,
and model/configuration display.
"""

from classification_client.cli.commands.run import run as run_command
from classification_client.cli.commands.runs import app as runs_app
from classification_client.cli.commands.system import config as config_command
from classification_client.cli.commands.system import models as models_command

__all__ = [
    "config_command",
    "models_command",
    "run_command",
    "runs_app",
]
