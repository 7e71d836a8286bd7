"""
CLI commands for stagehand.
"""

from stagehand.cli.destroy import destroy_command
from stagehand.cli.plan import plan_command
from stagehand.cli.run import run_command

__all__ = [
    "destroy_command",
    "plan_command",
    "run_command",
]
