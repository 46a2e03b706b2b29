"""Command-line helpers shared by the ``sensor_link`` subcommands."""

from .common import LOG_LEVELS, add_common_cli_arguments, add_session_arguments, positive_int

__all__ = ["LOG_LEVELS", "add_common_cli_arguments", "add_session_arguments", "positive_int"]
