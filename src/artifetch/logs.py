"""Logging setup, with Actions workflow-command output when running on a runner."""

from __future__ import annotations

import logging
import os
import sys

_COMMANDS = {
    logging.DEBUG: "debug",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}


def escape_data(message: str) -> str:
    """Escape a message for use in a workflow command."""
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class WorkflowCommandFormatter(logging.Formatter):
    """Render records as ::debug:: / ::warning:: / ::error:: lines; info stays plain."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        command = _COMMANDS.get(record.levelno)
        if command is None:
            return message
        return f"::{command}::{escape_data(message)}"


def running_in_actions() -> bool:
    return os.environ.get("GITHUB_ACTIONS") == "true"


def configure_logging(debug: bool = False) -> None:
    """Configure root logging and the artifetch logger level."""
    handler = logging.StreamHandler(sys.stdout if running_in_actions() else sys.stderr)
    if running_in_actions():
        handler.setFormatter(WorkflowCommandFormatter("%(message)s"))
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s", "%H:%M:%S")
        )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.WARNING)
    # Only show detailed logs for our own code
    logging.getLogger("artifetch").setLevel(logging.DEBUG if debug else logging.INFO)
