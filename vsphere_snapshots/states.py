"""Nagios service states."""

from enum import Enum


class State(Enum):
    """Service state with its Nagios label and plugin exit code."""

    OK = ("OK", 0)
    WARNING = ("WARNING", 1)
    CRITICAL = ("CRITICAL", 2)

    def __init__(self, label: str, exit_code: int):
        self.label = label
        self.exit_code = exit_code
