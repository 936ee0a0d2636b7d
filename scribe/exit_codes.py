"""Exit codes for the scribe CLI."""

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    ERROR_GENERAL = 1
    ERROR_ARGS = 2
    ERROR_FILE = 3
    ERROR_TOOL = 4
    ERROR_BACKEND = 5
    ERROR_TIMEOUT = 6
    ERROR_CONFIG = 7
