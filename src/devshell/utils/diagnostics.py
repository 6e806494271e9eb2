from enum import Enum
from typing import Optional


class PreconditionKind(str, Enum):
    TOOL_MISSING = "tool_missing"
    NOT_A_REPOSITORY = "not_a_repository"
    NOTHING_TO_EDIT = "nothing_to_edit"


class DevShellError(Exception):
    """
    Base class for failures a developer command reports as a single error line.
    """
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class PreconditionError(DevShellError):
    """
    The environment does not allow the command to run (tool missing, not a
    repository, nothing to edit). Raised before any side effect.
    """
    def __init__(self, message: str, kind: PreconditionKind):
        self.kind = kind
        super().__init__(message)


class DelegationError(DevShellError):
    """
    An external editor, pager or version-control process failed to launch or
    exited abnormally.
    """
    def __init__(self, command_line: str, returncode: Optional[int] = None):
        self.command_line = command_line
        self.returncode = returncode
        super().__init__(f"Could not execute {command_line}")
