import os
import shlex
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel
from devshell.core.models import Command
from devshell.core.registry import Registry


class DispatchStatus(str, Enum):
    HANDLED = "handled"
    UNKNOWN = "unknown"
    EMPTY = "empty"
    INVALID = "invalid"


class DispatchResult(BaseModel):
    status: DispatchStatus
    command: Optional[str] = None
    value: Any = None
    message: Optional[str] = None


class CommandDispatcher:
    """
    Routes a console line to the matching registered command.

    The dispatcher prints nothing itself: unknown commands come back as an
    UNKNOWN result for the host shell to report.
    """
    def __init__(self, name: str = "Developer"):
        self.name = name
        self.commands: Registry[Command] = Registry()

    def register(self, command: Command) -> None:
        self.commands.register(command)

    def register_all(self, commands: List[Command]) -> None:
        self.commands.register_all(commands)

    def summaries(self) -> Dict[str, str]:
        """Command names and one-line descriptions for the host help system."""
        return {command.name: command.summary for command in self.commands}

    def dispatch(self, line: str) -> DispatchResult:
        parts = line.strip().split(None, 1)
        if not parts:
            return DispatchResult(status=DispatchStatus.EMPTY)

        name = parts[0]
        remainder = parts[1] if len(parts) > 1 else ""

        command = self.commands.find(name)
        if command is None:
            return DispatchResult(status=DispatchStatus.UNKNOWN, command=name)

        try:
            args = shlex.split(remainder)
        except ValueError as exc:
            return DispatchResult(
                status=DispatchStatus.INVALID,
                command=name,
                message=f"Invalid argument syntax: {exc}",
            )

        value = command.handler(args)
        return DispatchResult(status=DispatchStatus.HANDLED, command=name, value=value)

    def tab_complete(self, command_name: str, partial: str, prior_words: List[str]) -> List[str]:
        """
        Candidates for the word being completed after ``command_name``.

        ``prior_words`` holds the words already typed, command name included.
        """
        command = self.commands.find(command_name)
        if command is None or command.tab_completer is None:
            return []

        candidates = command.tab_completer(partial, list(prior_words)) or []
        return [candidate for candidate in candidates if candidate.startswith(partial)]

    def help(self, name: str) -> bool:
        """Render a command's help text. Returns False when there is nothing to show."""
        command = self.commands.find(name)
        if command is None or command.help_renderer is None:
            return False
        command.help_renderer()
        return True


def complete_filenames(partial: str, prior_words: List[str]) -> List[str]:
    """Filesystem entries matching ``partial``; directories end with a separator."""
    expanded = os.path.expanduser(partial)
    directory, prefix = os.path.split(expanded)
    search_dir = Path(directory) if directory else Path(".")

    try:
        entries = sorted(search_dir.iterdir(), key=lambda entry: entry.name)
    except OSError:
        return []

    # Keep what the user typed in front of the entry name (e.g. '~/' stays '~/')
    typed_dir = partial[: len(partial) - len(prefix)]
    candidates: List[str] = []
    for entry in entries:
        if not entry.name.startswith(prefix):
            continue
        if entry.name.startswith(".") and not prefix.startswith("."):
            continue
        suffix = os.sep if entry.is_dir() else ""
        candidates.append(f"{typed_dir}{entry.name}{suffix}")
    return candidates
