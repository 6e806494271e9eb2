import traceback
import typer
from types import TracebackType
from typing import Dict, Optional, Type
from rich.console import Console
from rich.markup import escape

# Create a stderr console for status lines
error_console = Console(stderr=True, soft_wrap=True)

SEVERITY_STYLES: Dict[str, str] = {
    "info": "blue",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "critical": "bold red",
}

SEVERITY_PREFIXES: Dict[str, str] = {
    "info": "[*]",
    "success": "[+]",
    "warning": "[!]",
    "error": "[-]",
    "critical": "[-]",
}

class OutputFormatter:
    """
    Handles output formatting for the console commands.
    Status, warning and error lines go to stderr; help and usage text to stdout.
    """

    @staticmethod
    def log(message: str, severity: str = "info") -> None:
        """
        Print one status line to stderr with color coding.
        """
        style = SEVERITY_STYLES.get(severity, "white")
        prefix = SEVERITY_PREFIXES.get(severity, "[*]")
        error_console.print(f"[{style}]{escape(prefix)} {escape(message)}[/{style}]")

    @staticmethod
    def print_line(text: str = "") -> None:
        typer.echo(text)

    @staticmethod
    def print_text(text: str) -> None:
        """Print text to stdout without adding a trailing newline."""
        typer.echo(text, nl=False)

    @staticmethod
    def print_backtrace(
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        lines = traceback.format_exception(exc_type, exc, tb)
        error_console.print(escape("".join(lines).rstrip("\n")), highlight=False)
