import shlex
import typer
from pathlib import Path
from typing import List, Optional

from devshell.cli.formatter import OutputFormatter
from devshell.cli.repl import DevShellREPL
from devshell.execution.dispatcher import DispatchStatus
from devshell.utils.logfile import configure_file_logging

app = typer.Typer(name="devshell", help="devshell developer console", rich_markup_mode=None)


@app.command()
def repl(
    root: Path = typer.Option(Path("."), "--root", "-r", help="Install root of the framework."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to devshell.yaml."),
):
    """
    Start the interactive developer console.
    """
    DevShellREPL(root, config_path=config).start()


@app.command(context_settings={"ignore_unknown_options": True})
def run(
    command: List[str] = typer.Argument(..., help="Command name followed by its arguments."),
    root: Path = typer.Option(Path("."), "--root", "-r", help="Install root of the framework."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to devshell.yaml."),
):
    """
    Run one developer command (e.g. `devshell run -- reload_lib -a`) and exit.
    """
    console = DevShellREPL(root, config_path=config)
    configure_file_logging(console.settings)
    line = shlex.join(command)
    result = console.dispatcher.dispatch(line)

    if result.status == DispatchStatus.UNKNOWN:
        OutputFormatter.log(f"Unknown command: {result.command}.", severity="error")
        raise typer.Exit(code=1)
    if result.status == DispatchStatus.INVALID:
        OutputFormatter.log(result.message or "Invalid arguments.", severity="error")
        raise typer.Exit(code=1)
    if result.status == DispatchStatus.EMPTY:
        raise typer.Exit(code=1)


@app.command()
def commands(
    root: Path = typer.Option(Path("."), "--root", "-r", help="Install root of the framework."),
):
    """
    List the developer commands and what they do.
    """
    console = DevShellREPL(root)
    for name, summary in console.dispatcher.summaries().items():
        typer.echo(f"  {name:<12} {summary}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
