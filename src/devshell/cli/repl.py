import os
import sys
import typer
from pathlib import Path
from typing import Iterable, List, Optional
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion

from devshell.cli.developer import build_dispatcher
from devshell.cli.formatter import OutputFormatter
from devshell.config.loader import find_config, load_config
from devshell.core.context import HostContext
from devshell.core.models import ActiveModule, FrameworkSettings
from devshell.execution.dispatcher import CommandDispatcher, DispatchStatus
from devshell.utils.logfile import configure_file_logging

BUILTIN_COMMANDS = [
    ("help", "Lists available commands, or shows help for one command."),
    ("use", "Selects a module file as the active unit of work."),
    ("back", "Clears the active module."),
    ("quit", "Exits the console."),
]


class DispatcherCompleter(Completer):
    """Completes console command names, then defers to the command's own completer."""

    def __init__(self, dispatcher: CommandDispatcher):
        self.dispatcher = dispatcher

    def command_names(self) -> dict:
        names = {name: desc for name, desc in BUILTIN_COMMANDS}
        names.update(self.dispatcher.summaries())
        return names

    def get_completions(self, document, complete_event) -> Iterable[Completion]:
        text = document.text_before_cursor
        words = text.split()

        if not words or (len(words) == 1 and not text.endswith(" ")):
            partial = words[0] if words else ""
            for name, description in self.command_names().items():
                if name.startswith(partial):
                    yield Completion(name, start_position=-len(partial), display_meta=description)
            return

        if text.endswith(" "):
            partial, prior_words = "", words
        else:
            partial, prior_words = words[-1], words[:-1]

        for candidate in self.dispatcher.tab_complete(words[0], partial, prior_words):
            yield Completion(candidate, start_position=-len(partial))


class PromptInputLayer:
    """Line-editing input backed by prompt_toolkit when attached to a terminal."""

    def __init__(self, session: Optional[PromptSession], dispatcher: CommandDispatcher):
        self.session = session
        self.dispatcher = dispatcher

    @property
    def supports_readline(self) -> bool:
        return self.session is not None

    def reset_tab_completion(self) -> None:
        if self.session is not None:
            self.session.completer = DispatcherCompleter(self.dispatcher)

        # An interactive sub-session may have installed rlcompleter on stdlib readline
        readline = sys.modules.get("readline")
        if readline is not None:
            readline.set_completer(None)

    def read_line(self, prompt: str) -> str:
        if self.session is not None:
            return self.session.prompt(f"{prompt} ")
        return typer.prompt(prompt, prompt_suffix=" ", default="", show_default=False)


class DevShellREPL:
    def __init__(self, root_dir: Path, config_path: Optional[Path] = None):
        self.root_dir = root_dir
        self.config_path = config_path or find_config(root_dir)

        config_data = load_config(self.config_path)
        framework_section = dict(config_data.get("framework", {}))
        # The console's root is the install root unless the config says otherwise
        if "install_root" not in framework_section and "DEVSHELL_INSTALL_ROOT" not in os.environ:
            framework_section["install_root"] = str(self.root_dir.expanduser().resolve())
        config_data["framework"] = framework_section

        self.active: Optional[ActiveModule] = None
        self.host = HostContext.from_config(
            config_data,
            framework=self,
            active_module_accessor=lambda: self.active,
        )
        self.dispatcher = build_dispatcher(self.host)

        prompt_session = PromptSession(completer=DispatcherCompleter(self.dispatcher)) if sys.stdin.isatty() else None
        self.input_layer = PromptInputLayer(prompt_session, self.dispatcher)
        self.host.input_layer = self.input_layer

    @property
    def settings(self) -> FrameworkSettings:
        return self.host.settings

    def start(self) -> None:
        log_file = configure_file_logging(self.settings)
        if log_file is None:
            OutputFormatter.log(f"Unable to open log file under {self.settings.log_directory}.", severity="warning")
        OutputFormatter.log("devshell console. Type 'help' for commands or 'quit' to exit.", severity="info")

        while True:
            if sys.stdin is None or sys.stdin.closed:
                OutputFormatter.log("Input closed. Exiting...", severity="info")
                break

            try:
                command_line = self.input_layer.read_line(self.prompt())

                if not command_line:
                    continue

                if not self.handle_line(command_line.strip()):
                    break

            except (KeyboardInterrupt, EOFError, typer.Abort):
                OutputFormatter.log("Exiting...", severity="info")
                break
            except Exception as e:
                OutputFormatter.log(f"System Error: {e}", severity="critical")

    def prompt(self) -> str:
        if self.active is None:
            return "devshell >"
        return f"devshell ({self.active.fullname}) >"

    def handle_line(self, line: str) -> bool:
        """
        Processes one console line.
        Returns False to signal console exit, True to continue.
        """
        parts = line.split(None, 1)
        if not parts:
            return True

        cmd = parts[0]
        args = parts[1].split() if len(parts) > 1 else []

        if cmd in ("quit", "exit"):
            OutputFormatter.log("Exiting devshell console.", severity="info")
            return False
        if cmd == "help":
            return self._cmd_help(args)
        if cmd == "use":
            return self._cmd_use(args)
        if cmd == "back":
            return self._cmd_back(args)

        result = self.dispatcher.dispatch(line)
        if result.status == DispatchStatus.UNKNOWN:
            OutputFormatter.log(f"Unknown command: {cmd}. Type 'help' for options.", severity="error")
        elif result.status == DispatchStatus.INVALID:
            OutputFormatter.log(result.message or "Invalid arguments.", severity="error")
        return True

    def _cmd_help(self, args: List[str]) -> bool:
        if args:
            if not self.dispatcher.help(args[0]):
                OutputFormatter.log(f"No help for '{args[0]}'.", severity="warning")
            return True

        OutputFormatter.log("Core Commands:", severity="info")
        for name, desc in BUILTIN_COMMANDS:
            typer.echo(f"  {name:<12} {desc}")
        typer.echo("")
        OutputFormatter.log(f"{self.dispatcher.name} Commands:", severity="info")
        for name, desc in self.dispatcher.summaries().items():
            typer.echo(f"  {name:<12} {desc}")
        typer.echo("")
        return True

    def _cmd_use(self, args: List[str]) -> bool:
        if not args:
            OutputFormatter.log("Usage: use <path/to/module.py>", severity="error")
            return True

        path = Path(args[0]).expanduser()
        if not path.is_file():
            OutputFormatter.log(f"Module file '{path}' not found.", severity="error")
            return True

        self.active = ActiveModule(fullname=args[0].removesuffix(path.suffix), file_path=str(path.resolve()))
        OutputFormatter.log(f"Using {self.active.fullname}", severity="success")
        return True

    def _cmd_back(self, args: List[str]) -> bool:
        self.active = None
        return True
