"""
Developer commands for the host console.

Five commands, each with a help renderer and, where useful, a tab completer:

- ``irb``        interactive Python shell (or ``-e`` expressions) bound to the host
- ``pry``        IPython shell on the active module or the framework object
- ``edit``       open the active module or a file in the preferred editor
- ``reload_lib`` reload library files by path, or every file changed in git
- ``log``        page the framework log from the bottom
"""

from __future__ import annotations

import code
import importlib
import os
import sys
from typing import Any, Dict, List, Optional

from devshell.cli.formatter import OutputFormatter
from devshell.core.context import HostContext
from devshell.core.models import Command, ParseStatus, ToolRole
from devshell.execution.arguments import HELP_FLAGS, FlagSpec, FlagTable, OrderedOptions
from devshell.execution.dispatcher import CommandDispatcher, complete_filenames
from devshell.runtime.delegator import SubprocessDelegator, resolve_tool
from devshell.runtime.reload_engine import FileReloadEngine
from devshell.utils.diagnostics import DevShellError, PreconditionError, PreconditionKind

IRB_OPTS = FlagTable(
    [
        FlagSpec(flag="-h", description="Help banner.", is_help=True),
        FlagSpec(flag="--help", description="Help banner.", is_help=True),
        FlagSpec(flag="-e", description="Expression to evaluate.", takes_value=True),
    ]
)


class SessionExit:
    """
    'exit' and 'quit' inside an irb session.

    Raises SystemExit without closing sys.stdin, unlike the site builtins; the
    host console keeps reading from it after the session ends.
    """

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"Use {self.name}() or Ctrl-D (i.e. EOF) to exit"

    def __call__(self, code: Any = None) -> None:
        raise SystemExit(code)


class DeveloperCommands:
    """
    Handlers behind the developer commands.

    Everything about the running host is read through ``host``; the class keeps
    no state between invocations.
    """

    # IPython's embeddable shell; optional dependency
    pry_module = "IPython.terminal.embed"
    console_factory = code.InteractiveConsole

    def __init__(self, host: HostContext):
        self.host = host
        self.reload_engine = FileReloadEngine(host)

    @property
    def name(self) -> str:
        return "Developer"

    def commands(self) -> Dict[str, str]:
        return {
            "irb": "Drop into an interactive Python shell",
            "pry": "Open an IPython session on the current module or framework",
            "edit": "Edit the current module or a file with the preferred editor",
            "reload_lib": "Reload one or more library files from specified paths",
            "log": "Display framework.log starting at the bottom if possible",
        }

    def build_commands(self) -> List[Command]:
        summaries = self.commands()
        return [
            Command(
                name=name,
                summary=summaries[name],
                handler=getattr(self, f"cmd_{name}"),
                tab_completer=getattr(self, f"cmd_{name}_tabs", None),
                help_renderer=getattr(self, f"cmd_{name}_help"),
            )
            for name in summaries
        ]

    def delegator(self) -> SubprocessDelegator:
        # Resolved per invocation: settings and environment may change between commands
        return SubprocessDelegator(self.host.developer, self.host.environment())

    # irb

    def cmd_irb_help(self) -> None:
        OutputFormatter.print_line("Usage: irb [-e expression]...")
        OutputFormatter.print_line()
        OutputFormatter.print_line("Execute commands in a Python environment bound to the console.")
        OutputFormatter.print_text(IRB_OPTS.usage())

    def cmd_irb(self, args: List[str]) -> Any:
        """Start an interactive Python shell, or evaluate each ``-e`` expression in order."""
        outcome = IRB_OPTS.parse(args)
        if outcome.status == ParseStatus.HELP:
            self.cmd_irb_help()
            return None
        if outcome.status == ParseStatus.ERROR:
            OutputFormatter.log(outcome.message or "Invalid arguments", severity="error")
            self.cmd_irb_help()
            return None

        expressions = outcome.invocation.values("-e")
        namespace = self.host.binding()

        if expressions:
            return [self._evaluate(expression, namespace) for expression in expressions]

        OutputFormatter.log("Starting Python shell...", severity="info")
        namespace["exit"] = SessionExit("exit")
        namespace["quit"] = SessionExit("quit")
        try:
            console = self.console_factory(locals=namespace)
            console.interact(banner="", exitmsg="")
        except SystemExit:
            pass
        except Exception as exc:
            OutputFormatter.log(f"Error during Python shell: {exc}", severity="error")
            OutputFormatter.print_backtrace(*sys.exc_info())

        # Completions from the sub-session must not leak into the console
        if self.host.supports_readline():
            self.host.input_layer.reset_tab_completion()
        return None

    def _evaluate(self, expression: str, namespace: Dict[str, Any]) -> Any:
        try:
            compiled = compile(expression, "<irb -e>", "eval")
        except SyntaxError:
            exec(compile(expression, "<irb -e>", "exec"), namespace)
            return None
        return eval(compiled, namespace)

    def cmd_irb_tabs(self, partial: str, words: List[str]) -> List[str]:
        if len(words) > 1:
            return []
        return IRB_OPTS.flag_names()

    # pry

    def cmd_pry_help(self) -> None:
        OutputFormatter.print_line("Usage: pry")
        OutputFormatter.print_line()
        OutputFormatter.print_line("Open an IPython session on the current module or framework.")
        OutputFormatter.print_line()

    def cmd_pry(self, args: List[str]) -> None:
        if any(arg in HELP_FLAGS for arg in args):
            self.cmd_pry_help()
            return

        try:
            embed = importlib.import_module(self.pry_module)
        except ImportError:
            OutputFormatter.log("Failed to load IPython, try 'pip install ipython'", severity="error")
            return

        OutputFormatter.log("Starting IPython shell...", severity="info")

        namespace = self.host.binding()
        module = self.host.active_module()
        if module is None:
            OutputFormatter.log('You are in the "framework" object', severity="info")
            namespace["self"] = self.host.framework
        else:
            OutputFormatter.log(f"You are in {module.fullname}", severity="info")
            namespace["self"] = module.instance if module.instance is not None else module

        shell = embed.InteractiveShellEmbed(banner1="", exit_msg="")
        shell(local_ns=namespace)

    # edit

    def cmd_edit_help(self) -> None:
        editor = self.delegator_program(ToolRole.EDITOR)
        OutputFormatter.print_line("Usage: edit [file/to/edit]")
        OutputFormatter.print_line()
        OutputFormatter.print_line(f"Edit the currently active module or a local file with {editor}.")
        OutputFormatter.print_line("If a library file is specified, it will automatically be reloaded after editing.")
        OutputFormatter.print_line("Otherwise, you can reload the active module with 'reload' or 'rerun'.")
        OutputFormatter.print_line()

    def delegator_program(self, role: ToolRole) -> str:
        return resolve_tool(role, self.host.developer, self.host.environment()).program

    def cmd_edit(self, args: List[str]) -> None:
        """Open a file (or the active module) in the editor; reload library files afterwards."""
        if args and args[0] in HELP_FLAGS:
            self.cmd_edit_help()
            return

        try:
            path, editing_module = self._edit_target(args)
            delegator = self.delegator()
            editor = delegator.choose(ToolRole.EDITOR)
            delegator.launch(editor, path)
        except DevShellError as exc:
            OutputFormatter.log(str(exc), severity="error")
            return

        if editing_module:
            return

        self.reload_engine.reload_file(path)

    def _edit_target(self, args: List[str]) -> tuple[str, bool]:
        if args:
            return os.path.abspath(os.path.expanduser(args[0])), False

        module = self.host.active_module()
        if module is not None:
            return module.file_path, True

        raise PreconditionError(
            "Nothing to edit. Try using a module first or specifying a library file to edit.",
            PreconditionKind.NOTHING_TO_EDIT,
        )

    def cmd_edit_tabs(self, partial: str, words: List[str]) -> List[str]:
        return complete_filenames(partial, words)

    # reload_lib

    def _reload_lib_options(self) -> OrderedOptions:
        opts = OrderedOptions(
            banner="Usage: reload_lib lib/to/reload.py [...]",
            description="Reload one or more library files from specified paths.",
        )

        def show_help() -> Optional[ParseStatus]:
            OutputFormatter.print_text(opts.help())
            return ParseStatus.HELP

        def reload_all() -> Optional[ParseStatus]:
            self.reload_engine.reload_diff_files()
            return ParseStatus.HANDLED

        opts.on("-h", "--help", "Help banner.", show_help)
        opts.on("-a", "--all", "Reload all changed files in your current git working tree.", reload_all)
        return opts

    def cmd_reload_lib_help(self) -> None:
        self.cmd_reload_lib(["-h"])

    def cmd_reload_lib(self, args: List[str]) -> None:
        """Reload each path given; ``-a`` reloads the git working tree's changes instead."""
        opts = self._reload_lib_options()
        outcome = opts.parse(args)

        if outcome.status == ParseStatus.ERROR:
            OutputFormatter.log(outcome.message or "Invalid arguments", severity="error")
            OutputFormatter.print_text(opts.help())
            return
        if not outcome.should_run:
            return

        self.reload_engine.reload_paths(outcome.invocation.positionals)

    def cmd_reload_lib_tabs(self, partial: str, words: List[str]) -> List[str]:
        return complete_filenames(partial, words)

    # log

    def cmd_log_help(self) -> None:
        OutputFormatter.print_line("Usage: log")
        OutputFormatter.print_line()
        OutputFormatter.print_line("Display framework.log starting at the bottom if possible.")
        OutputFormatter.print_line("For full effect, set log_level to DEBUG before running modules.")
        OutputFormatter.print_line()
        OutputFormatter.print_line(f"Log location: {self.host.settings.log_file}")
        OutputFormatter.print_line()

    def cmd_log(self, args: List[str]) -> None:
        if any(arg in HELP_FLAGS for arg in args):
            self.cmd_log_help()
            return

        path = str(self.host.settings.log_file)
        try:
            delegator = self.delegator()
            pager = delegator.choose(ToolRole.PAGER)
            delegator.launch(pager, path)
        except DevShellError as exc:
            OutputFormatter.log(str(exc), severity="error")


def build_dispatcher(host: HostContext) -> CommandDispatcher:
    """Dispatcher with the developer commands registered against ``host``."""
    developer = DeveloperCommands(host)
    dispatcher = CommandDispatcher(name=developer.name)
    dispatcher.register_all(developer.build_commands())
    return dispatcher
