import io
import os
import subprocess
import sys
import types
import pytest
from devshell.cli.developer import DeveloperCommands, SessionExit, build_dispatcher
from devshell.core.models import ActiveModule, DeveloperSettings
from devshell.runtime import delegator as delegator_module
from devshell.runtime import probes


class FakeInputLayer:
    def __init__(self, supports_readline=True):
        self.supports_readline = supports_readline
        self.resets = 0

    def reset_tab_completion(self):
        self.resets += 1


@pytest.fixture
def runs(monkeypatch):
    """Records external program launches; set runs.returncode to simulate failures."""
    class Recorder(list):
        returncode = 0

    calls = Recorder()

    def fake_run(argv, *args, **kwargs):
        calls.append(list(argv))
        return subprocess.CompletedProcess(argv, calls.returncode)

    monkeypatch.setattr(delegator_module.subprocess, "run", fake_run)
    return calls


@pytest.fixture
def consoles(monkeypatch):
    started = []

    class FakeConsole:
        def __init__(self, locals=None):
            self.locals = locals
            self.interact_kwargs = None
            started.append(self)

        def interact(self, **kwargs):
            self.interact_kwargs = kwargs

    monkeypatch.setattr(DeveloperCommands, "console_factory", FakeConsole)
    return started


@pytest.fixture
def fake_ipython(monkeypatch):
    shells = []

    class InteractiveShellEmbed:
        def __init__(self, **kwargs):
            self.kwargs = kwargs
            self.namespace = None
            shells.append(self)

        def __call__(self, local_ns=None):
            self.namespace = local_ns

    module = types.ModuleType(DeveloperCommands.pry_module)
    module.InteractiveShellEmbed = InteractiveShellEmbed
    monkeypatch.setitem(sys.modules, DeveloperCommands.pry_module, module)
    return shells


@pytest.fixture
def library(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "lib").mkdir()
    (tmp_path / "lib" / "a.py").write_text("A = 1\n")
    (tmp_path / "lib" / "b.py").write_text("B = 1\n")
    (tmp_path / "lib" / "notes.txt").write_text("notes\n")
    return tmp_path


def _module(tmp_path, instance=None) -> ActiveModule:
    path = tmp_path / "modules" / "auxiliary" / "scanner.py"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("")
    return ActiveModule(fullname="auxiliary/scanner", file_path=str(path), instance=instance)


# registration

def test_dispatcher_registers_developer_commands(make_host):
    dispatcher = build_dispatcher(make_host())

    assert list(dispatcher.summaries()) == ["irb", "pry", "edit", "reload_lib", "log"]
    assert dispatcher.name == "Developer"
    for name in dispatcher.summaries():
        assert dispatcher.commands.get(name).help_renderer is not None
    assert dispatcher.commands.get("pry").tab_completer is None
    assert dispatcher.commands.get("log").tab_completer is None


# irb

def test_irb_evaluates_expression(make_host, consoles):
    dev = DeveloperCommands(make_host())

    assert dev.cmd_irb(["-e", "1+1"]) == [2]
    assert consoles == []


def test_irb_expressions_share_one_binding(make_host, consoles):
    dev = DeveloperCommands(make_host())

    assert dev.cmd_irb(["-e", "x = 5", "-e", "x * 2"]) == [None, 10]


def test_irb_binding_exposes_framework_and_module(make_host, tmp_path, consoles):
    framework = object()
    module = _module(tmp_path)
    dev = DeveloperCommands(make_host(framework=framework, active_module_accessor=lambda: module))

    assert dev.cmd_irb(["-e", "framework", "-e", "active_module.fullname"]) == [framework, "auxiliary/scanner"]


def test_irb_expression_errors_propagate(make_host, consoles):
    dev = DeveloperCommands(make_host())

    with pytest.raises(ZeroDivisionError):
        dev.cmd_irb(["-e", "1/0"])


def test_irb_starts_session_without_flags(make_host, consoles, capsys):
    framework = object()
    dev = DeveloperCommands(make_host(framework=framework))

    assert dev.cmd_irb([]) is None

    assert len(consoles) == 1
    assert consoles[0].locals["framework"] is framework
    assert consoles[0].interact_kwargs == {"banner": "", "exitmsg": ""}
    assert "[*] Starting Python shell..." in capsys.readouterr().err


def test_irb_session_error_is_reported(make_host, monkeypatch, capsys):
    class ExplodingConsole:
        def __init__(self, locals=None):
            pass

        def interact(self, **kwargs):
            raise RuntimeError("boom")

    monkeypatch.setattr(DeveloperCommands, "console_factory", ExplodingConsole)
    layer = FakeInputLayer()
    dev = DeveloperCommands(make_host(input_layer=layer))

    dev.cmd_irb([])

    err = capsys.readouterr().err
    assert "Error during Python shell: boom" in err
    assert "Traceback" in err
    assert layer.resets == 1


def test_irb_exit_ends_session_quietly(make_host, monkeypatch, capsys):
    class ExitingConsole:
        def __init__(self, locals=None):
            pass

        def interact(self, **kwargs):
            raise SystemExit(0)

    monkeypatch.setattr(DeveloperCommands, "console_factory", ExitingConsole)
    dev = DeveloperCommands(make_host())

    dev.cmd_irb([])

    assert "Error during Python shell" not in capsys.readouterr().err


def test_irb_exit_keeps_console_input_open(make_host, monkeypatch, capsys):
    stdin = io.StringIO("x = 1\nexit()\nafter session\n")
    monkeypatch.setattr(sys, "stdin", stdin)
    dev = DeveloperCommands(make_host())

    dev.cmd_irb([])

    assert not stdin.closed
    assert stdin.readline() == "after session\n"
    assert "Error during Python shell" not in capsys.readouterr().err


def test_irb_session_quit_ends_session(make_host, monkeypatch):
    stdin = io.StringIO("quit()\n")
    monkeypatch.setattr(sys, "stdin", stdin)
    dev = DeveloperCommands(make_host())

    dev.cmd_irb([])

    assert not stdin.closed


def test_session_exit_raises_without_closing_input():
    with pytest.raises(SystemExit) as exc_info:
        SessionExit("exit")(3)

    assert exc_info.value.code == 3
    assert repr(SessionExit("quit")) == "Use quit() or Ctrl-D (i.e. EOF) to exit"


def test_irb_resets_tab_completion_with_readline(make_host, consoles):
    layer = FakeInputLayer(supports_readline=True)
    dev = DeveloperCommands(make_host(input_layer=layer))

    dev.cmd_irb([])

    assert layer.resets == 1


def test_irb_skips_reset_without_readline(make_host, consoles):
    layer = FakeInputLayer(supports_readline=False)
    dev = DeveloperCommands(make_host(input_layer=layer))

    dev.cmd_irb([])

    assert layer.resets == 0


@pytest.mark.parametrize("flag", ["-h", "--help"])
def test_irb_help(make_host, consoles, capsys, flag):
    dev = DeveloperCommands(make_host())

    assert dev.cmd_irb([flag, "-e", "1"]) is None

    out = capsys.readouterr().out
    assert "Usage: irb [-e expression]..." in out
    assert "OPTIONS:" in out
    assert consoles == []


def test_irb_unknown_flag_prints_usage_and_does_nothing(make_host, consoles, capsys):
    dev = DeveloperCommands(make_host())

    assert dev.cmd_irb(["-z"]) is None

    captured = capsys.readouterr()
    assert "[-] Unknown flag: -z" in captured.err
    assert "Usage: irb" in captured.out
    assert consoles == []


def test_irb_missing_expression_value(make_host, consoles, capsys):
    dev = DeveloperCommands(make_host())

    assert dev.cmd_irb(["-e"]) is None

    assert "Missing value for flag: -e" in capsys.readouterr().err
    assert consoles == []


def test_irb_tab_completion(make_host):
    dev = DeveloperCommands(make_host())

    assert dev.cmd_irb_tabs("", ["irb"]) == ["-h", "--help", "-e"]
    assert dev.cmd_irb_tabs("", ["irb", "-e"]) == []


# pry

def test_pry_without_ipython(make_host, monkeypatch, capsys):
    monkeypatch.setitem(sys.modules, DeveloperCommands.pry_module, None)
    dev = DeveloperCommands(make_host())

    dev.cmd_pry([])

    err = capsys.readouterr().err
    assert "[-] Failed to load IPython, try 'pip install ipython'" in err
    assert "Starting IPython shell" not in err


def test_pry_on_framework(make_host, fake_ipython, capsys):
    framework = object()
    dev = DeveloperCommands(make_host(framework=framework))

    dev.cmd_pry([])

    assert len(fake_ipython) == 1
    shell = fake_ipython[0]
    assert shell.namespace["self"] is framework
    assert shell.kwargs == {"banner1": "", "exit_msg": ""}
    err = capsys.readouterr().err
    assert "Starting IPython shell..." in err
    assert 'You are in the "framework" object' in err


def test_pry_on_active_module(make_host, tmp_path, fake_ipython, capsys):
    instance = object()
    module = _module(tmp_path, instance=instance)
    dev = DeveloperCommands(make_host(active_module_accessor=lambda: module))

    dev.cmd_pry([])

    assert fake_ipython[0].namespace["self"] is instance
    assert "You are in auxiliary/scanner" in capsys.readouterr().err


def test_pry_help(make_host, fake_ipython, capsys):
    dev = DeveloperCommands(make_host())

    dev.cmd_pry(["-h"])

    assert "Usage: pry" in capsys.readouterr().out
    assert fake_ipython == []


# edit

def test_edit_with_nothing_to_edit(make_host, runs, capsys):
    dev = DeveloperCommands(make_host())

    dev.cmd_edit([])

    assert runs == []
    assert (
        "[-] Nothing to edit. Try using a module first or specifying a library file to edit."
        in capsys.readouterr().err
    )


def test_edit_library_file_reloads_after_editor(make_host, library, runs, loaded_paths, capsys):
    dev = DeveloperCommands(make_host(developer=DeveloperSettings(LocalEditor="myedit --wait")))
    expected = os.path.abspath("lib/a.py")

    dev.cmd_edit(["lib/a.py"])

    assert runs == [["myedit", "--wait", expected]]
    assert loaded_paths == [expected]
    assert f"Reloading {expected}" in capsys.readouterr().err


def test_edit_expands_home(make_host, library, runs, loaded_paths, monkeypatch):
    monkeypatch.setenv("HOME", str(library))
    dev = DeveloperCommands(make_host(developer=DeveloperSettings(LocalEditor="myedit")))

    dev.cmd_edit(["~/lib/b.py"])

    assert runs == [["myedit", str(library / "lib" / "b.py")]]


def test_edit_non_library_file_is_not_reloaded(make_host, library, runs, loaded_paths, capsys):
    dev = DeveloperCommands(make_host(developer=DeveloperSettings(LocalEditor="myedit")))

    dev.cmd_edit(["lib/notes.txt"])

    assert len(runs) == 1
    assert loaded_paths == []
    assert "must be a .py file" in capsys.readouterr().err


def test_edit_active_module_is_not_reloaded(make_host, tmp_path, runs, loaded_paths, capsys):
    module = _module(tmp_path)
    dev = DeveloperCommands(
        make_host(
            developer=DeveloperSettings(LocalEditor="myedit"),
            active_module_accessor=lambda: module,
        )
    )

    dev.cmd_edit([])

    assert runs == [["myedit", module.file_path]]
    assert loaded_paths == []
    assert "Reloading" not in capsys.readouterr().err


def test_edit_explicit_file_wins_over_active_module(make_host, library, runs, loaded_paths):
    module = _module(library)
    dev = DeveloperCommands(
        make_host(
            developer=DeveloperSettings(LocalEditor="myedit"),
            active_module_accessor=lambda: module,
        )
    )

    dev.cmd_edit(["lib/a.py"])

    assert runs == [["myedit", os.path.abspath("lib/a.py")]]
    assert loaded_paths == [os.path.abspath("lib/a.py")]


def test_edit_falls_back_on_vim(make_host, library, runs, capsys):
    dev = DeveloperCommands(make_host())

    dev.cmd_edit(["lib/a.py"])

    assert runs[0][0] == "vim"
    assert "Falling back on vim." in capsys.readouterr().err


def test_edit_uses_visual_from_environment(make_host, library, runs):
    dev = DeveloperCommands(make_host(environ={"VISUAL": "nano", "EDITOR": "ed"}))

    dev.cmd_edit(["lib/a.py"])

    assert runs[0][0] == "nano"


def test_edit_editor_failure_skips_reload(make_host, library, runs, loaded_paths, capsys):
    runs.returncode = 1
    dev = DeveloperCommands(make_host(developer=DeveloperSettings(LocalEditor="myedit --wait")))

    dev.cmd_edit(["lib/a.py"])

    assert loaded_paths == []
    assert f"Could not execute myedit --wait {os.path.abspath('lib/a.py')}" in capsys.readouterr().err


def test_edit_verbose_announces_launch(make_host, library, runs, capsys):
    dev = DeveloperCommands(make_host(developer=DeveloperSettings(LocalEditor="myedit", VERBOSE=True)))

    dev.cmd_edit(["lib/a.py"])

    assert f"Launching myedit {os.path.abspath('lib/a.py')}" in capsys.readouterr().err


def test_edit_help_names_editor(make_host, runs, capsys):
    dev = DeveloperCommands(make_host(environ={"VISUAL": "nano"}))

    dev.cmd_edit(["-h"])

    out = capsys.readouterr().out
    assert "Usage: edit [file/to/edit]" in out
    assert "a local file with nano." in out
    assert runs == []


def test_edit_tab_completion_lists_files(make_host, library):
    dev = DeveloperCommands(make_host())

    assert dev.cmd_edit_tabs("lib/", ["edit"]) == ["lib/a.py", "lib/b.py", "lib/notes.txt"]


# reload_lib

def test_reload_lib_paths_processed_independently(make_host, library, loaded_paths, capsys):
    dev = DeveloperCommands(make_host())

    dev.cmd_reload_lib(["lib/a.py", "lib/missing.py", "lib/notes.txt", "lib/b.py"])

    assert loaded_paths == ["lib/a.py", "lib/b.py"]
    err = capsys.readouterr().err
    assert "lib/missing.py does not exist" in err
    assert "lib/notes.txt must be a .py file" in err


def test_reload_lib_rejects_framework_modules(make_host, library, loaded_paths, capsys):
    _module(library)
    dev = DeveloperCommands(make_host())

    dev.cmd_reload_lib(["modules/auxiliary/scanner.py", "./modules/auxiliary/scanner.py"])

    assert loaded_paths == []
    assert capsys.readouterr().err.count("Reloading framework modules is not supported (try 'reload')") == 2


@pytest.mark.parametrize("args", [["-a"], ["lib/a.py", "-a"], ["-a", "lib/a.py"], ["--all", "lib/b.py"]])
def test_reload_lib_all_overrides_paths(make_host, library, loaded_paths, monkeypatch, args):
    dev = DeveloperCommands(make_host())
    diff_runs = []
    monkeypatch.setattr(dev.reload_engine, "reload_diff_files", lambda: diff_runs.append(True) or [])

    dev.cmd_reload_lib(args)

    assert diff_runs == [True]
    assert loaded_paths == []


def test_reload_lib_all_without_git(make_host, library, loaded_paths, monkeypatch, capsys):
    monkeypatch.setattr(probes.shutil, "which", lambda name: None)
    dev = DeveloperCommands(make_host())

    dev.cmd_reload_lib(["-a"])

    assert loaded_paths == []
    assert "[-] 'git' is not found." in capsys.readouterr().err


def test_reload_lib_help_stops_processing(make_host, library, loaded_paths, capsys):
    dev = DeveloperCommands(make_host())

    dev.cmd_reload_lib(["-h", "lib/a.py", "-a"])

    out = capsys.readouterr().out
    assert "Usage: reload_lib lib/to/reload.py [...]" in out
    assert "-a, --all" in out
    assert loaded_paths == []


def test_reload_lib_help_renderer(make_host, capsys):
    dev = DeveloperCommands(make_host())

    dev.cmd_reload_lib_help()

    assert "Reload all changed files in your current git working tree." in capsys.readouterr().out


def test_reload_lib_invalid_option(make_host, library, loaded_paths, capsys):
    dev = DeveloperCommands(make_host())

    dev.cmd_reload_lib(["lib/a.py", "--bogus"])

    captured = capsys.readouterr()
    assert "[-] invalid option: --bogus" in captured.err
    assert "Usage: reload_lib" in captured.out
    assert loaded_paths == []


def test_reload_lib_without_arguments_does_nothing(make_host, loaded_paths, capsys):
    dev = DeveloperCommands(make_host())

    dev.cmd_reload_lib([])

    assert loaded_paths == []
    assert capsys.readouterr().err == ""


# log

def test_log_pages_with_less_from_bottom(make_host, runs):
    host = make_host(developer=DeveloperSettings(LocalPager="less -R"))
    dev = DeveloperCommands(host)

    dev.cmd_log([])

    assert runs == [["less", "-R", "+G", str(host.settings.log_file)]]


def test_log_other_pager_has_no_jump_flag(make_host, runs):
    host = make_host(environ={"PAGER": "more"})
    dev = DeveloperCommands(host)

    dev.cmd_log([])

    assert runs == [["more", str(host.settings.log_file)]]


def test_log_falls_back_on_tail(make_host, runs, capsys):
    host = make_host()
    dev = DeveloperCommands(host)

    dev.cmd_log([])

    assert runs == [["tail", "-n", "24", str(host.settings.log_file)]]
    assert "LocalPager or $PAGER/$MANPAGER should be set. Falling back on tail -n 24." in capsys.readouterr().err


def test_log_pager_failure(make_host, runs, capsys):
    runs.returncode = 2
    host = make_host(environ={"PAGER": "more"})
    dev = DeveloperCommands(host)

    dev.cmd_log([])

    assert f"Could not execute more {host.settings.log_file}" in capsys.readouterr().err


def test_log_help_shows_location(make_host, runs, capsys):
    host = make_host()
    dev = DeveloperCommands(host)

    dev.cmd_log(["--help"])

    out = capsys.readouterr().out
    assert "Usage: log" in out
    assert f"Log location: {host.settings.log_file}" in out
    assert runs == []
