from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import List, Sequence

from devshell.cli.formatter import OutputFormatter
from devshell.core.context import HostContext
from devshell.core.models import ReloadCandidate, ReloadIneligibility
from devshell.runtime.probes import require_git
from devshell.utils.diagnostics import DelegationError, DevShellError

logger = logging.getLogger(__name__)

GIT_DIFF_COMMAND: Sequence[str] = ("git", "diff", "--name-only")


class FileReloadEngine:
    """Decides which library files may be reloaded and hands them to the host loading primitive."""

    def __init__(self, host: HostContext):
        self.host = host

    @property
    def source_extension(self) -> str:
        return self.host.settings.source_extension

    def module_path_pattern(self) -> re.Pattern:
        """Matches paths under the modules directory, with or without a leading './'."""
        modules_dir = self.host.settings.modules_dir.strip("/")
        return re.compile(rf"^(?:\./)?{re.escape(modules_dir)}/")

    def check(self, path: str) -> ReloadCandidate:
        """Classify one path as reloadable or not, with the reason when it is not."""
        if not Path(path).exists():
            return ReloadCandidate(
                path=path,
                eligible=False,
                reason=ReloadIneligibility.NOT_FOUND,
                message=f"{path} does not exist",
            )

        if not path.endswith(self.source_extension):
            return ReloadCandidate(
                path=path,
                eligible=False,
                reason=ReloadIneligibility.WRONG_EXTENSION,
                message=f"{path} must be a {self.source_extension} file",
            )

        # Framework modules have their own reload path in the host
        if self.module_path_pattern().match(path):
            return ReloadCandidate(
                path=path,
                eligible=False,
                reason=ReloadIneligibility.FRAMEWORK_MODULE,
                message="Reloading framework modules is not supported (try 'reload')",
            )

        return ReloadCandidate(path=path, eligible=True)

    def is_reload_eligible(self, path: str) -> bool:
        return self.check(path).eligible

    def reload_file(self, path: str) -> ReloadCandidate:
        """
        Reload one library file through the host loading primitive.

        Ineligible paths are reported and skipped. Errors raised while loading
        propagate to the caller.
        """
        candidate = self.check(path)
        if not candidate.eligible:
            OutputFormatter.log(candidate.message or f"Cannot reload {path}", severity="error")
            return candidate

        OutputFormatter.log(f"Reloading {path}", severity="info")
        logger.info("Reloading library file %s", path)
        self.host.load_source(path)
        return candidate

    def reload_paths(self, paths: Sequence[str]) -> List[ReloadCandidate]:
        """Reload each path in order; an ineligible path does not stop the others."""
        return [self.reload_file(path) for path in paths]

    def reload_diff_files(self) -> List[ReloadCandidate]:
        """Reload every file git reports as changed in the install's working tree."""
        try:
            require_git(self.host.settings.install_root)
            output = self.changed_files_output()
        except DevShellError as exc:
            OutputFormatter.log(str(exc), severity="error")
            return []

        files = [line for line in output.splitlines() if line.strip()]
        logger.debug("git reported %d changed file(s)", len(files))
        return self.reload_paths(files)

    def changed_files_output(self) -> str:
        """
        Run ``git diff --name-only`` and return its output.

        A non-zero exit raises DevShellError carrying the combined stdout/stderr verbatim.
        """
        try:
            completed = subprocess.run(
                list(GIT_DIFF_COMMAND),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="surrogateescape",
            )
        except OSError as exc:
            raise DelegationError(" ".join(GIT_DIFF_COMMAND)) from exc

        if completed.returncode != 0:
            raise DevShellError(completed.stdout or "")

        return completed.stdout or ""
