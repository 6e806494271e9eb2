from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from devshell.cli.formatter import OutputFormatter
from devshell.core.models import DeveloperSettings, ExternalToolChoice, ToolRole, ToolSource
from devshell.utils.diagnostics import DelegationError

logger = logging.getLogger(__name__)

# Pager whose name triggers the "start at end of file" flag
JUMP_TO_END_PAGER = "less"
JUMP_TO_END_FLAG = "+G"


@dataclass(frozen=True)
class RoleSources:
    """Configuration key, environment variables and fallback for one tool role."""

    config_key: str
    primary_env: str
    secondary_env: str
    fallback: str


ROLE_SOURCES: Dict[ToolRole, RoleSources] = {
    ToolRole.EDITOR: RoleSources(
        config_key="LocalEditor",
        primary_env="VISUAL",
        secondary_env="EDITOR",
        fallback="vim",
    ),
    ToolRole.PAGER: RoleSources(
        config_key="LocalPager",
        primary_env="PAGER",
        secondary_env="MANPAGER",
        fallback="tail -n 24",
    ),
}


def split_program(program: str) -> List[str]:
    """Split a configured program string on whitespace; no shell quoting or expansion."""
    return program.split()


def _configured_value(settings: DeveloperSettings, role: ToolRole) -> Optional[str]:
    if role == ToolRole.EDITOR:
        return settings.local_editor
    return settings.local_pager


def _env_value(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(name)
    if value is None or not value.strip():
        return None
    return value


def resolve_tool(role: ToolRole, settings: DeveloperSettings, environ: Mapping[str, str]) -> ExternalToolChoice:
    """
    Pick the program for ``role``: session config, then the primary and secondary
    environment variables, then the built-in fallback. Never returns an empty program.
    """
    sources = ROLE_SOURCES[role]
    candidates = [
        (ToolSource.EXPLICIT_CONFIG, _configured_value(settings, role)),
        (ToolSource.ENV_PRIMARY, _env_value(environ, sources.primary_env)),
        (ToolSource.ENV_SECONDARY, _env_value(environ, sources.secondary_env)),
        (ToolSource.BUILTIN_FALLBACK, sources.fallback),
    ]

    for source, program in candidates:
        if not program or not split_program(program):
            continue

        arguments = split_program(program)
        # +G isn't portable and may hang on very large files
        if role == ToolRole.PAGER and JUMP_TO_END_PAGER in program:
            arguments.append(JUMP_TO_END_FLAG)

        return ExternalToolChoice(role=role, source=source, program=program, arguments=arguments)

    raise AssertionError(f"No fallback program configured for {role.value}")


def fallback_warning(role: ToolRole) -> str:
    sources = ROLE_SOURCES[role]
    return (
        f"{sources.config_key} or ${sources.primary_env}/${sources.secondary_env} should be set. "
        f"Falling back on {sources.fallback}."
    )


class SubprocessDelegator:
    """Resolves and runs the external editor or pager for a command."""

    def __init__(self, settings: DeveloperSettings, environ: Mapping[str, str]):
        self.settings = settings
        self.environ = environ

    def choose(self, role: ToolRole) -> ExternalToolChoice:
        """Resolve the program for ``role``, warning once when the built-in fallback is used."""
        choice = resolve_tool(role, self.settings, self.environ)
        if choice.is_fallback:
            OutputFormatter.log(fallback_warning(role), severity="warning")
        return choice

    def launch(self, choice: ExternalToolChoice, path: str) -> None:
        """
        Run the chosen program on ``path`` with the console's stdin/stdout/stderr and
        block until it exits.

        Raises DelegationError when the program cannot be started, exits non-zero
        or is killed by a signal.
        """
        argv = [*choice.arguments, path]
        command_line = f"{choice.command_line} {path}"

        if self.settings.verbose:
            OutputFormatter.log(f"Launching {command_line}", severity="info")
        logger.debug("Launching %s", argv)

        try:
            completed = subprocess.run(argv)
        except OSError as exc:
            logger.debug("Could not start %s: %s", argv[0], exc)
            raise DelegationError(command_line) from exc

        if completed.returncode != 0:
            raise DelegationError(command_line, returncode=completed.returncode)
