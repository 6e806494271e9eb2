"""Runtime collaborators of the developer commands: environment probes, external tools, source loading."""

from devshell.runtime.delegator import SubprocessDelegator, resolve_tool, split_program
from devshell.runtime.probes import is_version_controlled_install, require_git, tool_available
from devshell.runtime.source_loader import SourceLoader

__all__ = [
	"SourceLoader",
	"SubprocessDelegator",
	"is_version_controlled_install",
	"require_git",
	"resolve_tool",
	"split_program",
	"tool_available",
]
