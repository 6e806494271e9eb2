"""Developer commands for an interactive host console: scripting shells, editor and pager delegation, library reload."""

from devshell.core.context import HostContext
from devshell.core.models import ActiveModule, Command, DeveloperSettings, FrameworkSettings
from devshell.execution.dispatcher import CommandDispatcher, DispatchResult, DispatchStatus

__version__ = "0.1.0"

__all__ = [
	"ActiveModule",
	"Command",
	"CommandDispatcher",
	"DeveloperSettings",
	"DispatchResult",
	"DispatchStatus",
	"FrameworkSettings",
	"HostContext",
]
