from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FrameworkSettings(BaseSettings):
    """
    Host framework settings (the 'framework' section in devshell.yaml).
    """
    model_config = SettingsConfigDict(env_prefix='DEVSHELL_', extra='ignore')

    install_root: Path = Field(default_factory=Path.cwd)
    log_directory: Path = Path.home() / ".devshell" / "logs"
    log_file_name: str = "framework.log"
    log_level: str = "INFO"
    modules_dir: str = "modules"
    source_extension: str = ".py"

    @property
    def log_file(self) -> Path:
        return Path(self.log_directory).expanduser() / self.log_file_name


class DeveloperSettings(BaseModel):
    """
    Session datastore keys read by the developer commands (the 'developer' section).

    Keys keep their console spelling (``LocalEditor``, ``LocalPager``, ``VERBOSE``);
    the snake_case field names are accepted too.
    """
    model_config = ConfigDict(extra='ignore', populate_by_name=True, frozen=True)

    local_editor: Optional[str] = Field(default=None, alias="LocalEditor")
    local_pager: Optional[str] = Field(default=None, alias="LocalPager")
    verbose: bool = Field(default=False, alias="VERBOSE")

    @field_validator("local_editor", "local_pager", mode="before")
    @classmethod
    def _blank_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ActiveModule(BaseModel):
    """The unit of work currently selected in the host console."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    fullname: str
    file_path: str
    instance: Any = None


class ToolRole(str, Enum):
    EDITOR = "editor"
    PAGER = "pager"


class ToolSource(str, Enum):
    """Where an external program choice came from, in precedence order."""

    EXPLICIT_CONFIG = "explicit_config"
    ENV_PRIMARY = "env_primary"
    ENV_SECONDARY = "env_secondary"
    BUILTIN_FALLBACK = "builtin_fallback"


class ExternalToolChoice(BaseModel):
    """
    A resolved editor or pager.

    ``arguments`` is the argv prefix: the program string split on whitespace plus
    any role-specific flag. The target path is appended at launch time.
    """
    model_config = ConfigDict(frozen=True)

    role: ToolRole
    source: ToolSource
    program: str
    arguments: List[str]

    @field_validator("program")
    @classmethod
    def _program_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("External program cannot be empty.")
        return value

    @property
    def command_line(self) -> str:
        return " ".join(self.arguments)

    @property
    def is_fallback(self) -> bool:
        return self.source == ToolSource.BUILTIN_FALLBACK


class ReloadIneligibility(str, Enum):
    NOT_FOUND = "not_found"
    WRONG_EXTENSION = "wrong_extension"
    FRAMEWORK_MODULE = "framework_module"


class ReloadCandidate(BaseModel):
    """Eligibility verdict for one path; derived at reload time, never persisted."""

    path: str
    eligible: bool
    reason: Optional[ReloadIneligibility] = None
    message: Optional[str] = None


class ParseStatus(str, Enum):
    RUN = "run"
    HELP = "help"
    HANDLED = "handled"
    ERROR = "error"


class ParsedInvocation(BaseModel):
    """Flags and positionals of one command invocation."""

    flags: Dict[str, Union[bool, List[str]]] = Field(default_factory=dict)
    positionals: List[str] = Field(default_factory=list)

    def values(self, flag: str) -> List[str]:
        value = self.flags.get(flag)
        if isinstance(value, list):
            return list(value)
        return []

    def has(self, flag: str) -> bool:
        return flag in self.flags


class ParseOutcome(BaseModel):
    status: ParseStatus
    invocation: ParsedInvocation = Field(default_factory=ParsedInvocation)
    message: Optional[str] = None

    @property
    def should_run(self) -> bool:
        return self.status == ParseStatus.RUN


@dataclass(frozen=True)
class Command:
    """One named console command. Registered once, immutable afterwards."""

    name: str
    summary: str
    handler: Callable[[List[str]], Any]
    tab_completer: Optional[Callable[[str, List[str]], List[str]]] = None
    help_renderer: Optional[Callable[[], None]] = None
