import os
from typing import Any, Callable, Dict, Mapping, Optional
from pydantic import BaseModel, ConfigDict, Field
from devshell.core.models import ActiveModule, DeveloperSettings, FrameworkSettings
from devshell.runtime.source_loader import SourceLoader


def _no_active_module() -> Optional[ActiveModule]:
    return None


class HostContext(BaseModel):
    """
    Read-only view of the host console injected into the developer commands.

    The commands never hold global state; everything they consult about the
    running host (settings, selected module, input layer, loading primitive,
    process environment) comes through this object.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    # Framework Settings (Maps to 'framework' section)
    settings: FrameworkSettings = Field(default_factory=FrameworkSettings)

    # Session datastore (Maps to 'developer' section)
    developer: DeveloperSettings = Field(default_factory=DeveloperSettings)

    # The framework-wide object sessions bind to when nothing is selected
    framework: Any = None

    # Accessor for the currently selected unit of work
    active_module_accessor: Callable[[], Optional[ActiveModule]] = _no_active_module

    input_layer: Optional[Any] = None

    # Host source-loading primitive: "load this file into the running process"
    load_source: Callable[[str], Any] = Field(default_factory=lambda: SourceLoader().load)

    # Process environment; None means os.environ at lookup time
    environ: Optional[Mapping[str, str]] = None

    @classmethod
    def from_config(cls, config_dict: Optional[Dict[str, Any]] = None, **data: Any) -> "HostContext":
        """
        Build a context from a loaded devshell.yaml dict, letting explicit keyword
        arguments win over the file.
        """
        config_dict = config_dict or {}
        if 'settings' not in data:
            data['settings'] = FrameworkSettings(**config_dict.get('framework', {}))
        if 'developer' not in data:
            data['developer'] = DeveloperSettings(**config_dict.get('developer', {}))
        return cls(**data)

    def active_module(self) -> Optional[ActiveModule]:
        return self.active_module_accessor()

    def environment(self) -> Mapping[str, str]:
        return self.environ if self.environ is not None else os.environ

    def supports_readline(self) -> bool:
        return bool(getattr(self.input_layer, "supports_readline", False))

    def binding(self) -> Dict[str, Any]:
        """Namespace an interactive session or -e expression runs against."""
        module = self.active_module()
        return {
            "__name__": "__devshell__",
            "framework": self.framework,
            "active_module": module,
            "host": self,
            "settings": self.settings,
        }
