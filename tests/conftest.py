import pytest
import sys
from pathlib import Path

# Ensure src/ is in the python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from devshell.core.context import HostContext
from devshell.core.models import DeveloperSettings, FrameworkSettings


@pytest.fixture(autouse=True)
def isolated_log_directory(tmp_path, monkeypatch):
    """Keep the framework log inside the test's temporary directory."""
    log_dir = tmp_path / "logs"
    monkeypatch.setenv("DEVSHELL_LOG_DIRECTORY", str(log_dir))
    return log_dir


@pytest.fixture
def loaded_paths():
    """Records every path handed to the host loading primitive."""
    return []


@pytest.fixture
def make_host(tmp_path, loaded_paths):
    """
    Returns a factory for HostContext objects rooted at tmp_path with an empty
    environment and a recording loading primitive.
    """
    def factory(**overrides):
        settings = overrides.pop("settings", None) or FrameworkSettings(
            install_root=tmp_path,
            log_directory=tmp_path / "logs",
        )
        developer = overrides.pop("developer", None) or DeveloperSettings()
        data = {
            "settings": settings,
            "developer": developer,
            "load_source": loaded_paths.append,
            "environ": {},
        }
        data.update(overrides)
        return HostContext(**data)

    return factory
