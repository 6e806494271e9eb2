import os
import re
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

CONFIG_FILE_NAME = "devshell.yaml"
SECTIONS = ("framework", "developer")

# ${NAME} or ${NAME:fallback}
_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<fallback>[^}]+))?\}")


def interpolate_env_vars(content: str) -> str:
    """Substitute ${NAME} and ${NAME:fallback} references from the process environment."""
    return _ENV_REFERENCE.sub(
        lambda ref: os.environ.get(ref.group("name"), ref.group("fallback") or ""),
        content,
    )


def load_config(path: Path) -> Dict[str, Any]:
    """
    Read devshell.yaml, resolving environment references before parsing.

    Returns only the mapping-valued 'framework' and 'developer' sections. A
    missing, unreadable or malformed file yields an empty dict so settings fall
    back to their defaults.
    """
    if not path.exists():
        return {}

    try:
        document = yaml.safe_load(interpolate_env_vars(path.read_text()))
    except (OSError, yaml.YAMLError):
        return {}

    if not isinstance(document, dict):
        return {}

    return {
        section: document[section]
        for section in SECTIONS
        if isinstance(document.get(section), dict)
    }


def find_config(root_dir: Optional[Path] = None) -> Path:
    """Return devshell.yaml from root_dir if present, else the one in the current directory."""
    if root_dir is not None and (root_dir / CONFIG_FILE_NAME).exists():
        return root_dir / CONFIG_FILE_NAME
    return Path.cwd() / CONFIG_FILE_NAME
