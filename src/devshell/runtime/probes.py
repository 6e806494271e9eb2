"""Environment probes: fresh, uncached queries about external tools and the install tree."""

from __future__ import annotations

import shutil
from pathlib import Path

from devshell.utils.diagnostics import PreconditionError, PreconditionKind

VCS_METADATA_DIR = ".git"


def tool_available(name: str) -> bool:
    """Return True when an executable called ``name`` resolves on PATH."""
    return shutil.which(name) is not None


def is_version_controlled_install(install_root: Path) -> bool:
    """Return True when the install root holds a git metadata directory."""
    return (Path(install_root) / VCS_METADATA_DIR).is_dir()


def require_git(install_root: Path) -> None:
    """Raise PreconditionError unless git is on PATH and the install root is a git working tree."""
    if not tool_available("git"):
        raise PreconditionError("'git' is not found.", PreconditionKind.TOOL_MISSING)

    if not is_version_controlled_install(install_root):
        raise PreconditionError(
            f"Installation at {install_root} is not a git repository. "
            "Did you install it from a package instead of a checkout?",
            PreconditionKind.NOT_A_REPOSITORY,
        )
