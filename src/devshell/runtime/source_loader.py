from __future__ import annotations

import importlib
import linecache
import logging
import runpy
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class SourceLoader:
    """Default host source-loading primitive: (re)executes a file inside the running process.

    A file that backs an already imported module is reloaded in place with
    ``importlib.reload`` so existing references see the new code. Any other file
    is executed top to bottom with ``runpy.run_path``. Errors raised by the file
    propagate to the caller.
    """

    def load(self, path: str) -> Any:
        resolved = Path(path).expanduser().resolve()
        importlib.invalidate_caches()

        module = self.find_loaded_module(resolved)
        try:
            if module is not None:
                logger.debug("Reloading module %s from %s", module.__name__, resolved)
                self._remove_cached_bytecode(module)
                return importlib.reload(module)

            logger.debug("Executing %s", resolved)
            return self._run_file(resolved)
        finally:
            linecache.checkcache()

    def find_loaded_module(self, path: Path) -> Optional[ModuleType]:
        """Return the imported module whose source file is ``path``, if any."""
        for module in list(sys.modules.values()):
            module_file = getattr(module, "__file__", None)
            if not isinstance(module_file, str):
                continue
            try:
                if Path(module_file).resolve() == path:
                    return module
            except OSError:
                continue
        return None

    def _run_file(self, path: Path) -> Dict[str, Any]:
        return runpy.run_path(str(path), run_name=f"__devshell_reload__.{path.stem}")

    def _remove_cached_bytecode(self, module: ModuleType) -> None:
        cached_path = getattr(module, "__cached__", None)
        if not isinstance(cached_path, str):
            return

        cached_file = Path(cached_path)
        try:
            if cached_file.exists():
                cached_file.unlink()
        except OSError:
            # Stale bytecode is only a cache; importlib re-validates it against the source.
            logger.debug("Could not remove cached bytecode %s", cached_file)
