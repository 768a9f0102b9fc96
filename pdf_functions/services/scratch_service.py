"""
Request-scoped scratch storage.

Every request gets its own namespace directory beneath the shared scratch
root, and only the paths staged or reserved through the instance are
removed on cleanup.
"""
import logging
import re
import shutil
import uuid
from pathlib import Path
from typing import List, Optional, Union

from pdf_functions.core.config import settings

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str, fallback: str = "document") -> str:
    name = Path(filename or "").name
    cleaned = _UNSAFE_CHARS.sub("_", name).strip("._")
    return cleaned or fallback


class ScratchSpace:
    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.root = Path(root or settings.SCRATCH_ROOT)
        self.namespace = self.root / uuid.uuid4().hex
        self._entries: List[Path] = []
        self._created_namespace = False

    def __enter__(self) -> "ScratchSpace":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cleanup()
        return False

    @property
    def entries(self) -> List[Path]:
        return list(self._entries)

    def _ensure_namespace(self) -> Path:
        if not self._created_namespace:
            self.namespace.mkdir(parents=True, exist_ok=True)
            self._created_namespace = True
        return self.namespace

    def stage(self, name: str, content: bytes) -> Path:
        """Write ``content`` to a fresh, collision-free path and track it."""
        path = self.reserve(name)
        with open(path, "wb") as f:
            f.write(content)
        logger.debug("Staged %d bytes at %s", len(content), path)
        return path

    def reserve(self, name: str) -> Path:
        """Return a unique path for a file that something else will write."""
        directory = self._ensure_namespace()
        path = directory / f"{uuid.uuid4().hex[:12]}_{safe_filename(name)}"
        self._entries.append(path)
        return path

    def track(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        if path not in self._entries:
            self._entries.append(path)
        return path

    def directory(self, name: str) -> Path:
        """Reserve a subdirectory inside this request's namespace."""
        path = self._ensure_namespace() / f"{safe_filename(name)}_{uuid.uuid4().hex[:8]}"
        path.mkdir()
        self._entries.append(path)
        return path

    def cleanup(self):
        for path in reversed(self._entries):
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                elif path.exists():
                    path.unlink()
            except OSError as exc:
                logger.warning("Failed to delete scratch entry %s: %s", path, exc)
        self._entries.clear()

        if self._created_namespace:
            try:
                self.namespace.rmdir()
            except FileNotFoundError:
                pass
            except OSError:
                # Anything left behind here was written by a tool we invoked
                # for this request; the namespace is ours alone.
                try:
                    shutil.rmtree(self.namespace)
                except OSError as exc:
                    logger.warning("Failed to delete scratch namespace %s: %s", self.namespace, exc)
            self._created_namespace = False
