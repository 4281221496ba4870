from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass

from config import LIST_LIMIT, PROTECTED_FILES
from errors import NotFound, PathViolation, TextNotFound

LOGGER = logging.getLogger(__name__)

# mkstemp creates 0600 files.
NEW_FILE_MODE = 0o644


@dataclass(frozen=True, slots=True)
class DirectoryEntry:
    name: str
    is_dir: bool


@dataclass(frozen=True, slots=True)
class Listing:
    path: str
    entries: list[DirectoryEntry]
    remaining: int = 0


class WorkspacePathGuard:
    """Maps user-supplied names onto the workspace root.

    Names are joined, not canonicalised: a symlink inside the workspace can
    still point elsewhere.
    """

    def __init__(
        self,
        root: str,
        *,
        protected_files: Iterable[str] = PROTECTED_FILES,
    ) -> None:
        self.root = os.path.abspath(root)
        self.protected_files = frozenset(protected_files)

    def resolve(self, filename: str, *, mutating: bool = False) -> str:
        if ".." in filename or filename.startswith("/") or os.path.isabs(filename):
            raise PathViolation("❌ Invalid filename. Cannot use .. or absolute paths.")
        if mutating and os.path.normpath(filename) in self.protected_files:
            raise PathViolation(f"❌ Cannot modify protected file: {filename}")
        return os.path.join(self.root, filename)


def _read_text(path: str) -> str:
    with open(path, encoding="utf-8", newline="") as handle:
        return handle.read()


def _write_text(path: str, content: str) -> None:
    directory = os.path.dirname(path)
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{os.path.basename(path)}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        if os.path.exists(path):
            shutil.copymode(path, tmp_path)
        else:
            os.chmod(tmp_path, NEW_FILE_MODE)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.remove(tmp_path)
        raise


class Workspace:
    """File primitives behind the `:h` commands."""

    def __init__(self, root: str, *, list_limit: int = LIST_LIMIT) -> None:
        self.guard = WorkspacePathGuard(root)
        self.list_limit = list_limit

    @property
    def root(self) -> str:
        return self.guard.root

    def list(self, directory: str | None = None) -> Listing:
        target = self.guard.resolve(directory) if directory else self.root
        try:
            names = sorted(os.listdir(target))
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise NotFound(directory or "workspace") from exc

        entries = [
            DirectoryEntry(name=name, is_dir=os.path.isdir(os.path.join(target, name)))
            for name in names[: self.list_limit]
        ]
        remaining = max(0, len(names) - self.list_limit)
        return Listing(path=directory or "", entries=entries, remaining=remaining)

    def read(self, filename: str) -> str:
        path = self.guard.resolve(filename)
        try:
            return _read_text(path)
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise NotFound(filename) from exc

    def write(self, filename: str, content: str) -> None:
        path = self.guard.resolve(filename, mutating=True)
        _write_text(path, content)
        LOGGER.info("wrote %s (%s chars)", filename, len(content))

    def append(self, filename: str, content: str) -> None:
        path = self.guard.resolve(filename, mutating=True)
        try:
            existing = _read_text(path)
        except FileNotFoundError:
            existing = ""

        if existing and not existing.endswith("\n"):
            existing += "\n"
        _write_text(path, existing + content)
        LOGGER.info("appended to %s (%s chars)", filename, len(content))

    def edit(self, filename: str, old_text: str, new_text: str) -> str:
        path = self.guard.resolve(filename, mutating=True)
        try:
            content = _read_text(path)
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise NotFound(filename) from exc

        if old_text not in content:
            raise TextNotFound(filename, old_text)

        updated = content.replace(old_text, new_text, 1)
        _write_text(path, updated)
        LOGGER.info("edited %s", filename)
        return updated
