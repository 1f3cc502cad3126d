# app/services/filesystem.py
from __future__ import annotations

import contextlib
import logging
import os
import re
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

from app.errors import Forbidden, InvalidArgument, IOFailure, NotFound
from app.models import Download, Entry, EntryKind
from app.services.filters import ExtensionFilter
from app.services.listing import list_entries
from app.services.policy import AccessPolicy, AllowAllPolicy, Operation
from app.services.sandbox import PathSandbox, Rejected

log = logging.getLogger(__name__)

_ILLEGAL_NAME = re.compile(r"[\\/\x00]")


def _validate_name(name: Optional[str]) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidArgument("Name must not be empty")
    if name in (".", "..") or _ILLEGAL_NAME.search(name):
        raise InvalidArgument("Name must be a single path component")
    return name


def _client_basename(file_name: Optional[str]) -> str:
    # Browsers may send "C:\\fakepath\\photo.png" or "dir/photo.png"
    if not isinstance(file_name, str):
        return ""
    return re.split(r"[\\/]", file_name)[-1]


def _join(path: Optional[str], name: str) -> str:
    return f"{path.rstrip('/')}/{name}" if path else name


def _coerce_kind(kind: Union[EntryKind, str]) -> EntryKind:
    if isinstance(kind, EntryKind):
        return kind
    if isinstance(kind, str):
        try:
            return EntryKind(kind.strip().lower())
        except ValueError:
            pass
    raise InvalidArgument("Kind must be 'f' (file) or 'd' (directory)")


class FileBrowserService:
    """
    List, create, delete, upload and download inside a single sandbox root.

    Every public method takes root-relative paths. The path is resolved and
    contained before the policy is asked, and the policy is asked before any
    filesystem call. Failures raise the errors in app.errors.
    """

    def __init__(
        self,
        root: Union[str, os.PathLike],
        extension_filter: Optional[ExtensionFilter] = None,
        policy: Optional[AccessPolicy] = None,
    ):
        self.sandbox = PathSandbox(root)
        self.extension_filter = extension_filter or ExtensionFilter.from_spec()
        self.policy: AccessPolicy = policy or AllowAllPolicy()

    @property
    def root(self) -> Path:
        return self.sandbox.root

    def resolve(self, path: Optional[str]) -> Union[Path, Rejected]:
        return self.sandbox.resolve(path)

    def _authorized(self, operation: Operation, path: Optional[str]) -> Path:
        resolved = self.sandbox.require(path)
        if not self.policy.authorize(operation, resolved):
            log.warning("policy_denied op=%s path=%r", operation.value, path)
            raise Forbidden(f"{operation.value} not permitted")
        return resolved

    # ---------- Operations ----------

    def list(self, path: Optional[str] = "") -> Iterator[Entry]:
        directory = self._authorized(Operation.READ, path)
        return list_entries(directory, self.extension_filter, self.root)

    def create_directory(self, path: Optional[str], name: str) -> Entry:
        parent = self.sandbox.require(path)
        name = _validate_name(name)
        target = self._authorized(Operation.CREATE_DIRECTORY, _join(path, name))

        if not parent.is_dir():
            raise NotFound("Parent directory not found")
        if target.is_dir():
            return Entry(name=name, kind=EntryKind.DIRECTORY, size=0)
        if (parent / name).is_symlink():
            # dangling link: never create whatever it points at
            raise InvalidArgument("A link with that name already exists")
        if target.exists():
            raise InvalidArgument("A file with that name already exists")

        try:
            target.mkdir(exist_ok=True)
        except FileNotFoundError as e:
            raise NotFound("Parent directory not found") from e
        except FileExistsError as e:
            raise InvalidArgument("A file with that name already exists") from e
        except OSError as e:
            raise IOFailure("Could not create directory") from e

        log.info("directory_created path=%s", self.sandbox.relative_to_root(target))
        return Entry(name=name, kind=EntryKind.DIRECTORY, size=0)

    def delete(self, path: Optional[str], name: str, kind: Union[EntryKind, str]) -> None:
        """
        Remove a file, or a directory with everything below it.
        Irreversible; callers authorize before getting here.
        """
        parent = self.sandbox.require(path)
        name = _validate_name(name)
        kind = _coerce_kind(kind)
        target = self._authorized(Operation.DELETE, _join(path, name))
        if target == self.root:
            raise Forbidden("Cannot delete the sandbox root")

        entry_path = parent / name
        try:
            if kind is EntryKind.FILE:
                if not target.is_file():
                    raise NotFound("File not found")
                os.unlink(entry_path)
            else:
                if not target.is_dir():
                    raise NotFound("Directory not found")
                if entry_path.is_symlink():
                    # drop the link, not what it points at
                    os.unlink(entry_path)
                else:
                    shutil.rmtree(target)
        except NotFound:
            raise
        except FileNotFoundError as e:
            raise NotFound("Target not found") from e
        except OSError as e:
            raise IOFailure("Could not delete") from e

        log.info("deleted kind=%s path=%s", kind.value, _join(self.sandbox.relative_to_root(parent), name))

    def upload(self, path: Optional[str], file_name: str, stream: BinaryIO) -> Entry:
        """
        Store `stream` as `file_name` in directory `path`, replacing any file
        of the same name. The caller's stream is read but not closed.
        """
        parent = self.sandbox.require(path)
        name = _validate_name(_client_basename(file_name))
        if not self.extension_filter.is_allowed(name):
            log.warning("upload_rejected_extension name=%r", name)
            raise Forbidden("File type not allowed")
        target = self._authorized(Operation.UPLOAD, _join(path, name))

        if not parent.is_dir():
            raise NotFound("Directory not found")
        if target.is_dir():
            raise InvalidArgument("A directory with that name already exists")

        try:
            # the entry itself is replaced; an existing link is not written through
            size = self._write_atomically(parent / name, stream)
        except FileNotFoundError as e:
            raise NotFound("Directory not found") from e
        except OSError as e:
            raise IOFailure("Could not store upload") from e

        log.info("file_uploaded path=%s bytes=%d", _join(self.sandbox.relative_to_root(parent), name), size)
        return Entry(name=name, kind=EntryKind.FILE, size=size)

    def download(self, path: Optional[str]) -> Download:
        requested = _client_basename(path)
        target = self._authorized(Operation.DOWNLOAD, path)
        # check both names so a link cannot unlock a filtered type
        if not (self.extension_filter.is_allowed(requested) and self.extension_filter.is_allowed(target.name)):
            log.warning("download_rejected_extension path=%r", path)
            raise Forbidden("File type not allowed")
        if not target.is_file():
            raise NotFound("File not found")

        try:
            fh = open(target, "rb")
        except FileNotFoundError as e:
            raise NotFound("File not found") from e
        except OSError as e:
            raise IOFailure("Could not open file") from e
        try:
            size = os.fstat(fh.fileno()).st_size
        except OSError as e:
            fh.close()
            raise IOFailure("Could not stat file") from e
        return Download(stream=fh, size=size, name=requested)

    # ---------- Internals ----------

    def _write_atomically(self, target: Path, stream: BinaryIO) -> int:
        tmp = os.path.join(target.parent, f".upload-{uuid.uuid4().hex}.part")
        # 0o666 lets the process umask decide the final mode
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0), 0o666)
        done = False
        try:
            with os.fdopen(fd, "wb") as fh:
                shutil.copyfileobj(stream, fh)
                size = fh.tell()
            os.replace(tmp, target)
            done = True
        finally:
            if not done:
                with contextlib.suppress(FileNotFoundError):
                    os.unlink(tmp)
        return size
