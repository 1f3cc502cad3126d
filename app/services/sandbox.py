# app/services/sandbox.py
from __future__ import annotations

import logging
import ntpath
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from app.errors import Forbidden

log = logging.getLogger(__name__)

_SEPARATORS = {"/", os.sep} | ({os.altsep} if os.altsep else set())


@dataclass(frozen=True)
class Rejected:
    """Outcome of a path that may not be touched. Never raised, always returned."""
    relative: str
    reason: str


def _split_components(relative: str) -> list[str]:
    parts = [relative]
    for sep in _SEPARATORS:
        parts = [p for chunk in parts for p in chunk.split(sep)]
    return parts


def _looks_absolute(relative: str) -> bool:
    if relative[:1] in ("/", "\\"):
        return True
    # "C:", "C:\\x" and UNC shares all carry a drive on Windows
    drive, _ = ntpath.splitdrive(relative)
    return bool(drive)


def is_within(root: str, candidate: str) -> bool:
    """
    True when `candidate` equals `root` or lies below it.
    Both must already be canonical; case folding follows the host.
    """
    r = os.path.normcase(root)
    c = os.path.normcase(candidate)
    if c == r:
        return True
    prefix = r if r.endswith(os.sep) else r + os.sep
    return c.startswith(prefix)


def resolve_in_root(root: Union[str, os.PathLike], relative: Optional[str]) -> Union[Path, Rejected]:
    """
    Join `relative` onto `root` and canonicalize it. Returns the resolved
    Path, or Rejected if the input is malformed or lands outside root.
    Does not raise for bad input.
    """
    if relative is None:
        relative = ""
    if not isinstance(relative, str):
        return Rejected(repr(relative), "path must be a string")
    if "\x00" in relative:
        return Rejected(relative, "path contains a NUL byte")
    if _looks_absolute(relative):
        return Rejected(relative, "absolute paths are not accepted")

    clean: list[str] = []
    for part in _split_components(relative):
        if part in ("", "."):
            continue
        if part == "..":
            if not clean:
                return Rejected(relative, "path escapes sandbox root")
            clean.pop()
            continue
        clean.append(part)

    base = os.path.realpath(os.fspath(root))
    # realpath follows symlinks; the containment test runs on its output
    candidate = os.path.realpath(os.path.join(base, *clean))
    if not is_within(base, candidate):
        return Rejected(relative, "path escapes sandbox root")
    return Path(candidate)


class PathSandbox:
    """
    Resolves caller-supplied relative paths inside a single root directory.
    The root is canonicalized once; the instance holds no other state and is
    safe to share between threads.
    """

    def __init__(self, root: Union[str, os.PathLike]):
        self._root = Path(os.path.realpath(os.fspath(root)))

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, relative: Optional[str]) -> Union[Path, Rejected]:
        return resolve_in_root(self._root, relative)

    def require(self, relative: Optional[str]) -> Path:
        """resolve(), but a Rejected outcome becomes Forbidden."""
        result = self.resolve(relative)
        if isinstance(result, Rejected):
            log.warning("sandbox_rejected path=%r reason=%s", result.relative, result.reason)
            raise Forbidden(result.reason)
        return result

    def contains(self, path: Union[str, os.PathLike]) -> bool:
        return is_within(str(self._root), os.path.realpath(os.fspath(path)))

    def relative_to_root(self, path: Path) -> str:
        rel = path.relative_to(self._root).as_posix()
        return "" if rel == "." else rel
