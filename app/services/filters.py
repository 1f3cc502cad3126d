# app/services/filters.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Tuple, Union

DEFAULT_FILTER = "*.txt,*.doc,*.docx,*.xls,*.xlsx,*.ppt,*.pptx,*.zip,*.rar,*.jpg,*.jpeg,*.gif,*.png"

_PATTERN = re.compile(r"^\*\.([^*?\[\]/\\.]+)$")


def parse_filter_spec(spec: Union[str, Iterable[str]]) -> Tuple[str, ...]:
    """
    "*.png, *.JPG,,*.png" -> ("*.png", "*.jpg").
    Raises ValueError for anything that is not a plain `*.ext` pattern.
    """
    items = spec.split(",") if isinstance(spec, str) else list(spec)
    out: list[str] = []
    for raw in items:
        p = raw.strip().lower()
        if not p:
            continue
        if not _PATTERN.match(p):
            raise ValueError(f"Unsupported filter pattern: {raw.strip()!r} (expected '*.ext')")
        if p not in out:
            out.append(p)
    return tuple(out)


def extension_of(file_name: str) -> Optional[str]:
    """Lower-cased text after the last dot of the base name, or None."""
    base = re.split(r"[\\/]", file_name)[-1]
    _, dot, ext = base.rpartition(".")
    if not dot or not ext:
        return None
    return ext.lower()


def _extensions(patterns: Iterable[str]) -> FrozenSet[str]:
    exts = set()
    for p in patterns:
        m = _PATTERN.match(p.strip().lower())
        if m:
            exts.add(m.group(1))
    return frozenset(exts)


def is_allowed(file_name: str, patterns: Iterable[str]) -> bool:
    if not isinstance(file_name, str):
        return False
    ext = extension_of(file_name)
    return ext is not None and ext in _extensions(patterns)


@dataclass(frozen=True)
class ExtensionFilter:
    """Immutable allow-list built once from configuration."""
    patterns: Tuple[str, ...]
    _exts: FrozenSet[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_exts", _extensions(self.patterns))

    @classmethod
    def from_spec(cls, spec: Union[str, Iterable[str]] = DEFAULT_FILTER) -> "ExtensionFilter":
        return cls(parse_filter_spec(spec))

    def is_allowed(self, file_name: str) -> bool:
        if not isinstance(file_name, str):
            return False
        ext = extension_of(file_name)
        return ext is not None and ext in self._exts
