# app/services/listing.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, List, Optional

from app.errors import IOFailure, NotFound
from app.models import Entry, EntryKind
from app.services.filters import ExtensionFilter
from app.services.sandbox import is_within


def _snapshot(directory: Path, extension_filter: ExtensionFilter, root: Path) -> List[Entry]:
    entries: List[Entry] = []
    with os.scandir(directory) as it:
        for child in it:
            try:
                if child.is_symlink():
                    real = os.path.realpath(child.path)
                    # links leaving the root are not revealed, not even stat'ed
                    if not is_within(str(root), real):
                        continue
                    if child.is_file() and not extension_filter.is_allowed(os.path.basename(real)):
                        continue
                if child.is_dir():
                    entries.append(Entry(name=child.name, kind=EntryKind.DIRECTORY, size=0))
                elif child.is_file():
                    if not extension_filter.is_allowed(child.name):
                        continue
                    entries.append(
                        Entry(name=child.name, kind=EntryKind.FILE, size=child.stat().st_size)
                    )
                # broken links, sockets, fifos: not part of the listing
            except FileNotFoundError:
                # removed between scandir and stat
                continue
    entries.sort(key=lambda e: (e.name.casefold(), e.name))
    return entries


def list_entries(
    directory: Path, extension_filter: ExtensionFilter, root: Optional[Path] = None
) -> Iterator[Entry]:
    """
    Direct children of `directory`: every sub-directory, plus files the
    filter allows. Symlinked children whose target lies outside `root`
    (default: `directory` itself) are skipped. Raises NotFound immediately
    if `directory` is missing.
    """
    if not directory.is_dir():
        raise NotFound("Directory not found")
    boundary = Path(os.path.realpath(root if root is not None else directory))
    try:
        entries = _snapshot(directory, extension_filter, boundary)
    except FileNotFoundError as e:
        raise NotFound("Directory not found") from e
    except OSError as e:
        raise IOFailure("Could not list directory") from e
    return iter(entries)
