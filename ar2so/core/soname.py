"""
Soname derivation.

``libfoo.a`` → soname ``libfoo.so`` → version tag ``foo``.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional


def derive_soname(archive_path: str | Path, explicit: Optional[str] = None) -> str:
    """Return *explicit* if given, else the archive file name with ``.a`` → ``.so``."""
    if explicit:
        return explicit
    name = Path(archive_path).name
    if name.endswith(".a"):
        return name[:-2] + ".so"
    return name


def short_soname(soname: str) -> str:
    """Strip a leading ``lib`` and a trailing ``.so``; used as version tag."""
    start = 3 if soname.startswith("lib") else 0
    end = len(soname) - 3 if soname.endswith(".so") else len(soname)
    return soname[start:end]
