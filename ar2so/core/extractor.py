"""
Extractor — materialize archive members as standalone object files.

Each non-blacklisted member is written verbatim into the caller-supplied
scratch directory.  The directory itself is owned by the caller and is
never removed here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import AbstractSet, Iterable, List

from ar2so.core.archive_reader import ArchiveMember
from ar2so.core.errors import InvalidIdentifierError, IoError

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Extracted object paths in archive order, plus what was skipped."""

    objects: List[Path] = field(default_factory=list)
    member_names: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def decode_identifier(identifier: bytes) -> str:
    """Decode a member identifier and check it is usable as a file name."""
    try:
        name = identifier.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidIdentifierError(f"member identifier {identifier!r} is not UTF-8") from e
    if not name or name in (".", ".."):
        raise InvalidIdentifierError(f"member identifier {identifier!r} is empty or reserved")
    if "/" in name or "\x00" in name:
        raise InvalidIdentifierError(f"member identifier {name!r} contains a path separator")
    return name


def extract_members(
    members: Iterable[ArchiveMember],
    scratch_dir: Path,
    blacklist: AbstractSet[bytes] = frozenset(),
    indexed_names: bool = True,
) -> ExtractionResult:
    """
    Write every member not in *blacklist* into *scratch_dir*.

    Parameters
    ----------
    members : iterable of ArchiveMember
        Usually an ``ArchiveReader``; consumed exactly once.
    scratch_dir : Path
        Existing directory that receives the object files.
    blacklist : set of bytes
        Member identifiers that are never extracted.
    indexed_names : bool
        Prefix each file name with a 4-digit running index so members
        sharing an identifier do not overwrite each other.  When False
        the raw identifier is the file name.

    Returns
    -------
    ExtractionResult
    """
    result = ExtractionResult()

    for index, member in enumerate(members):
        if member.identifier in blacklist:
            logger.debug("Skipping blacklisted member %r", member.identifier)
            result.skipped.append(member.identifier.decode("utf-8", errors="replace"))
            continue

        name = decode_identifier(member.identifier)
        fname = f"{index:04d}_{name}" if indexed_names else name
        target = scratch_dir / fname
        if not indexed_names and name in result.member_names:
            raise InvalidIdentifierError(
                f"duplicate member identifier {name!r} cannot be extracted without an index prefix"
            )

        try:
            target.write_bytes(member.data)
        except OSError as e:
            raise IoError(f"cannot write {target}: {e}") from e

        result.objects.append(target)
        result.member_names.append(name)

    logger.info(
        "Extracted %d member(s) into %s (%d skipped)",
        len(result.objects), scratch_dir, len(result.skipped),
    )
    return result
