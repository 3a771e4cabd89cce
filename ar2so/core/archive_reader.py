"""
Archive reader — forward-only cursor over a Unix ``ar`` container.

Responsibilities:
  - Validate the global ``!<arch>\\n`` magic.
  - Parse each 60-byte member header and read the member body.
  - Resolve GNU long names (``//`` table + ``/<offset>``) and BSD
    ``#1/<len>`` names.
  - Skip GNU and BSD symbol-table members.

The reader is a one-shot iterator: members are yielded lazily, in
archive order, and the cursor cannot be rewound.  Callers that need a
second pass must re-open the archive.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from ar2so.core.errors import ArchiveFormatError, IoError

logger = logging.getLogger(__name__)

AR_MAGIC = b"!<arch>\n"
THIN_MAGIC = b"!<thin>\n"
HEADER_SIZE = 60
HEADER_TERMINATOR = b"`\n"

# Symbol-table members carry no object code.
_SYMBOL_TABLES = frozenset({b"/", b"/SYM64/", b"__.SYMDEF", b"__.SYMDEF SORTED"})
_GNU_LONGNAMES = b"//"
_BSD_LONGNAME_PREFIX = b"#1/"


@dataclass(frozen=True)
class ArchiveMember:
    """One member of the archive, fully read into memory."""

    identifier: bytes
    data: bytes
    mtime: int = 0
    mode: int = 0o644

    @property
    def size(self) -> int:
        return len(self.data)


def _parse_int(field: bytes, base: int, what: str) -> int:
    text = field.strip()
    if not text:
        return 0
    try:
        return int(text, base)
    except ValueError:
        raise ArchiveFormatError(f"malformed {what} field in member header: {field!r}")


class ArchiveReader:
    """
    Iterate the members of an ``ar`` archive read from *stream*.

    Usage::

        with open_archive(path) as reader:
            for member in reader:
                ...

    The magic is checked eagerly so a bad archive fails before any
    member is processed.
    """

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self._longnames: Optional[bytes] = None
        self._exhausted = False
        self._offset = 0

        magic = self._read_exact(len(AR_MAGIC), "global header")
        if magic == THIN_MAGIC:
            raise ArchiveFormatError("thin archives are not supported")
        if magic != AR_MAGIC:
            raise ArchiveFormatError(f"bad archive magic: {magic!r}")

    # -- low level -------------------------------------------------------------

    def _read_exact(self, n: int, what: str) -> bytes:
        try:
            data = self._stream.read(n)
        except OSError as e:
            raise IoError(f"failed reading archive: {e}") from e
        if len(data) != n:
            raise ArchiveFormatError(
                f"truncated archive: expected {n} bytes of {what} at offset "
                f"{self._offset}, got {len(data)}"
            )
        self._offset += n
        return data

    def _read_header(self) -> Optional[tuple[bytes, int, int, int]]:
        """Return (raw_name, mtime, mode, size), or None at clean EOF."""
        try:
            first = self._stream.read(1)
        except OSError as e:
            raise IoError(f"failed reading archive: {e}") from e
        if not first:
            return None
        self._offset += 1
        header = first + self._read_exact(HEADER_SIZE - 1, "member header")

        if header[58:60] != HEADER_TERMINATOR:
            raise ArchiveFormatError(
                f"bad member header terminator at offset {self._offset - HEADER_SIZE}"
            )

        raw_name = header[0:16].rstrip(b" ")
        mtime = _parse_int(header[16:28], 10, "mtime")
        mode = _parse_int(header[40:48], 8, "mode")
        size = _parse_int(header[48:58], 10, "size")
        return raw_name, mtime, mode, size

    def _read_body(self, size: int) -> bytes:
        data = self._read_exact(size, "member data")
        if size % 2 == 1:
            # Data is padded to an even offset; the pad may be absent at EOF.
            try:
                pad = self._stream.read(1)
            except OSError as e:
                raise IoError(f"failed reading archive: {e}") from e
            self._offset += len(pad)
        return data

    def _resolve_gnu_longname(self, raw_name: bytes) -> bytes:
        if self._longnames is None:
            raise ArchiveFormatError(
                f"member {raw_name!r} references a long-name table that is missing"
            )
        offset = _parse_int(raw_name[1:], 10, "long-name offset")
        if offset >= len(self._longnames):
            raise ArchiveFormatError(f"long-name offset {offset} out of range")
        end = self._longnames.find(b"\n", offset)
        if end == -1:
            end = len(self._longnames)
        return self._longnames[offset:end].rstrip(b"/")

    # -- iteration -------------------------------------------------------------

    def __iter__(self) -> Iterator[ArchiveMember]:
        return self

    def __next__(self) -> ArchiveMember:
        if self._exhausted:
            raise StopIteration

        while True:
            header = self._read_header()
            if header is None:
                self._exhausted = True
                raise StopIteration
            raw_name, mtime, mode, size = header

            if raw_name in _SYMBOL_TABLES:
                self._read_body(size)
                logger.debug("Skipping symbol table member %r", raw_name)
                continue

            if raw_name == _GNU_LONGNAMES:
                self._longnames = self._read_body(size)
                continue

            if raw_name.startswith(_BSD_LONGNAME_PREFIX):
                name_len = _parse_int(raw_name[len(_BSD_LONGNAME_PREFIX):], 10, "BSD name length")
                if name_len > size:
                    raise ArchiveFormatError(
                        f"BSD name length {name_len} exceeds member size {size}"
                    )
                body = self._read_body(size)
                identifier = body[:name_len].rstrip(b"\x00")
                if identifier in _SYMBOL_TABLES:
                    continue
                return ArchiveMember(identifier, body[name_len:], mtime, mode)

            if raw_name.startswith(b"/") and raw_name[1:2].isdigit():
                identifier = self._resolve_gnu_longname(raw_name)
            else:
                # GNU terminates short names with '/', BSD pads with spaces.
                identifier = raw_name[:-1] if raw_name.endswith(b"/") else raw_name

            return ArchiveMember(identifier, self._read_body(size), mtime, mode)


@contextmanager
def open_archive(path: str | Path) -> Iterator[ArchiveReader]:
    """Open *path* and yield an ``ArchiveReader`` positioned at the first member."""
    try:
        f = open(path, "rb")
    except OSError as e:
        raise IoError(f"cannot open archive {path}: {e}") from e
    with f:
        yield ArchiveReader(f)
