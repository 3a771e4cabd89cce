"""
ELF reader — inspect a linked shared object.

Responsibilities:
  - Validate that the file is an ELF binary.
  - Report ELF type and machine.
  - Read DT_SONAME from the dynamic section.
  - List defined global/weak dynamic symbols (the real export surface).
  - List version definition names from .gnu.version_d.

This module intentionally does NOT judge the result; see policy/verdict.
"""
import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from elftools.elf.elffile import ELFFile
from elftools.elf.dynamic import DynamicSection
from elftools.elf.gnuversions import GNUVerDefSection
from elftools.elf.sections import SymbolTableSection

VER_FLG_BASE = 0x1


@dataclass(frozen=True)
class SharedObjectMeta:
    """Structural facts about a linked output."""

    path: str
    file_sha256: str
    file_size: int

    elf_type: str            # e.g. "ET_DYN"
    machine: str             # e.g. "EM_X86_64"
    elf_class: int           # 32 or 64

    soname: Optional[str] = None
    exported_symbols: List[str] = field(default_factory=list)
    version_definitions: List[str] = field(default_factory=list)

    @property
    def is_shared_object(self) -> bool:
        return self.elf_type == "ET_DYN"


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


def _read_soname(elffile: ELFFile) -> Optional[str]:
    for section in elffile.iter_sections():
        if isinstance(section, DynamicSection):
            for tag in section.iter_tags():
                if tag.entry.d_tag == "DT_SONAME":
                    return tag.soname
    return None


def _read_exports(elffile: ELFFile) -> List[str]:
    dynsym = elffile.get_section_by_name(".dynsym")
    if not isinstance(dynsym, SymbolTableSection):
        return []
    names = set()
    for sym in dynsym.iter_symbols():
        if not sym.name:
            continue
        if sym["st_info"]["bind"] not in ("STB_GLOBAL", "STB_WEAK"):
            continue
        if sym["st_shndx"] == "SHN_UNDEF":
            continue
        names.add(sym.name)
    return sorted(names)


def _read_version_definitions(elffile: ELFFile) -> List[str]:
    names: List[str] = []
    for section in elffile.iter_sections():
        if not isinstance(section, GNUVerDefSection):
            continue
        for verdef, verdaux_iter in section.iter_versions():
            # The base definition only repeats the soname.
            if verdef["vd_flags"] & VER_FLG_BASE:
                continue
            for aux in verdaux_iter:
                names.append(aux.name)
                break
    return names


def read_shared_object(path: str) -> SharedObjectMeta:
    """
    Open *path* as an ELF file and return its export-surface metadata.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ELFError
        If the file is not a valid ELF binary.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Shared object not found: {path}")

    with open(p, "rb") as f:
        elffile = ELFFile(f)
        meta = SharedObjectMeta(
            path=str(p),
            file_sha256=sha256_file(p),
            file_size=p.stat().st_size,
            elf_type=elffile.header.e_type,
            machine=elffile.header.e_machine,
            elf_class=elffile.elfclass,
            soname=_read_soname(elffile),
            exported_symbols=_read_exports(elffile),
            version_definitions=_read_version_definitions(elffile),
        )
    return meta
