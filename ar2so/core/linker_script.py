"""
Linker script — render the GNU ld control script for a freestanding .so.

Three fragments, each rendered by its own function:
  1. Prologue       — OUTPUT_FORMAT / OUTPUT_ARCH for the target.
  2. Version map    — one version node; requested symbols are global,
                      everything else is local.
  3. Section layout — a fixed SECTIONS template.  ``-nostdlib`` links get
                      no help from the linker's built-in script, so every
                      placement and alignment rule is spelled out here.

All output is deterministic: identical inputs give byte-identical text.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Sequence, TextIO

from ar2so.core.errors import InvalidIdentifierError, IoError
from ar2so.policy.profile import TARGETS, DEFAULT_TARGET, Target

logger = logging.getLogger(__name__)

# Characters that would end or corrupt a version-script entry.
_BAD_SYMBOL_CHARS = re.compile(r"[\s;{}]")


# ── Section layout fragments ─────────────────────────────────────────────────

_DYNAMIC_METADATA = (
    "  /* Read-only sections, merged into text segment: */",
    "  .interp         : { *(.interp) }",
    "  .hash           : { *(.hash) }",
    "  .gnu.hash       : { *(.gnu.hash) }",
    "  .dynsym         : { *(.dynsym) }",
    "  .dynstr         : { *(.dynstr) }",
    "  .gnu.version    : { *(.gnu.version) }",
)

_RELOCATIONS = (
    "  .rela.data.rel.ro   : { *(.rela.data.rel.ro .rela.data.rel.ro.* .rela.gnu.linkonce.d.rel.ro.*) }",
    "  .rela.data      : { *(.rela.data .rela.data.* .rela.gnu.linkonce.d.*) }",
    "  .rela.tdata     : { *(.rela.tdata .rela.tdata.* .rela.gnu.linkonce.td.*) }",
    "  .rela.tbss      : { *(.rela.tbss .rela.tbss.* .rela.gnu.linkonce.tb.*) }",
    "  .rela.got       : { *(.rela.got) }",
    "  .rela.bss       : { *(.rela.bss .rela.bss.* .rela.gnu.linkonce.b.*) }",
    "  .rela.ldata     : { *(.rela.ldata .rela.ldata.* .rela.gnu.linkonce.l.*) }",
    "  .rela.lbss      : { *(.rela.lbss .rela.lbss.* .rela.gnu.linkonce.lb.*) }",
    "  .rela.lrodata   : { *(.rela.lrodata .rela.lrodata.* .rela.gnu.linkonce.lr.*) }",
    "  .rela.ifunc     : { *(.rela.ifunc) }",
    "  .rela.plt       :",
    "    {",
    "      *(.rela.plt)",
    "    }",
    "  .plt            : { *(.plt) }",
    "  .plt.got        : { *(.plt.got) }",
)

_TEXT = (
    "  .text           :",
    "  {",
    "    *(.text)",
    "    PROVIDE_HIDDEN (__tls_get_new = __tls_get_addr);",
    "    PROVIDE_HIDDEN (__tls_get_addr_start = .);",
    "    PROVIDE(__tls_get_addr = .);",
    "    *(.text.__tls_get_addr)",
    "    . += 0x80;",
    "    PROVIDE_HIDDEN (__tls_get_addr_end = .);",
    "    *(.text.*)",
    "  }",
    "  PROVIDE (__etext = .);",
    "  PROVIDE (_etext = .);",
    "  PROVIDE (etext = .);",
)

_RODATA = (
    "  .rodata         : { *(.rodata .rodata.* ) }",
    "  .eh_frame       : ONLY_IF_RO { KEEP (*(.eh_frame)) *(.eh_frame.*) }",
    "  .gcc_except_table   : ONLY_IF_RO { *(.gcc_except_table .gcc_except_table.*) }",
)

_TLS_AND_ARRAYS = (
    "  /* Adjust the address for the data segment.  We want to adjust up to",
    "     the same address within the page on the next page up.  */",
    "  . = DATA_SEGMENT_ALIGN (CONSTANT (MAXPAGESIZE), CONSTANT (COMMONPAGESIZE));",
    "  /* Thread Local Storage sections  */",
    "  .tdata          : { *(.tdata .tdata.*) }",
    "  .tbss           : { *(.tbss .tbss.*) }",
    "  .preinit_array     :",
    "  {",
    "    PROVIDE_HIDDEN (__preinit_array_start = .);",
    "    KEEP (*(.preinit_array))",
    "    PROVIDE_HIDDEN (__preinit_array_end = .);",
    "  }",
    "  .init_array     :",
    "  {",
    "    PROVIDE_HIDDEN (__init_array_start = .);",
    "    KEEP (*(SORT_BY_INIT_PRIORITY(.init_array.*) SORT_BY_INIT_PRIORITY(.ctors.*)))",
    "    KEEP (*(.init_array .ctors))",
    "    PROVIDE_HIDDEN (__init_array_end = .);",
    "  }",
    "  .fini_array     :",
    "  {",
    "    PROVIDE_HIDDEN (__fini_array_start = .);",
    "    KEEP (*(SORT_BY_INIT_PRIORITY(.fini_array.*) SORT_BY_INIT_PRIORITY(.dtors.*)))",
    "    KEEP (*(.fini_array .dtors))",
    "    PROVIDE_HIDDEN (__fini_array_end = .);",
    "  }",
)

# .got.plt must start on the RELRO page boundary when its first 24 bytes
# (the reserved GOT-PLT entries) are present.
_RELRO_AND_DATA = (
    "  .data.rel.ro : { *(.data.rel.ro.local* ) *(.data.rel.ro .data.rel.ro.* ) }",
    "  .dynamic        : { *(.dynamic) }",
    "  .got            : { *(.got) }",
    "  . = DATA_SEGMENT_RELRO_END (SIZEOF (.got.plt) >= 24 ? 24 : 0, .);",
    "  .got.plt        : { *(.got.plt)  *(.igot.plt) }",
    "  .data           :",
    "  {",
    "    *(.data .data.* )",
    "    SORT(CONSTRUCTORS)",
    "  }",
    "  _edata = .; PROVIDE (edata = .);",
)

_BSS = (
    "  __bss_start = .;",
    "  .bss            :",
    "  {",
    "   *(.dynbss)",
    "   *(.bss .bss.* )",
    "   *(COMMON)",
    "   /* Align here to ensure that the .bss section occupies space up to",
    "      _end.  Align after .bss to ensure correct alignment even if the",
    "      .bss section disappears because there are no input sections.  */",
    "   . = ALIGN(. != 0 ? 8 : 1);",
    "  }",
    "  . = ALIGN(8);",
    "  _end = .; PROVIDE (end = .);",
    "  . = DATA_SEGMENT_END (.);",
)

_DEBUG = (
    "  /* Stabs debugging sections.  */",
    "  .stab          0 : { *(.stab) }",
    "  .stabstr       0 : { *(.stabstr) }",
    "  .stab.excl     0 : { *(.stab.excl) }",
    "  .stab.exclstr  0 : { *(.stab.exclstr) }",
    "  .stab.index    0 : { *(.stab.index) }",
    "  .stab.indexstr 0 : { *(.stab.indexstr) }",
    "  .comment       0 : { *(.comment) }",
    "  /* DWARF debug sections.",
    "     Symbols in the DWARF debugging sections are relative to the beginning",
    "     of the section so we begin them at 0.  */",
    "  /* DWARF 1 */",
    "  .debug          0 : { *(.debug) }",
    "  .line           0 : { *(.line) }",
    "  /* GNU DWARF 1 extensions */",
    "  .debug_srcinfo  0 : { *(.debug_srcinfo) }",
    "  .debug_sfnames  0 : { *(.debug_sfnames) }",
    "  /* DWARF 1.1 and DWARF 2 */",
    "  .debug_aranges  0 : { *(.debug_aranges) }",
    "  .debug_pubnames 0 : { *(.debug_pubnames) }",
    "  /* DWARF 2 */",
    "  .debug_info     0 : { *(.debug_info .gnu.linkonce.wi.*) }",
    "  .debug_abbrev   0 : { *(.debug_abbrev) }",
    "  .debug_line     0 : { *(.debug_line .debug_line.* .debug_line_end ) }",
    "  .debug_frame    0 : { *(.debug_frame) }",
    "  .debug_str      0 : { *(.debug_str) }",
    "  .debug_loc      0 : { *(.debug_loc) }",
    "  .debug_macinfo  0 : { *(.debug_macinfo) }",
    "  /* DWARF 3 */",
    "  .debug_pubtypes 0 : { *(.debug_pubtypes) }",
    "  .debug_ranges   0 : { *(.debug_ranges) }",
    "  /* DWARF Extension.  */",
    "  .debug_macro    0 : { *(.debug_macro) }",
    "  .debug_addr     0 : { *(.debug_addr) }",
    "  .gnu.attributes 0 : { KEEP (*(.gnu.attributes)) }",
)

_DISCARD = (
    "  /DISCARD/ : { *(.note.GNU-stack) *(.gnu_debuglink) *(.gnu.lto_*) }",
)

SECTION_FRAGMENTS = (
    _DYNAMIC_METADATA,
    _RELOCATIONS,
    _TEXT,
    _RODATA,
    _TLS_AND_ARRAYS,
    _RELRO_AND_DATA,
    _BSS,
    _DEBUG,
    _DISCARD,
)


# ── Renderers ────────────────────────────────────────────────────────────────

def render_prologue(target: Target | None = None) -> str:
    """OUTPUT_FORMAT and OUTPUT_ARCH lines for *target* (default x86-64)."""
    if target is None:
        target = TARGETS[DEFAULT_TARGET]
    lines = [
        f"OUTPUT_FORMAT({target.output_format})",
        f"OUTPUT_ARCH({target.output_arch})",
        "",
    ]
    return "\n".join(lines)


def check_symbol(symbol: str) -> str:
    if not isinstance(symbol, str) or not symbol or _BAD_SYMBOL_CHARS.search(symbol):
        raise InvalidIdentifierError(f"invalid export symbol: {symbol!r}")
    return symbol


def render_version_map(version_tag: str, exports: Sequence[str]) -> str:
    """
    Render a VERSION block exporting *exports* under *version_tag*.

    Symbols keep their input order; duplicates are emitted as given.
    Everything not listed falls under ``local: *;``.
    """
    if not version_tag or _BAD_SYMBOL_CHARS.search(version_tag):
        raise InvalidIdentifierError(f"invalid version tag: {version_tag!r}")

    out = ["VERSION {", f"  {version_tag} {{", "    global:"]
    out.extend(f"      {check_symbol(sym)};" for sym in exports)
    out.extend([
        "    local:",
        "      *;",
        "  };",
        "}",
        "",
    ])
    return "\n".join(out)


def render_section_layout() -> str:
    """The fixed SECTIONS block for a freestanding, position-independent .so."""
    lines = ["SECTIONS", "{"]
    for fragment in SECTION_FRAGMENTS:
        lines.extend(fragment)
    lines.extend(["}", ""])
    return "\n".join(lines)


def render_script(
    version_tag: str,
    exports: Sequence[str],
    target: Target | None = None,
    with_layout: bool = True,
) -> str:
    """Compose prologue, version map and (optionally) section layout."""
    parts = [render_prologue(target), render_version_map(version_tag, exports)]
    if with_layout:
        parts.append(render_section_layout())
    return "\n".join(parts)


def write_script(text: str, stream: TextIO) -> Path:
    """Write *text* to the open *stream* and flush it; returns its resolved path."""
    path = Path(stream.name)
    try:
        stream.write(text)
        stream.flush()
    except OSError as e:
        raise IoError(f"cannot write linker script {path}: {e}") from e
    return path.resolve()
