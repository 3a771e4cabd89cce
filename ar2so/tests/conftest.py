"""
Shared pytest fixtures for ar2so tests.

Provides:
  - in-memory ``ar`` archive builders (GNU and BSD name styles);
  - a recording stand-in for the linker process;
  - on-the-fly compilation of a tiny C library with gcc + ar, for the
    end-to-end link against a real ``ld``.

Real-toolchain tests are skipped unless gcc, ar and ld are available and
the host produces x86-64 ELF objects.
"""
import platform
import shutil
import subprocess
import textwrap
from pathlib import Path
from typing import List, Sequence, Tuple

import pytest

from ar2so.core import link_driver


# ── Archive builders ─────────────────────────────────────────────────────────

def _header(name: bytes, size: int, mode: str = "644") -> bytes:
    def field(value: bytes, width: int) -> bytes:
        assert len(value) <= width
        return value + b" " * (width - len(value))

    return (
        field(name, 16)
        + field(b"0", 12)
        + field(b"0", 6)
        + field(b"0", 6)
        + field(mode.encode(), 8)
        + field(str(size).encode(), 10)
        + b"`\n"
    )


def _pad(data: bytes) -> bytes:
    return data + (b"\n" if len(data) % 2 else b"")


def build_gnu_archive(
    members: Sequence[Tuple[bytes, bytes]],
    symbol_table: bool = True,
) -> bytes:
    """GNU-style archive: '/'-terminated names, '//' table for long ones."""
    out = bytearray(b"!<arch>\n")
    if symbol_table:
        symtab = b"\x00\x00\x00\x00"
        out += _header(b"/", len(symtab)) + _pad(symtab)

    longnames = bytearray()
    names: List[bytes] = []
    for name, _ in members:
        if len(name) + 1 > 16:
            names.append(b"/" + str(len(longnames)).encode())
            longnames += name + b"/\n"
        else:
            names.append(name + b"/")
    if longnames:
        out += _header(b"//", len(longnames)) + _pad(bytes(longnames))

    for header_name, (_, data) in zip(names, members):
        out += _header(header_name, len(data)) + _pad(data)
    return bytes(out)


def build_bsd_archive(members: Sequence[Tuple[bytes, bytes]]) -> bytes:
    """BSD-style archive: names in the data area via '#1/<len>'."""
    out = bytearray(b"!<arch>\n")
    symdef = b"__.SYMDEF SORTED"
    out += _header(b"#1/" + str(len(symdef)).encode(), len(symdef) + 4) + _pad(symdef + b"\x00" * 4)
    for name, data in members:
        payload = name + data
        out += _header(b"#1/" + str(len(name)).encode(), len(payload)) + _pad(payload)
    return bytes(out)


# Fake relocatable objects: content only needs to round-trip.
ADD_O = b"\x7fELF\x02\x01\x01" + b"add-object-body" + b"\x00" * 9
SUB_O = b"\x7fELF\x02\x01\x01" + b"sub-object-body-odd"


@pytest.fixture
def math_members() -> List[Tuple[bytes, bytes]]:
    return [(b"add.o", ADD_O), (b"sub.o", SUB_O)]


@pytest.fixture
def libmath(tmp_path, math_members) -> Path:
    """``libmath.a`` with members add.o and sub.o."""
    p = tmp_path / "libmath.a"
    p.write_bytes(build_gnu_archive(math_members))
    return p


@pytest.fixture
def not_archive(tmp_path) -> Path:
    """A file that is not an ar archive."""
    p = tmp_path / "libbroken.a"
    p.write_bytes(b"This is not an archive.\x00\x00\x00")
    return p


# ── Linker stand-in ──────────────────────────────────────────────────────────

class FakeLinker:
    """Records every argv passed to subprocess.run in the link driver."""

    def __init__(self, returncode: int = 0, write_output: bool = False):
        self.returncode = returncode
        self.write_output = write_output
        self.calls: List[List[str]] = []
        self.scripts: List[str] = []
        self.objects_existed: List[bool] = []

    def __call__(self, cmd, *args, **kwargs):
        self.calls.append(list(cmd))
        script = Path(cmd[cmd.index("-T") + 1])
        self.scripts.append(script.read_text())
        self.objects_existed.append(
            all(Path(a).exists() for a in cmd[1:cmd.index("-o")])
        )
        if self.write_output and self.returncode == 0:
            Path(cmd[cmd.index("-o") + 1]).write_bytes(b"not really an ELF file")
        return subprocess.CompletedProcess(cmd, self.returncode)

    @property
    def last(self) -> List[str]:
        return self.calls[-1]


@pytest.fixture
def fake_linker(monkeypatch):
    """Install a FakeLinker that exits 0; tests may change ``returncode``."""
    fake = FakeLinker()
    monkeypatch.setattr(link_driver.subprocess, "run", fake)
    return fake


# ── Real toolchain ───────────────────────────────────────────────────────────

MATH_C = {
    "add.c": textwrap.dedent("""\
        static int bias = 0;

        int math_add(int a, int b) {
            return a + b + bias;
        }
    """),
    "sub.c": textwrap.dedent("""\
        int math_internal_helper(int a) {
            return -a;
        }

        int math_sub(int a, int b) {
            return a + math_internal_helper(b);
        }
    """),
}


def _toolchain_available() -> bool:
    return all(shutil.which(t) for t in ("gcc", "ar", "ld"))


@pytest.fixture(scope="session")
def toolchain_ok():
    """Skip unless gcc/ar/ld exist on an x86-64 ELF host."""
    if not _toolchain_available():
        pytest.skip("gcc, ar and ld are required for end-to-end link tests")
    if platform.system() != "Linux" or platform.machine() != "x86_64":
        pytest.skip("end-to-end link tests need an x86-64 Linux host")


@pytest.fixture(scope="session")
def real_libmath(tmp_path_factory, toolchain_ok) -> Path:
    """libmath.a compiled from MATH_C with -fPIC, archived with ar."""
    d = tmp_path_factory.mktemp("libmath_real")
    objects = []
    for name, source in MATH_C.items():
        src = d / name
        src.write_text(source)
        obj = src.with_suffix(".o")
        subprocess.run(
            ["gcc", "-O1", "-fPIC", "-ffreestanding", "-fno-stack-protector",
             "-c", str(src), "-o", str(obj)],
            check=True, capture_output=True, timeout=30,
        )
        objects.append(str(obj))
    archive = d / "libmath.a"
    subprocess.run(
        ["ar", "rcs", str(archive), *objects],
        check=True, capture_output=True, timeout=30,
    )
    return archive


@pytest.fixture
def gnu_archive():
    """The GNU archive builder, for tests that need custom members."""
    return build_gnu_archive


@pytest.fixture
def bsd_archive():
    """The BSD archive builder."""
    return build_bsd_archive
