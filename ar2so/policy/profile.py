"""
Profile — link-profile descriptor and tunable parameters.

The profile encapsulates all policy knobs so that core logic contains
no opinions.  Switching between the freestanding and the CRT-aware
variant is a profile change, not a code change.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, Optional


@dataclass(frozen=True)
class Target:
    """Output object format and architecture for the script prologue."""

    name: str
    output_format: str
    output_arch: str
    elf_machine: str   # pyelftools e_machine name, e.g. "EM_X86_64"


TARGETS: Dict[str, Target] = {
    "x86_64": Target("x86_64", "elf64-x86-64", "i386:x86-64", "EM_X86_64"),
    "aarch64": Target("aarch64", "elf64-littleaarch64", "aarch64", "EM_AARCH64"),
}

DEFAULT_TARGET = "x86_64"

# Startup objects that must never end up inside a shared object.
DEFAULT_MEMBER_BLACKLIST: FrozenSet[bytes] = frozenset({
    b"crt1.o",
    b"Scrt1.o",
    b"rcrt1.o",
    b"gcrt1.o",
    b"crti.o",
    b"crtn.o",
})


@dataclass(frozen=True)
class Profile:
    """Describes how a static archive is turned into a shared object."""

    # Identity
    profile_id: str

    target: Target = TARGETS[DEFAULT_TARGET]

    # Extraction
    member_blacklist: FrozenSet[bytes] = frozenset()
    indexed_member_names: bool = True

    # Script / link
    with_section_layout: bool = True
    require_runtime_archive: bool = False
    embed_soname: bool = True

    # Exit status used when the linker dies from a signal.
    # None -> 128 + signal number; any int -> that code (0 is the legacy behaviour).
    signal_exit_code: Optional[int] = None

    @classmethod
    def freestanding(cls) -> "Profile":
        """No C runtime: every member extracted, full section layout."""
        return cls(profile_id="freestanding-nostdlib")

    @classmethod
    def crt(cls) -> "Profile":
        """Runtime archive linked alongside the members; startup objects dropped."""
        return cls(
            profile_id="crt-static-runtime",
            member_blacklist=DEFAULT_MEMBER_BLACKLIST,
            indexed_member_names=False,
            with_section_layout=False,
            require_runtime_archive=True,
        )

    def with_target(self, name: str) -> "Profile":
        try:
            target = TARGETS[name]
        except KeyError:
            raise ValueError(
                f"unknown target {name!r}, expected one of {sorted(TARGETS)}"
            )
        return replace(self, target=target)

    def with_extra_blacklist(self, names) -> "Profile":
        extra = frozenset(n.encode("utf-8") if isinstance(n, str) else n for n in names)
        return replace(self, member_blacklist=self.member_blacklist | extra)
