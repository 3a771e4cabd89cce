"""
Verdict — structured ACCEPT / WARN / REJECT decision on a linked output.

The verdict is informational: it is logged and recorded in the receipt
but never changes the exit status, which always follows the linker.
Whether a requested symbol exists in the input objects is not checked
up front; a missing export only shows up here as a warning.

Policy rules reference the Profile but never run the linker.
"""
from enum import Enum, unique
from typing import List, Optional, Sequence, Tuple

from ar2so.core.elf_reader import SharedObjectMeta
from ar2so.policy.profile import Profile


@unique
class Verdict(str, Enum):
    ACCEPT = "ACCEPT"
    WARN = "WARN"
    REJECT = "REJECT"


@unique
class OutputRejectReason(str, Enum):
    NO_OUTPUT = "NO_OUTPUT"
    NOT_ELF = "NOT_ELF"
    NOT_SHARED_OBJECT = "NOT_SHARED_OBJECT"
    WRONG_MACHINE = "WRONG_MACHINE"


@unique
class OutputWarnReason(str, Enum):
    MISSING_EXPORT = "MISSING_EXPORT"
    UNEXPECTED_EXPORT = "UNEXPECTED_EXPORT"
    VERSION_TAG_MISSING = "VERSION_TAG_MISSING"
    SONAME_MISMATCH = "SONAME_MISMATCH"


def judge_output(
    meta: Optional[SharedObjectMeta],
    exports: Sequence[str],
    version_tag: str,
    soname: Optional[str],
    profile: Profile,
) -> Tuple[Verdict, List[str]]:
    """
    Evaluate the linked shared object against what was requested.

    *meta* is None when the output could not be read as ELF.
    Returns (Verdict, list_of_reason_strings).
    """
    if meta is None:
        return Verdict.REJECT, [OutputRejectReason.NOT_ELF.value]

    rejects: List[str] = []
    if not meta.is_shared_object:
        rejects.append(OutputRejectReason.NOT_SHARED_OBJECT.value)
    if meta.machine != profile.target.elf_machine:
        rejects.append(OutputRejectReason.WRONG_MACHINE.value)
    if rejects:
        return Verdict.REJECT, rejects

    warns: List[str] = []
    exported = set(meta.exported_symbols)
    # Wildcard patterns cannot be checked by name.
    requested = {s for s in exports if not any(c in s for c in "*?[")}

    if requested - exported:
        warns.append(OutputWarnReason.MISSING_EXPORT.value)

    # Version nodes show up in .dynsym as absolute symbols.
    extra = exported - set(exports) - set(meta.version_definitions)
    if extra and requested == set(exports):
        warns.append(OutputWarnReason.UNEXPECTED_EXPORT.value)

    if version_tag not in meta.version_definitions:
        warns.append(OutputWarnReason.VERSION_TAG_MISSING.value)

    if profile.embed_soname and soname and meta.soname != soname:
        warns.append(OutputWarnReason.SONAME_MISMATCH.value)

    if warns:
        return Verdict.WARN, warns
    return Verdict.ACCEPT, []


def missing_exports(meta: SharedObjectMeta, exports: Sequence[str]) -> List[str]:
    """Requested names absent from the dynamic symbol table, in request order."""
    exported = set(meta.exported_symbols)
    seen = set()
    out = []
    for sym in exports:
        if sym in exported or sym in seen or any(c in sym for c in "*?["):
            continue
        seen.add(sym)
        out.append(sym)
    return out
