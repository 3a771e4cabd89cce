"""
Runner — top-level orchestration: static archive → shared object.

This module ties archive extraction, script synthesis, the link step
and output inspection together into a single ``run_link`` function that
can be called from other tooling or from the CLI below.

Usage::

    python -m ar2so.runner --staticlib libfoo.a --export foo_init \\
        --export foo_run -o libfoo.so
"""
from __future__ import annotations

import argparse
import hashlib
import logging
import sys
import tempfile
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from elftools.common.exceptions import ELFError

from ar2so import PACKAGE_NAME
from ar2so.config import get_settings
from ar2so.core.archive_reader import open_archive
from ar2so.core.elf_reader import SharedObjectMeta, read_shared_object, sha256_file
from ar2so.core.errors import Ar2soError, IoError
from ar2so.core.extractor import extract_members
from ar2so.core.link_driver import DEFAULT_LINKER, LinkResult, build_command, run_linker
from ar2so.core.linker_script import render_script, write_script
from ar2so.core.soname import derive_soname, short_soname
from ar2so.io.schema import ArchiveInput, LinkInfo, LinkReceipt, OutputInfo, ScriptInfo
from ar2so.io.writer import write_receipt
from ar2so.policy.profile import TARGETS, Profile
from ar2so.policy.verdict import (
    OutputRejectReason,
    Verdict,
    judge_output,
    missing_exports,
)

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Everything one invocation produced."""

    link: LinkResult
    soname: str
    version_tag: str
    script_text: str
    objects: List[str] = field(default_factory=list)
    verdict: Optional[Verdict] = None
    reasons: List[str] = field(default_factory=list)
    receipt_path: Optional[Path] = None

    @property
    def exit_status(self) -> int:
        return self.link.exit_status


def _inspect_output(output: Path) -> Optional[SharedObjectMeta]:
    try:
        return read_shared_object(str(output))
    except (ELFError, OSError) as e:
        logger.warning("Cannot inspect %s as ELF: %s", output, e)
        return None


def run_link(
    staticlib: str | Path,
    exports: Sequence[str],
    output: str | Path,
    soname: Optional[str] = None,
    linker: str = DEFAULT_LINKER,
    runtime_archive: Optional[str | Path] = None,
    profile: Optional[Profile] = None,
    receipt_dir: Optional[Path] = None,
) -> RunResult:
    """
    Turn *staticlib* into a shared object at *output*.

    Parameters
    ----------
    staticlib : path
        Input ``ar`` archive.
    exports : sequence of str
        Symbols placed under ``global:`` in the version map, in order.
    output : path
        Shared object to produce.
    soname : str, optional
        Explicit soname; derived from the archive name otherwise.
    linker : str
        GNU-ld compatible linker executable.
    runtime_archive : path, optional
        Static runtime archive linked after the extracted objects.
    profile : Profile, optional
        Defaults to ``Profile.freestanding()``, or ``Profile.crt()`` when
        a runtime archive is given.
    receipt_dir : Path, optional
        Directory for ``link_receipt.json``.  Nothing is written if None.

    Returns
    -------
    RunResult

    Raises
    ------
    Ar2soError
        Any extraction, script or invocation failure, and ``LinkFailure``
        when the linker exits non-zero.
    """
    if profile is None:
        profile = Profile.crt() if runtime_archive is not None else Profile.freestanding()
    if profile.require_runtime_archive and runtime_archive is None:
        raise ValueError(f"profile {profile.profile_id} requires a runtime archive")

    try:
        archive_path = Path(staticlib).resolve(strict=True)
    except OSError as e:
        raise IoError(f"cannot resolve archive {staticlib}: {e}") from e

    soname = derive_soname(archive_path, soname)
    version_tag = short_soname(soname)
    exports = list(exports)
    output = Path(output)

    script_text = render_script(
        version_tag,
        exports,
        target=profile.target,
        with_layout=profile.with_section_layout,
    )

    with ExitStack() as stack:
        scratch = Path(stack.enter_context(tempfile.TemporaryDirectory(prefix="ar2so-")))

        with open_archive(archive_path) as reader:
            extraction = extract_members(
                reader,
                scratch,
                blacklist=profile.member_blacklist,
                indexed_names=profile.indexed_member_names,
            )

        script_file = stack.enter_context(
            tempfile.NamedTemporaryFile(mode="w", prefix="ar2so-", suffix=".ld")
        )
        script_path = write_script(script_text, script_file)

        cmd = build_command(
            extraction.objects,
            output,
            script_path,
            linker=linker,
            runtime_archive=runtime_archive,
            soname=soname if profile.embed_soname else None,
        )
        logger.debug("%s", script_text)

        link = run_linker(cmd, signal_exit_code=profile.signal_exit_code)

    result = RunResult(
        link=link,
        soname=soname,
        version_tag=version_tag,
        script_text=script_text,
        objects=[str(o) for o in extraction.objects],
    )

    output_info = None
    if link.exit_status == 0 and link.returncode == 0:
        if output.exists():
            meta = _inspect_output(output)
            result.verdict, result.reasons = judge_output(
                meta, exports, version_tag, soname, profile
            )
            output_info = OutputInfo(
                path=str(output),
                sha256=meta.file_sha256 if meta else sha256_file(output),
                soname=meta.soname if meta else None,
                exported_symbols=meta.exported_symbols if meta else [],
                missing_exports=missing_exports(meta, exports) if meta else [],
                verdict=result.verdict.value,
                reasons=result.reasons,
            )
        else:
            result.verdict = Verdict.REJECT
            result.reasons = [OutputRejectReason.NO_OUTPUT.value]
            output_info = OutputInfo(
                path=str(output),
                verdict=result.verdict.value,
                reasons=result.reasons,
            )
        logger.info("Output verdict: %s %s", result.verdict.value, result.reasons)

    if receipt_dir is not None:
        receipt = LinkReceipt(
            profile_id=profile.profile_id,
            soname=soname,
            archive=ArchiveInput(
                path=str(archive_path),
                sha256=sha256_file(archive_path),
                members_extracted=extraction.member_names,
                members_skipped=extraction.skipped,
            ),
            runtime_archive=str(runtime_archive) if runtime_archive is not None else None,
            script=ScriptInfo(
                version_tag=version_tag,
                exports=exports,
                target=profile.target.name,
                with_section_layout=profile.with_section_layout,
                sha256=hashlib.sha256(script_text.encode("utf-8")).hexdigest(),
            ),
            link=LinkInfo(
                linker=linker,
                command=link.command,
                returncode=link.returncode,
                exit_status=link.exit_status,
            ),
            output=output_info,
        )
        result.receipt_path = write_receipt(receipt, Path(receipt_dir))

    link.check()
    return result


# ── CLI ──────────────────────────────────────────────────────────────────────

def _build_parser(settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ar2so",
        description="ar2so — generate freestanding shared libraries from a static archive",
    )
    parser.add_argument(
        "--staticlib",
        required=True,
        help="Static archive to repackage",
    )
    parser.add_argument(
        "--export",
        dest="exports",
        action="extend",
        nargs="+",
        required=True,
        help="Symbol name to export (repeatable)",
    )
    parser.add_argument(
        "-o", "--output",
        required=True,
        help="Output file name",
    )
    parser.add_argument(
        "--soname",
        default=None,
        help="Soname to embed; derived from the archive name by default",
    )
    parser.add_argument(
        "--with-ld",
        dest="linker",
        default=settings.AR2SO_LINKER,
        help="GNU ld compatible linker to use (default: %(default)s)",
    )
    parser.add_argument(
        "--runtime-archive",
        default=None,
        help="Static runtime archive linked alongside the extracted objects",
    )
    parser.add_argument(
        "--exclude-member",
        action="append",
        default=[],
        help="Archive member never to extract (repeatable)",
    )
    parser.add_argument(
        "--target",
        choices=sorted(TARGETS),
        default=settings.AR2SO_TARGET,
        help="Output format / architecture (default: %(default)s)",
    )
    parser.add_argument(
        "--receipt-dir",
        type=Path,
        default=Path(settings.AR2SO_RECEIPT_DIR) if settings.AR2SO_RECEIPT_DIR else None,
        help="Directory to write link_receipt.json",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging (command line and full script)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = get_settings()
    parser = _build_parser(settings)
    args = parser.parse_args(argv)
    # argparse does not check defaults against choices.
    if args.target not in TARGETS:
        parser.error(f"unknown target {args.target!r}, expected one of {sorted(TARGETS)}")

    level = logging.DEBUG if args.verbose else getattr(logging, settings.AR2SO_LOG_LEVEL.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(PACKAGE_NAME).setLevel(level)

    profile = Profile.crt() if args.runtime_archive else Profile.freestanding()
    profile = profile.with_target(args.target)
    if args.exclude_member:
        profile = profile.with_extra_blacklist(args.exclude_member)

    try:
        result = run_link(
            staticlib=args.staticlib,
            exports=args.exports,
            output=args.output,
            soname=args.soname,
            linker=args.linker,
            runtime_archive=args.runtime_archive,
            profile=profile,
            receipt_dir=args.receipt_dir,
        )
    except Ar2soError as e:
        logger.error("%s", e)
        return e.exit_code

    return result.exit_status


if __name__ == "__main__":
    sys.exit(main())
