"""
Link driver — assemble the ld command line and run it.

The linker is an opaque collaborator: we hand it an argument vector and
read back an exit status.  Its stdout/stderr go straight to ours.  There
is no retry and no timeout; a hung linker hangs this tool.
"""
from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ar2so.core.errors import LinkerInvocationError, LinkFailure

logger = logging.getLogger(__name__)

DEFAULT_LINKER = "ld"

FREESTANDING_FLAGS = (
    "-Bstatic",
    "-shared",
    "-fPIC",
    "-flto",
    "-no-undefined",
    "-nostdlib",
)


@dataclass(frozen=True)
class LinkResult:
    """Outcome of one linker run."""

    command: List[str]
    returncode: int        # raw Popen returncode; negative means killed by signal
    exit_status: int       # what this tool exits with

    @property
    def signalled(self) -> bool:
        return self.returncode < 0

    def check(self) -> "LinkResult":
        if self.exit_status != 0:
            raise LinkFailure(self.exit_status, self.command)
        return self


def build_command(
    objects: Sequence[Path | str],
    output: Path | str,
    script: Path | str,
    linker: str = DEFAULT_LINKER,
    runtime_archive: Optional[Path | str] = None,
    soname: Optional[str] = None,
) -> List[str]:
    """Argument vector for a freestanding shared link."""
    cmd = [linker]
    cmd += [str(o) for o in objects]
    if runtime_archive is not None:
        cmd.append(str(runtime_archive))
    cmd += ["-o", str(output)]
    cmd += FREESTANDING_FLAGS
    if soname:
        cmd += ["-soname", soname]
    cmd += ["-T", str(script)]
    return cmd


def exit_status_for(returncode: int, signal_exit_code: Optional[int] = None) -> int:
    """
    Map a raw child returncode to this tool's exit status.

    Normal termination passes through unchanged.  For a signal-killed
    child, *signal_exit_code* is used when set, otherwise 128 + signal.
    """
    if returncode >= 0:
        return returncode
    if signal_exit_code is not None:
        return signal_exit_code
    return 128 - returncode


def run_linker(
    command: Sequence[str],
    signal_exit_code: Optional[int] = None,
) -> LinkResult:
    """Run *command* to completion and return its ``LinkResult``."""
    cmd = list(command)
    logger.info("cmdline: %s", " ".join(cmd))
    try:
        proc = subprocess.run(cmd)
    except FileNotFoundError as e:
        raise LinkerInvocationError(f"linker not found: {cmd[0]}") from e
    except OSError as e:
        raise LinkerInvocationError(f"cannot execute linker {cmd[0]}: {e}") from e

    status = exit_status_for(proc.returncode, signal_exit_code)
    if proc.returncode < 0:
        logger.warning(
            "Linker terminated by signal %d, exiting with %d",
            -proc.returncode, status,
        )
    elif status != 0:
        logger.debug("Linker exited with status %d", status)
    return LinkResult(command=cmd, returncode=proc.returncode, exit_status=status)
