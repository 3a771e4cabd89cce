"""
Error taxonomy.

Every error aborts the invocation; nothing here is retried.  Only
``LinkFailure`` carries the linker's own exit code, the others map to a
tool-internal code in the runner.
"""


class Ar2soError(Exception):
    """Base class for all ar2so failures."""

    exit_code = 1


class ArchiveFormatError(Ar2soError):
    """The input is not a valid ``ar`` container, or it is truncated."""


class IoError(Ar2soError, OSError):
    """Filesystem failure reading the archive or writing scratch files."""


class InvalidIdentifierError(Ar2soError):
    """A member or symbol identifier is not usable text."""


class LinkerInvocationError(Ar2soError):
    """The external linker could not be spawned at all."""


class LinkFailure(Ar2soError):
    """The linker ran and returned a non-zero status."""

    def __init__(self, exit_code: int, command: list[str] | None = None):
        self.exit_code = exit_code
        self.command = command or []
        super().__init__(f"linker exited with status {exit_code}")
