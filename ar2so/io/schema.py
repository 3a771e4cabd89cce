"""
Schema — Pydantic model for the link receipt.

One output per run:
  link_receipt.json — inputs, extracted members, script identity,
                      linker command, exit status, output verdict.

Runtime contract fields (present in every output):
  package_name, tool_version, profile_id, schema_version.
"""
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from ar2so import PACKAGE_NAME, SCHEMA_VERSION, __version__


class ArchiveInput(BaseModel):
    path: str
    sha256: str
    members_extracted: List[str] = Field(default_factory=list)
    members_skipped: List[str] = Field(default_factory=list)


class ScriptInfo(BaseModel):
    """The generated linker script, identified by content hash."""
    version_tag: str
    exports: List[str] = Field(default_factory=list)
    target: str
    with_section_layout: bool = True
    sha256: str


class LinkInfo(BaseModel):
    linker: str
    command: List[str] = Field(default_factory=list)
    returncode: int
    exit_status: int


class OutputInfo(BaseModel):
    path: str
    sha256: Optional[str] = None
    soname: Optional[str] = None
    exported_symbols: List[str] = Field(default_factory=list)
    missing_exports: List[str] = Field(default_factory=list)

    verdict: str              # ACCEPT | WARN | REJECT
    reasons: List[str] = Field(default_factory=list)


class LinkReceipt(BaseModel):
    """Run-level summary — link_receipt.json."""

    package_name: str = PACKAGE_NAME
    tool_version: str = __version__
    schema_version: str = SCHEMA_VERSION
    profile_id: str

    soname: str
    archive: ArchiveInput
    runtime_archive: Optional[str] = None
    script: ScriptInfo
    link: LinkInfo
    output: Optional[OutputInfo] = None

    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
