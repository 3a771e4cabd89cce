"""
test_extractor — member materialization.

Tests verify invariant properties:
  - N non-blacklisted members → N distinct paths with byte-identical content.
  - Blacklisted members never reach the scratch directory.
  - Index-prefixed names keep duplicate identifiers apart.
"""
import io

import pytest

from ar2so.core.archive_reader import ArchiveMember, ArchiveReader
from ar2so.core.errors import InvalidIdentifierError, IoError
from ar2so.core.extractor import extract_members
from ar2so.policy.profile import DEFAULT_MEMBER_BLACKLIST


class TestRoundTrip:

    def test_content_round_trip(self, tmp_path, gnu_archive, math_members):
        reader = ArchiveReader(io.BytesIO(gnu_archive(math_members)))
        result = extract_members(reader, tmp_path)

        assert len(result.objects) == 2
        assert len(set(result.objects)) == 2
        for path, (_, data) in zip(result.objects, math_members):
            assert path.read_bytes() == data

    def test_indexed_names(self, tmp_path, math_members):
        members = [ArchiveMember(n, d) for n, d in math_members]
        result = extract_members(members, tmp_path)

        assert [p.name for p in result.objects] == ["0000_add.o", "0001_sub.o"]
        assert result.member_names == ["add.o", "sub.o"]

    def test_duplicate_identifiers_kept_apart(self, tmp_path):
        members = [ArchiveMember(b"x.o", b"first"), ArchiveMember(b"x.o", b"second")]
        result = extract_members(members, tmp_path)

        assert [p.read_bytes() for p in result.objects] == [b"first", b"second"]

    def test_raw_names(self, tmp_path, math_members):
        members = [ArchiveMember(n, d) for n, d in math_members]
        result = extract_members(members, tmp_path, indexed_names=False)

        assert [p.name for p in result.objects] == ["add.o", "sub.o"]

    def test_raw_names_duplicate_rejected(self, tmp_path):
        members = [ArchiveMember(b"x.o", b"1"), ArchiveMember(b"x.o", b"2")]
        with pytest.raises(InvalidIdentifierError, match="duplicate"):
            extract_members(members, tmp_path, indexed_names=False)

    def test_scratch_dir_not_removed(self, tmp_path, math_members):
        extract_members([ArchiveMember(n, d) for n, d in math_members], tmp_path)
        assert tmp_path.is_dir()


class TestBlacklist:

    def test_blacklisted_members_absent(self, tmp_path):
        members = [
            ArchiveMember(b"crt1.o", b"start"),
            ArchiveMember(b"lib.o", b"code"),
            ArchiveMember(b"crti.o", b"init"),
        ]
        result = extract_members(
            members, tmp_path, blacklist=DEFAULT_MEMBER_BLACKLIST, indexed_names=False,
        )

        assert [p.name for p in result.objects] == ["lib.o"]
        assert result.skipped == ["crt1.o", "crti.o"]
        on_disk = {p.name for p in tmp_path.iterdir()}
        assert on_disk == {"lib.o"}

    def test_blacklist_with_indexed_names(self, tmp_path):
        members = [ArchiveMember(b"crtn.o", b"x"), ArchiveMember(b"a.o", b"y")]
        result = extract_members(members, tmp_path, blacklist=frozenset({b"crtn.o"}))

        assert len(result.objects) == 1
        assert not any("crtn" in p.name for p in tmp_path.iterdir())


class TestErrors:

    def test_non_utf8_identifier(self, tmp_path):
        with pytest.raises(InvalidIdentifierError):
            extract_members([ArchiveMember(b"\xff\xfe.o", b"")], tmp_path)

    def test_path_separator_identifier(self, tmp_path):
        with pytest.raises(InvalidIdentifierError):
            extract_members([ArchiveMember(b"../evil.o", b"")], tmp_path, indexed_names=False)

    def test_unwritable_scratch_dir(self, tmp_path):
        missing = tmp_path / "does-not-exist"
        with pytest.raises(IoError):
            extract_members([ArchiveMember(b"a.o", b"x")], missing)
