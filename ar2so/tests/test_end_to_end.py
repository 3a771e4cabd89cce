"""
test_end_to_end — real gcc/ar/ld link of a tiny library.

Tests verify invariant properties:
  - The output is an ELF shared object for the target machine.
  - Only the requested symbols are exported, under the derived version tag.
  - The soname is embedded.

Skipped unless the toolchain is present (see conftest.toolchain_ok).
"""
from ar2so.core.archive_reader import open_archive
from ar2so.core.elf_reader import read_shared_object
from ar2so.policy.verdict import Verdict
from ar2so.runner import run_link


class TestRealLink:

    def test_archive_members(self, real_libmath):
        with open_archive(real_libmath) as reader:
            names = [m.identifier for m in reader]
        assert names == [b"add.o", b"sub.o"]

    def test_link_and_inspect(self, real_libmath, tmp_path):
        output = tmp_path / "libmath.so"
        result = run_link(real_libmath, ["math_add", "math_sub"], output)

        assert result.exit_status == 0
        assert output.exists()

        meta = read_shared_object(str(output))
        assert meta.is_shared_object
        assert meta.machine == "EM_X86_64"
        assert meta.soname == "libmath.so"
        assert "math" in meta.version_definitions
        assert "math_add" in meta.exported_symbols
        assert "math_sub" in meta.exported_symbols
        assert "math_internal_helper" not in meta.exported_symbols

        assert result.verdict in (Verdict.ACCEPT, Verdict.WARN)
        assert "MISSING_EXPORT" not in result.reasons
