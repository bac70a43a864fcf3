"""Tests for scmdiff.diff module."""

import asyncio

import pytest

from scmdiff.backends import GitBackend, SvnBackend
from scmdiff.config import ScmSettings
from scmdiff.diff import TRUNCATION_MARKER, DiffAssembler, format_section, should_exclude_file
from scmdiff.exceptions import NoChangesError
from scmdiff.models import DiffTarget, FileChange, FileStatus, RenameInfo, VcsType
from scmdiff.status import StatusClassifier

from tests.conftest import FakeExecutor

A_DIFF = "diff --git a/a.py b/a.py\n--- a/a.py\n+++ b/a.py\n@@ -1 +1 @@\n-old\n+new\n"
LOCK_DIFF = "diff --git a/poetry.lock b/poetry.lock\n--- a/poetry.lock\n+++ b/poetry.lock\n@@ -1 +1 @@\n-1\n+2\n"


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def info(self, key, **kwargs):
        self.events.append(("info", key, kwargs))

    def warn(self, key, **kwargs):
        self.events.append(("warn", key, kwargs))

    def error(self, key, **kwargs):
        self.events.append(("error", key, kwargs))

    def keys(self):
        return [key for _, key, _ in self.events]


def make_assembler(**settings_kwargs):
    settings = ScmSettings(**settings_kwargs)
    executor = FakeExecutor(settings)
    backends = {
        VcsType.DISTRIBUTED: GitBackend(executor),
        VcsType.CENTRALIZED: SvnBackend(executor),
    }
    notifier = RecordingNotifier()
    assembler = DiffAssembler(backends, StatusClassifier(backends), settings, notifier, windows=False)
    return assembler, executor, notifier


class TestHelpers:
    """Tests for should_exclude_file and format_section."""

    def test_exclude_exact_and_glob(self):
        """Test exact names, globs and basename matches."""
        assert should_exclude_file("package-lock.json", ["package-lock.json"])
        assert should_exclude_file("deps/poetry.lock", ["*.lock"])
        assert should_exclude_file("build/out.js", ["build/*"])
        assert not should_exclude_file("src/main.py", ["*.lock", "build/*"])

    def test_section_header(self):
        """Test the header uses the status label and the path."""
        change = FileChange(path="a.py", status=FileStatus.MODIFIED)
        assert format_section(change, "body") == "=== Modified: a.py ===\nbody\n"

    def test_rename_header(self):
        """Test renamed files show the pair descriptor."""
        rename = RenameInfo(old_path="old.py", new_path="new.py", similarity=90)
        change = FileChange(path="new.py", status=FileStatus.RENAMED, rename_info=rename)
        assert format_section(change, "").startswith("=== Renamed: old.py -> new.py (90%) ===")

    def test_unknown_rendered_as_modified(self):
        """Test Unknown files are labelled Modified."""
        change = FileChange(path="a.py", status=FileStatus.UNKNOWN)
        assert format_section(change, "x\n").startswith("=== Modified: a.py ===")


class TestAssembleFiles:
    """Tests for DiffAssembler.assemble with explicit files."""

    def test_modified_file(self, git_ctx):
        """Test a modified file is diffed against HEAD."""
        assembler, executor, notifier = make_assembler()
        executor.when("rev-parse", stdout="abc\n")
        executor.when("status", "--porcelain=v1", "--", "a.py", stdout=" M a.py\n")
        executor.when("diff", "HEAD", "--", "a.py", stdout=A_DIFF)

        result = asyncio.run(assembler.assemble(git_ctx, files=["/ws/repo/a.py"]))

        assert result.content == "=== Modified: a.py ===\n" + A_DIFF
        assert result.files == ["/ws/repo/a.py"]
        assert result.target == DiffTarget.ALL
        assert result.repository_path == git_ctx.root_path
        assert "diff.files.selected" in notifier.keys()

    def test_rename_pair_produces_one_section(self, git_ctx):
        """Test requesting both sides of a rename yields a single section."""
        assembler, executor, _ = make_assembler()
        executor.when("rev-parse", stdout="abc\n")
        executor.when("diff", "--cached", "--name-status", stdout="R090\told.py\tnew.py\n")
        executor.when("status", "--porcelain=v1", "--", "new.py", stdout="R  old.py -> new.py\n")
        executor.when("diff", "--cached", "-M50%", stdout="rename from old.py\nrename to new.py\n")

        result = asyncio.run(assembler.assemble(git_ctx, files=["old.py", "new.py"]))

        assert result.content.count("=== ") == 1
        assert result.content.startswith("=== Renamed: old.py -> new.py (90%) ===\n")
        assert "rename from old.py" in result.content
        assert result.files == ["new.py"]

    def test_untracked_file(self, git_ctx):
        """Test untracked files are diffed against /dev/null."""
        assembler, executor, _ = make_assembler()
        executor.when("status", "--porcelain=v1", "--", "n.txt", stdout="?? n.txt\n")
        executor.when("diff", "--no-index", stdout="+++ b/n.txt\n+hello\n", returncode=1)

        result = asyncio.run(assembler.assemble(git_ctx, files=["n.txt"]))

        assert result.content.startswith("=== New: n.txt ===\n")
        assert "+hello" in result.content
        assert not executor.ran("diff", "HEAD")

    def test_untracked_file_never_compared_with_last_commit(self, git_ctx):
        """Test a New file is diffed against /dev/null even when HEAD exists."""
        assembler, executor, _ = make_assembler()
        executor.when("rev-parse", "--verify", stdout="abc123\n")
        executor.when("status", "--porcelain=v1", "--", "n.txt", stdout="?? n.txt\n")
        executor.when("diff", "--no-index", stdout="+++ b/n.txt\n+hello\n", returncode=1)

        result = asyncio.run(assembler.assemble(git_ctx, files=["n.txt"]))

        assert "+hello" in result.content
        assert executor.ran("diff", "--no-index", "--", "/dev/null", "n.txt")
        assert not executor.ran("diff", "HEAD")
        head_calls = [c for c in executor.calls if "HEAD" in c and "rev-parse" not in c]
        # Only the repository-wide rename probe may name HEAD
        assert all("--diff-filter=R" in c for c in head_calls)

    def test_files_outside_repository_dropped(self, git_ctx):
        """Test paths outside the root are ignored with a warning."""
        assembler, executor, notifier = make_assembler()
        executor.when("rev-parse", stdout="abc\n")
        executor.when("status", "--porcelain=v1", "--", "a.py", stdout=" M a.py\n")
        executor.when("diff", "HEAD", "--", "a.py", stdout=A_DIFF)

        result = asyncio.run(assembler.assemble(git_ctx, files=["/elsewhere/x.py", "/ws/repo/a.py"]))

        assert result.files == ["/ws/repo/a.py"]
        assert ("warn", "diff.files.outside", {"count": 1, "root": "/ws/repo"}) in notifier.events
        assert not executor.ran("status", "--porcelain=v1", "--", "/elsewhere/x.py")

    def test_all_files_outside_is_no_changes(self, git_ctx):
        """Test a request with only foreign files is empty."""
        assembler, _, _ = make_assembler()
        with pytest.raises(NoChangesError):
            asyncio.run(assembler.assemble(git_ctx, files=["/elsewhere/x.py"]))

    def test_empty_file_diff_skipped(self, git_ctx):
        """Test files with no diff output are left out."""
        assembler, executor, _ = make_assembler()
        executor.when("rev-parse", stdout="abc\n")
        executor.when("status", "--porcelain=v1", "--", "a.py", stdout=" M a.py\n")
        executor.when("diff", "HEAD", "--", "a.py", stdout=A_DIFF)

        result = asyncio.run(assembler.assemble(git_ctx, files=["a.py", "clean.py"]))

        assert result.files == ["a.py"]

    def test_excluded_file_skipped(self, git_ctx):
        """Test exclusion patterns apply to explicit files."""
        assembler, executor, _ = make_assembler(exclude_patterns=["*.lock"])
        executor.when("rev-parse", stdout="abc\n")
        executor.when("status", "--porcelain=v1", "--", "a.py", stdout=" M a.py\n")
        executor.when("diff", "HEAD", "--", "a.py", stdout=A_DIFF)

        result = asyncio.run(assembler.assemble(git_ctx, files=["poetry.lock", "a.py"]))

        assert result.files == ["a.py"]
        assert not executor.ran("status", "--porcelain=v1", "--", "poetry.lock")


class TestAssembleScopes:
    """Tests for DiffAssembler.assemble without files."""

    def test_auto_rejected(self, git_ctx):
        """Test AUTO must be resolved before assembly."""
        assembler, _, _ = make_assembler()
        with pytest.raises(ValueError):
            asyncio.run(assembler.assemble(git_ctx, target=DiffTarget.AUTO))

    def test_empty_staged_raises(self, git_ctx):
        """Test an empty staged diff raises NoChangesError."""
        assembler, _, _ = make_assembler()
        with pytest.raises(NoChangesError) as exc_info:
            asyncio.run(assembler.assemble(git_ctx, target=DiffTarget.STAGED))
        assert exc_info.value.message == "No staged changes found"
        assert exc_info.value.details["target"] == "staged"
        assert exc_info.value.details["repository"] == "/ws/repo"

    def test_staged(self, git_ctx):
        """Test the staged scope uses the index diff."""
        assembler, executor, notifier = make_assembler()
        executor.when("diff", "--cached", stdout=A_DIFF)

        result = asyncio.run(assembler.assemble(git_ctx, target=DiffTarget.STAGED))

        assert result.content == A_DIFF
        assert result.target == DiffTarget.STAGED
        assert ("info", "diff.staged.info", {"count": 1}) in notifier.events

    def test_all_includes_untracked_and_excludes_patterns(self, git_ctx):
        """Test ALL adds untracked files and honors exclusions."""
        assembler, executor, _ = make_assembler(exclude_patterns=["*.lock"])
        executor.when("rev-parse", stdout="abc\n")
        executor.when("diff", "HEAD", stdout=A_DIFF + LOCK_DIFF)
        executor.when("ls-files", stdout="notes.txt\n")
        executor.when("diff", "--no-index", stdout="+note\n", returncode=1)

        result = asyncio.run(assembler.assemble(git_ctx, target=DiffTarget.ALL))

        assert result.files == ["a.py", "notes.txt"]
        assert "poetry.lock" not in result.content
        assert "=== New: notes.txt ===\n+note\n" in result.content

    def test_truncation(self, git_ctx):
        """Test content beyond max_diff_chars is cut with a marker."""
        assembler, executor, notifier = make_assembler(max_diff_chars=20)
        executor.when("diff", "--cached", stdout=A_DIFF)

        result = asyncio.run(assembler.assemble(git_ctx, target=DiffTarget.STAGED))

        assert result.content == A_DIFF[:20] + TRUNCATION_MARKER
        assert "diff.truncated" in notifier.keys()

    def test_simplify(self, git_ctx):
        """Test whitespace folding is applied last."""
        assembler, executor, notifier = make_assembler(simplify_diff=True)
        executor.when("diff", "--cached", stdout="diff --git a/a.py b/a.py\n@@ -1 +1 @@\n-        a   =  1\n+        a = 2\n")

        result = asyncio.run(assembler.assemble(git_ctx, target=DiffTarget.STAGED))

        assert result.content == "diff --git a/a.py b/a.py\n@@ -1 +1 @@\n-  a = 1\n+  a = 2\n"
        assert "diff.simplified" in notifier.keys()

    def test_notifications_disabled(self, git_ctx):
        """Test show_notifications=False silences the notifier."""
        assembler, executor, notifier = make_assembler(show_notifications=False)
        executor.when("diff", "--cached", stdout=A_DIFF)

        asyncio.run(assembler.assemble(git_ctx, target=DiffTarget.STAGED))

        assert notifier.events == []


class TestAssembleSvn:
    """Tests for svn-specific assembly."""

    def test_new_file_synthesized(self, svn_ctx, temp_dir):
        """Test unversioned files get a synthesized diff."""
        (temp_dir / "hello.txt").write_text("a\nb\n")
        assembler, executor, _ = make_assembler()
        executor.when("status", "hello.txt", stdout="?       hello.txt\n")

        result = asyncio.run(assembler.assemble(svn_ctx, files=["hello.txt"]))

        assert result.content == (
            "=== New: hello.txt ===\n"
            "--- /dev/null\n"
            "+++ hello.txt\n"
            "@@ -0,0 +1,2 @@\n"
            "+a\n"
            "+b\n"
        )

    def test_binary_new_file(self, svn_ctx, temp_dir):
        """Test binary files are summarized."""
        (temp_dir / "logo.png").write_bytes(b"\x89PNG\x00\x01")
        assembler, executor, _ = make_assembler()
        executor.when("status", "logo.png", stdout="?       logo.png\n")

        result = asyncio.run(assembler.assemble(svn_ctx, files=["logo.png"]))

        assert "Binary file logo.png added" in result.content

    def test_deleted_file_header_only(self, svn_ctx):
        """Test deleted files are reported by header alone."""
        assembler, executor, _ = make_assembler()
        executor.when("status", "gone.c", stdout="D       gone.c\n")

        result = asyncio.run(assembler.assemble(svn_ctx, files=["gone.c"]))

        assert result.content == "=== Deleted: gone.c ===\n"
        assert result.files == ["gone.c"]

    def test_moved_file(self, svn_ctx):
        """Test moved files are labelled with the old path and no similarity."""
        assembler, executor, _ = make_assembler()
        status = "A  +    new.c\n        > moved from old.c\n"
        executor.when("status", "new.c", stdout=status)
        executor.when("status", stdout=status)
        executor.when("diff", "new.c", stdout="Index: new.c\n+x\n")

        result = asyncio.run(assembler.assemble(svn_ctx, files=["new.c", "old.c"]))

        assert result.content.startswith("=== Renamed: old.c -> new.c ===\n")
        assert result.files == ["new.c"]
