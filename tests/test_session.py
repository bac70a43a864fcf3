"""Tests for scmdiff.session module."""

import asyncio

import pytest

from scmdiff.config import ScmSettings
from scmdiff.exceptions import RepositoryNotFoundError
from scmdiff.models import DiffRequest, DiffTarget, FileStatus, RegisteredRepository, VcsType
from scmdiff.providers import CliProvider
from scmdiff.session import ScmClient, ScmSession

from tests.conftest import REPO_ROOT, FakeExecutor

A_DIFF = "diff --git a/a.py b/a.py\n--- a/a.py\n+++ b/a.py\n@@ -1 +1 @@\n-old\n+new\n"
X_DIFF = "diff --git a/src/x.ts b/src/x.ts\n--- a/src/x.ts\n+++ b/src/x.ts\n@@ -1 +1 @@\n-a\n+b\n"


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def info(self, key, **kwargs):
        self.events.append(("info", key, kwargs))

    def warn(self, key, **kwargs):
        self.events.append(("warn", key, kwargs))

    def error(self, key, **kwargs):
        self.events.append(("error", key, kwargs))


@pytest.fixture
def session_parts():
    settings = ScmSettings()
    executor = FakeExecutor(settings)
    notifier = RecordingNotifier()
    session = ScmSession(
        settings,
        registry=[RegisteredRepository(root_path=REPO_ROOT, vcs_type=VcsType.DISTRIBUTED)],
        notifier=notifier,
        executor=executor,
        windows=False,
    )
    return session, executor, notifier


class TestScmSessionGetDiff:
    """Tests for ScmSession.get_diff target resolution."""

    def test_auto_with_staged_changes(self, session_parts):
        """Test AUTO picks STAGED when the index has changes."""
        session, executor, notifier = session_parts
        executor.when("diff", "--cached", "--name-only", stdout="a.py\n")
        executor.when("diff", "--cached", stdout=A_DIFF)

        result = asyncio.run(session.get_diff(DiffRequest()))

        assert result.target == DiffTarget.STAGED
        assert result.content == A_DIFF
        selected = [e for e in notifier.events if e[1] == "diff.target.selected"]
        assert selected[0][2]["target"] == "staged"

    def test_auto_without_staged_changes(self, session_parts):
        """Test AUTO falls back to ALL."""
        session, executor, _ = session_parts
        executor.when("diff", "--cached", stdout="")
        executor.when("diff", stdout=A_DIFF)

        result = asyncio.run(session.get_diff(DiffRequest()))

        assert result.target == DiffTarget.ALL
        assert result.files == ["a.py"]

    def test_explicit_target(self, session_parts):
        """Test a request target overrides detection."""
        session, executor, _ = session_parts
        executor.when("diff", "--cached", "--name-only", stdout="a.py\n")
        executor.when("diff", "--cached", stdout="")
        executor.when("diff", stdout=A_DIFF)

        result = asyncio.run(session.get_diff(DiffRequest(target=DiffTarget.ALL)))

        assert result.target == DiffTarget.ALL

    def test_files_skip_detection(self, session_parts):
        """Test file requests never probe staged content."""
        session, executor, _ = session_parts
        executor.when("status", "--porcelain=v1", "--", "a.py", stdout=" M a.py\n")
        executor.when("diff", "--", "a.py", stdout=A_DIFF)

        result = asyncio.run(session.get_diff(DiffRequest(files=("/ws/repo/a.py",))))

        assert result.target == DiffTarget.ALL
        assert result.files == ["/ws/repo/a.py"]
        assert not executor.ran("diff", "--cached", "--name-only")

    def test_file_request_in_one_of_two_repositories(self):
        """Test the owning repository is diffed and the request path is echoed back."""
        executor = FakeExecutor()
        session = ScmSession(
            registry=[
                RegisteredRepository(root_path="/ws/a", vcs_type=VcsType.DISTRIBUTED),
                RegisteredRepository(root_path="/ws/b", vcs_type=VcsType.DISTRIBUTED),
            ],
            executor=executor,
            windows=False,
        )
        executor.when("status", stdout=" M src/x.ts\n")
        executor.when("diff", "--", "src/x.ts", stdout=X_DIFF)

        result = asyncio.run(
            session.get_diff(DiffRequest(files=("/ws/a/src/x.ts",), target=DiffTarget.AUTO))
        )

        assert result.repository_path == "/ws/a"
        assert result.target == DiffTarget.ALL
        assert result.files == ["/ws/a/src/x.ts"]
        assert "=== Modified: src/x.ts ===" in result.content

    def test_no_repository(self):
        """Test requests fail without a registered repository."""
        session = ScmSession(executor=FakeExecutor())
        with pytest.raises(RepositoryNotFoundError):
            asyncio.run(session.get_diff(DiffRequest()))


class TestScmSession:
    """Tests for the remaining ScmSession operations."""

    def test_provider_cached(self, session_parts):
        """Test one provider per backend family."""
        session, _, _ = session_parts
        first = asyncio.run(session.provider(VcsType.DISTRIBUTED))
        second = asyncio.run(session.provider(VcsType.DISTRIBUTED))
        assert first is second
        assert isinstance(first, CliProvider)

    def test_discover_registers(self, temp_dir):
        """Test discovered repositories become resolvable."""
        (temp_dir / "wc" / ".svn").mkdir(parents=True)
        session = ScmSession(executor=FakeExecutor(), windows=False)

        found = asyncio.run(session.discover([str(temp_dir)]))

        assert len(found) == 1
        ctx = session.resolve(vcs_type=VcsType.CENTRALIZED)
        assert ctx.root_path == found[0].root_path

    def test_classify(self, session_parts):
        """Test classification in the owning repository."""
        session, executor, _ = session_parts
        executor.when("status", stdout="?? n.txt\n")
        assert asyncio.run(session.classify("/ws/repo/n.txt")).status == FileStatus.NEW

    def test_validate_target(self, session_parts):
        """Test an empty staged scope suggests ALL."""
        session, _, _ = session_parts
        validation = asyncio.run(session.validate_target(DiffTarget.STAGED))
        assert validation.is_valid is False
        assert validation.suggestion == DiffTarget.ALL

    def test_detect_staged(self, session_parts):
        """Test detection through the session."""
        session, executor, _ = session_parts
        executor.when("diff", "--cached", "--name-only", stdout="a.py\nb.py\n")
        result = asyncio.run(session.detect_staged())
        assert result.staged_file_count == 2


class TestScmClient:
    """Tests for ScmClient class."""

    def test_is_available(self, session_parts):
        """Test availability needs a registered repository of the family."""
        session, _, _ = session_parts
        assert asyncio.run(ScmClient(session, VcsType.DISTRIBUTED).is_available()) is True
        assert asyncio.run(ScmClient(session, VcsType.CENTRALIZED).is_available()) is False

    def test_commit_invalidates_detection_cache(self, session_parts):
        """Test a commit forces the next detection to re-probe."""
        session, executor, _ = session_parts
        executor.when("diff", "--cached", "--name-only", stdout="a.py\n")
        client = session.client(VcsType.DISTRIBUTED)

        asyncio.run(session.detect_staged())
        asyncio.run(client.commit("Add a", ["a.py"]))
        calls = len(executor.calls)
        asyncio.run(session.detect_staged())

        assert executor.ran("commit", "-m", "Add a", "--", "a.py")
        assert len(executor.calls) > calls

    def test_commit_input(self, session_parts):
        """Test set and get through the selected provider."""
        session, _, _ = session_parts
        client = session.client(VcsType.DISTRIBUTED)
        asyncio.run(client.set_commit_input("Refactor"))
        assert asyncio.run(client.get_commit_input()) == "Refactor"

    def test_get_diff_with_explicit_path(self, session_parts):
        """Test an explicit repository path is honored."""
        session, executor, _ = session_parts
        session.register("/ws/other", VcsType.DISTRIBUTED)
        executor.when("diff", "--cached", stdout=A_DIFF)

        result = asyncio.run(
            session.client(VcsType.DISTRIBUTED).get_diff(target=DiffTarget.STAGED, explicit_path="/ws/other/x")
        )

        assert result.repository_path == "/ws/other"
