"""Tests for scmdiff.cli module."""

import pytest
from typer.testing import CliRunner

from scmdiff import __version__
from scmdiff.cli import EchoClipboard, app
from scmdiff.config import ScmSettings
from scmdiff.models import RegisteredRepository, VcsType
from scmdiff.session import ScmSession

from tests.conftest import FakeExecutor

runner = CliRunner()

A_DIFF = "diff --git a/a.py b/a.py\n--- a/a.py\n+++ b/a.py\n@@ -1 +1 @@\n-old\n+new\n"


@pytest.fixture
def repo(temp_dir):
    return temp_dir.resolve()


@pytest.fixture
def script():
    """Rules and recorded calls shared with the session the CLI opens."""
    return FakeExecutor()


@pytest.fixture
def fake_session(mocker, repo, script):
    opened = []

    async def _open(path, overrides=None):
        settings = ScmSettings(**{k: v for k, v in (overrides or {}).items() if v is not None})
        executor = FakeExecutor(settings)
        executor.rules = script.rules
        executor.calls = script.calls
        session = ScmSession(
            settings,
            registry=[RegisteredRepository(root_path=str(repo), vcs_type=VcsType.DISTRIBUTED)],
            clipboard=EchoClipboard(),
            executor=executor,
        )
        opened.append((path, overrides))
        return session

    mocker.patch("scmdiff.cli.open_session", new=_open)
    return opened


class TestVersion:
    """Tests for the --version option."""

    def test_version(self):
        """Test version output."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestDiffCommand:
    """Tests for scmdiff diff command."""

    def test_staged_diff(self, fake_session, script, repo):
        """Test AUTO resolves to staged changes and prints them."""
        script.when("diff", "--cached", "--name-only", stdout="a.py\n")
        script.when("diff", "--cached", stdout=A_DIFF)

        result = runner.invoke(app, ["diff", "-C", str(repo)])

        assert result.exit_code == 0
        assert "[staged] 1 file(s)" in result.output
        assert "+new" in result.output

    def test_no_staged_changes_hint(self, fake_session, repo):
        """Test an empty staged diff exits 1 with a hint."""
        result = runner.invoke(app, ["diff", "--target", "staged", "-C", str(repo)])

        assert result.exit_code == 1
        assert "No staged changes found" in result.output
        assert "--target all" in result.output

    def test_overrides_passed(self, fake_session, script, repo):
        """Test --simplify and --max-chars reach the settings."""
        script.when("diff", "--cached", stdout=A_DIFF)

        result = runner.invoke(
            app, ["diff", "--target", "staged", "--simplify", "--max-chars", "500", "-C", str(repo)]
        )

        assert result.exit_code == 0
        assert fake_session[0][1] == {"simplify_diff": True, "max_diff_chars": 500}

    def test_explicit_files(self, fake_session, script, repo):
        """Test file arguments are diffed individually."""
        script.when("status", stdout=" M a.py\n")
        script.when("diff", "--", "a.py", stdout=A_DIFF)

        result = runner.invoke(app, ["diff", str(repo / "a.py"), "-C", str(repo)])

        assert result.exit_code == 0
        assert "=== Modified: a.py ===" in result.output


class TestDetectAndStatus:
    """Tests for scmdiff detect and status commands."""

    def test_detect(self, fake_session, script, repo):
        """Test staged detection output."""
        script.when("diff", "--cached", "--name-only", stdout="a.py\n")

        result = runner.invoke(app, ["detect", "-C", str(repo)])

        assert result.exit_code == 0
        assert "Staged files: 1" in result.output
        assert "Recommended target: staged" in result.output

    def test_status(self, fake_session, script, repo):
        """Test single-file classification."""
        script.when("status", stdout="R  old.py -> a.py\n")

        result = runner.invoke(app, ["status", str(repo / "a.py")])

        assert result.exit_code == 0
        assert "Renamed: old.py -> a.py" in result.output


class TestLogCommands:
    """Tests for scmdiff log and recent commands."""

    def test_log_first_line(self, fake_session, script, repo):
        """Test subjects are printed."""
        script.when("log", stdout="Add x\nFix y\n")

        result = runner.invoke(app, ["log", "--first-line", "-C", str(repo)])

        assert result.exit_code == 0
        assert "Add x\nFix y\n" in result.output

    def test_no_commits(self, fake_session, repo):
        """Test an empty history is reported."""
        result = runner.invoke(app, ["log", "-C", str(repo)])
        assert result.exit_code == 0
        assert "No commits found" in result.output

    def test_recent(self, fake_session, script, repo):
        """Test recent messages are listed."""
        script.when("log", "-n5", "--pretty=format:%s", stdout="Add x")

        result = runner.invoke(app, ["recent", "-C", str(repo)])

        assert result.exit_code == 0
        assert "  - Add x" in result.output


class TestMessageCommand:
    """Tests for scmdiff message command."""

    def test_message_printed_without_clipboard(self, fake_session, repo):
        """Test the message is echoed for manual copying."""
        result = runner.invoke(app, ["message", "Fix the parser", "-C", str(repo)])

        assert result.exit_code == 0
        assert "copy manually" in result.output
        assert "Fix the parser" in result.output


class TestCommitCommand:
    """Tests for scmdiff commit command."""

    def test_commit(self, fake_session, script, repo):
        """Test a confirmed commit runs the backend."""
        result = runner.invoke(app, ["commit", "-m", "Add x", "--yes", "-C", str(repo)])

        assert result.exit_code == 0
        assert "Commit successful!" in result.output
        assert script.ran("commit", "-m", "Add x")

    def test_cancelled(self, fake_session, script, repo):
        """Test declining the prompt commits nothing."""
        result = runner.invoke(app, ["commit", "-m", "Add x", "-C", str(repo)], input="n\n")

        assert result.exit_code == 0
        assert "Commit cancelled" in result.output
        assert not script.ran("commit")

    def test_auth_retry_once(self, fake_session, script, repo):
        """Test an auth failure is resubmitted once after confirmation."""
        script.when("commit", returncode=1, stderr="fatal: Authentication failed for 'https://x'")

        result = runner.invoke(app, ["commit", "-m", "Add x", "--yes", "-C", str(repo)], input="y\n")

        assert result.exit_code == 1
        assert "Authentication required" in result.output
        assert len([c for c in script.calls if "commit" in c]) == 2

    def test_auth_declined(self, fake_session, script, repo):
        """Test declining authentication does not resubmit."""
        script.when("commit", returncode=1, stderr="fatal: Authentication failed for 'https://x'")

        result = runner.invoke(app, ["commit", "-m", "Add x", "--yes", "-C", str(repo)], input="n\n")

        assert result.exit_code == 1
        assert len([c for c in script.calls if "commit" in c]) == 1


class TestErrors:
    """Tests for error reporting."""

    def test_repository_not_found(self, mocker, repo):
        """Test a missing repository exits 1 with an error."""

        async def _open(path, overrides=None):
            return ScmSession(executor=FakeExecutor())

        mocker.patch("scmdiff.cli.open_session", new=_open)

        result = runner.invoke(app, ["detect", "-C", str(repo)])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_repos_lists_working_copies(self, repo):
        """Test svn working copies are listed."""
        (repo / "wc" / ".svn").mkdir(parents=True)

        result = runner.invoke(app, ["repos", str(repo)])

        assert result.exit_code == 0
        assert "svn\t" in result.output
