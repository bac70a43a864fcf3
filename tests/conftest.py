"""Shared test fixtures and configuration."""

import tempfile
from pathlib import Path
from typing import Optional

import pytest

from scmdiff.backends import GitBackend, SvnBackend
from scmdiff.config import ScmSettings
from scmdiff.exceptions import AuthenticationRequiredError, CommandFailedError
from scmdiff.models import CommandResult, RepositoryContext, VcsType
from scmdiff.runner import CommandExecutor, is_auth_failure

REPO_ROOT = "/ws/repo"


class FakeExecutor(CommandExecutor):
    """CommandExecutor that answers from scripted rules instead of spawning processes.

    Rules match on the arguments after the executable; the longest matching
    prefix wins. Unmatched commands succeed with empty output.
    """

    def __init__(self, settings: Optional[ScmSettings] = None, auth_confirm=None):
        super().__init__(settings or ScmSettings(), auth_confirm=auth_confirm)
        self.rules = []
        self.calls: list[list[str]] = []

    def when(self, *args, stdout="", stderr="", returncode=0, raises=None, executable=None):
        self.rules.append((executable, tuple(args), stdout, stderr, returncode, raises))
        return self

    def _match(self, argv):
        args = tuple(a for a in argv[1:] if a != "--non-interactive")
        best = None
        for rule in self.rules:
            executable, prefix = rule[0], rule[1]
            if executable is not None and executable != argv[0]:
                continue
            if args[:len(prefix)] == prefix and (best is None or len(prefix) > len(best[1])):
                best = rule
        return best

    async def _run_once(self, argv, cwd, *, env, timeout, max_buffer, check, vcs_type):
        argv = [str(a) for a in argv]
        self.calls.append(argv)
        rule = self._match(argv)
        if rule is None:
            return CommandResult(argv=argv)

        _, _, stdout, stderr, returncode, raises = rule
        if raises is not None:
            raise raises
        if returncode != 0:
            if is_auth_failure(stderr):
                raise AuthenticationRequiredError(stderr, scm_type=vcs_type.value if vcs_type else None)
            if check:
                raise CommandFailedError(
                    f"Command failed: {' '.join(argv)}",
                    argv=argv,
                    returncode=returncode,
                    stdout=stdout,
                    stderr=stderr,
                )
        return CommandResult(argv=argv, stdout=stdout, stderr=stderr, returncode=returncode)

    def ran(self, *args) -> bool:
        """Whether any recorded call's arguments start with ``args``."""
        for argv in self.calls:
            clean = tuple(a for a in argv[1:] if a != "--non-interactive")
            if clean[:len(args)] == args:
                return True
        return False


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings():
    """Default settings."""
    return ScmSettings()


@pytest.fixture
def executor(settings):
    """Scripted executor with default settings."""
    return FakeExecutor(settings)


@pytest.fixture
def git_backend(executor):
    return GitBackend(executor)


@pytest.fixture
def svn_backend(executor):
    return SvnBackend(executor)


@pytest.fixture
def backends(git_backend, svn_backend):
    return {VcsType.DISTRIBUTED: git_backend, VcsType.CENTRALIZED: svn_backend}


@pytest.fixture
def git_ctx():
    return RepositoryContext(root_path=REPO_ROOT, vcs_type=VcsType.DISTRIBUTED)


@pytest.fixture
def svn_ctx(temp_dir):
    return RepositoryContext(root_path=str(temp_dir), vcs_type=VcsType.CENTRALIZED)
