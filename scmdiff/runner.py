"""Async VCS command runner.

Contains:
- CommandExecutor: Run git/svn with timeouts, an output cap and auth detection
- is_auth_failure: Recognize credential errors in command output
"""

import asyncio
import inspect
import os
import sys
from typing import Awaitable, Callable, Dict, Optional, Sequence, Union

from scmdiff.config import ScmSettings
from scmdiff.exceptions import (
    AuthenticationRequiredError,
    CommandFailedError,
    CommandTimeoutError,
    ExecutableNotFoundError,
    ScmError,
)
from scmdiff.logging_config import get_logger
from scmdiff.models import CommandResult, VcsType
from scmdiff.paths import format_command, to_native

logger = get_logger(__name__)

# svn: E170001 authorization failed, E170013 unable to connect,
# E215004 no more credentials
SVN_AUTH_ERROR_CODES = ("E170001", "E170013", "E215004")
GIT_AUTH_ERROR_MARKERS = (
    "Authentication failed",
    "could not read Username",
    "terminal prompts disabled",
)

_READ_CHUNK = 64 * 1024

AuthConfirm = Callable[[AuthenticationRequiredError], Union[bool, Awaitable[bool]]]


class _BufferExceeded(Exception):
    pass


def is_auth_failure(output: str) -> bool:
    """Whether command output reports missing or rejected credentials."""
    if any(code in output for code in SVN_AUTH_ERROR_CODES):
        return True
    return any(marker in output for marker in GIT_AUTH_ERROR_MARKERS)


async def _read_limited(stream: asyncio.StreamReader, limit: int) -> bytes:
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        total += len(chunk)
        if total > limit:
            raise _BufferExceeded()
        chunks.append(chunk)
    return b"".join(chunks)


def _kill(process: asyncio.subprocess.Process) -> None:
    # The child is abandoned after kill; its exit is never awaited.
    try:
        process.kill()
    except ProcessLookupError:
        pass


class CommandExecutor:
    """Run VCS commands asynchronously with bounded time and output."""

    def __init__(
        self,
        settings: Optional[ScmSettings] = None,
        auth_confirm: Optional[AuthConfirm] = None,
        windows: Optional[bool] = None,
    ):
        self.settings = settings or ScmSettings()
        self.auth_confirm = auth_confirm
        self.windows = windows

    def build_env(self, vcs_type: Optional[VcsType] = None) -> Dict[str, str]:
        """Environment for a backend's commands."""
        env = dict(os.environ)

        if vcs_type == VcsType.DISTRIBUTED:
            env["GIT_TERMINAL_PROMPT"] = "0"
        elif vcs_type == VcsType.CENTRALIZED:
            env["LC_ALL"] = self.settings.svn_locale
            env["LANG"] = self.settings.svn_locale
            if self.settings.svn_extra_paths:
                env["PATH"] = os.pathsep.join(
                    [env.get("PATH", "")] + list(self.settings.svn_extra_paths)
                )

        if sys.platform == "win32":
            env.setdefault("PYTHONIOENCODING", "utf-8")

        return env

    async def run(
        self,
        argv: Sequence[str],
        cwd: Optional[str] = None,
        *,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        max_buffer: Optional[int] = None,
        check: bool = True,
        retries: int = 0,
        vcs_type: Optional[VcsType] = None,
    ) -> CommandResult:
        """Run a command and capture its output.

        Args:
            argv: Executable and arguments (never passed through a shell).
            cwd: Working directory.
            env: Full environment; defaults to build_env(vcs_type).
            timeout: Seconds before the process is killed.
            max_buffer: Maximum bytes of stdout or stderr.
            check: Raise CommandFailedError on a non-zero exit.
            retries: Authentication retries allowed after a confirmed prompt.
            vcs_type: Backend the command belongs to, used for env and errors.

        Returns:
            CommandResult with decoded output.

        Raises:
            AuthenticationRequiredError: If credentials are missing.
            CommandTimeoutError: If the timeout elapsed.
            CommandFailedError: On non-zero exit (with check) or oversized output.
            ExecutableNotFoundError: If the executable does not exist.
        """
        try:
            return await self._run_once(
                argv, cwd, env=env, timeout=timeout, max_buffer=max_buffer,
                check=check, vcs_type=vcs_type,
            )
        except AuthenticationRequiredError as e:
            if retries <= 0 or self.auth_confirm is None:
                raise
            confirmed = self.auth_confirm(e)
            if inspect.isawaitable(confirmed):
                confirmed = await confirmed
            if not confirmed:
                raise
            logger.info("Retrying after authentication: %s", format_command(argv))
            return await self.run(
                argv, cwd, env=env, timeout=timeout, max_buffer=max_buffer,
                check=check, retries=retries - 1, vcs_type=vcs_type,
            )

    async def _run_once(
        self,
        argv: Sequence[str],
        cwd: Optional[str],
        *,
        env: Optional[Dict[str, str]],
        timeout: Optional[float],
        max_buffer: Optional[int],
        check: bool,
        vcs_type: Optional[VcsType],
    ) -> CommandResult:
        argv = [str(a) for a in argv]
        timeout = timeout if timeout is not None else self.settings.command_timeout
        limit = max_buffer if max_buffer is not None else self.settings.max_buffer
        scm_type = vcs_type.value if vcs_type else None
        operation = argv[1] if len(argv) > 1 else None

        # Normalized roots lose the long-path prefix; native form restores it
        cwd = to_native(cwd, self.windows) if cwd is not None else None
        logger.debug("Running: %s (cwd=%s)", format_command(argv), cwd)

        if cwd is not None and not os.path.isdir(cwd):
            raise CommandFailedError(
                f"Working directory does not exist: {cwd}",
                argv=argv,
                scm_type=scm_type,
                operation=operation,
            )

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=cwd,
                env=env if env is not None else self.build_env(vcs_type),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise ExecutableNotFoundError(
                f"{argv[0]} is not installed or not in PATH.",
                scm_type=scm_type,
                operation=operation,
            )

        async def _collect() -> tuple[bytes, bytes, int]:
            out, err = await asyncio.gather(
                _read_limited(process.stdout, limit),
                _read_limited(process.stderr, limit),
            )
            code = await process.wait()
            return out, err, code

        try:
            raw_out, raw_err, returncode = await asyncio.wait_for(_collect(), timeout=timeout)
        except asyncio.TimeoutError:
            _kill(process)
            raise CommandTimeoutError(
                argv, timeout, scm_type=scm_type,
                operation=operation,
            )
        except _BufferExceeded:
            _kill(process)
            raise CommandFailedError(
                f"Output exceeded {limit} bytes: {format_command(argv)}",
                argv=argv,
                scm_type=scm_type,
                operation=operation,
                details={"max_buffer": limit},
            )

        stdout = raw_out.decode("utf-8", errors="replace")
        stderr = raw_err.decode("utf-8", errors="replace")
        result = CommandResult(argv=argv, stdout=stdout, stderr=stderr, returncode=returncode)

        if returncode != 0:
            if is_auth_failure(stderr) or is_auth_failure(stdout):
                raise AuthenticationRequiredError(
                    f"Authentication required: {stderr.strip() or stdout.strip()}",
                    scm_type=scm_type,
                    operation=operation,
                )
            if check:
                raise CommandFailedError(
                    f"Command failed: {format_command(argv)}\n{stderr.strip()}",
                    argv=argv,
                    returncode=returncode,
                    stdout=stdout,
                    stderr=stderr,
                    scm_type=scm_type,
                    operation=operation,
                )

        return result

    async def run_tolerant(
        self,
        argv: Sequence[str],
        cwd: Optional[str] = None,
        **kwargs,
    ) -> str:
        """Run a command whose non-zero exit is expected; return stdout.

        ``git diff --no-index`` exits 1 when the inputs differ.
        """
        result = await self.run(argv, cwd, check=False, **kwargs)
        if result.returncode not in (0, 1):
            raise CommandFailedError(
                f"Command failed: {format_command(result.argv)}\n{result.stderr.strip()}",
                argv=result.argv,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
                scm_type=kwargs["vcs_type"].value if kwargs.get("vcs_type") else None,
            )
        return result.stdout

    async def is_available(self, executable: str, version_flag: str = "--version") -> bool:
        """Probe an executable with its version flag."""
        try:
            await self.run(
                [executable, version_flag],
                timeout=self.settings.quick_command_timeout,
            )
        except (ScmError, OSError) as e:
            logger.debug("Executable %s unavailable: %s", executable, e)
            return False
        return True
