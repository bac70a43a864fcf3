"""CLI entry point for scmdiff.

This module is the boundary layer: it loads settings, opens a session for
the working directory, prints results and turns ScmError into exit codes.
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer

from scmdiff import __version__
from scmdiff.config import load_settings
from scmdiff.exceptions import AuthenticationRequiredError, NoChangesError, ScmError
from scmdiff.host import StaticEditorState
from scmdiff.logging_config import setup_logging
from scmdiff.models import DiffRequest, DiffTarget, FileStatus
from scmdiff.session import ScmSession

app = typer.Typer(
    name="scmdiff",
    help="scmdiff: diffs, status and commits for git and svn working copies",
    add_completion=False,
)

_state = {"verbose": False}


class EchoClipboard:
    """Print text for manual copying when no system clipboard is available."""

    async def write_text(self, text: str) -> None:
        typer.echo("Commit message (copy manually):", err=True)
        typer.echo(text)


async def open_session(repo: Path, overrides: Optional[dict] = None) -> ScmSession:
    """Load settings and register the repositories found at ``repo``."""
    settings = load_settings(repo_root=repo, overrides=overrides)
    session = ScmSession(
        settings,
        clipboard=EchoClipboard(),
        editor=StaticEditorState(workspace_folders=[str(repo)]),
        auth_confirm=_confirm_auth,
    )
    await session.discover([str(repo)])
    return session


def _confirm_auth(error: AuthenticationRequiredError) -> bool:
    typer.echo(f"Authentication required: {error.message}", err=True)
    return typer.confirm("Authenticate in another terminal, then retry?", default=True)


def _abs(paths: Optional[list[str]]) -> Optional[list[str]]:
    if not paths:
        return None
    return [str(Path(p).resolve()) for p in paths]


def _fail(error: ScmError) -> None:
    typer.echo(f"Error: {error}", err=True)
    if _state["verbose"]:
        typer.echo(json.dumps(error.to_dict(), indent=2, default=str), err=True)
    raise typer.Exit(1)


def _repo_option() -> Path:
    return typer.Option(
        Path("."),
        "--repo",
        "-C",
        help="Path inside the working copy (default: current directory)",
    )


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"scmdiff {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show errors"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Append logs to a file"),
    version: bool = typer.Option(
        False, "--version", callback=version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """Diffs, status and commits for git and svn working copies."""
    _state["verbose"] = verbose
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)


@app.command("diff")
def diff_command(
    files: Optional[list[str]] = typer.Argument(None, help="Files to diff (default: whole repository)"),
    target: DiffTarget = typer.Option(DiffTarget.AUTO, "--target", "-t", help="staged, all or auto"),
    simplify: Optional[bool] = typer.Option(None, "--simplify/--no-simplify", help="Fold whitespace"),
    max_chars: Optional[int] = typer.Option(None, "--max-chars", help="Truncate the diff"),
    repo: Path = _repo_option(),
) -> None:
    """Print the diff for files or for the selected scope."""
    repo = repo.resolve()
    overrides = {"simplify_diff": simplify, "max_diff_chars": max_chars}

    async def _run():
        session = await open_session(repo, overrides)
        request = DiffRequest(
            files=tuple(_abs(files)) if files else None,
            target=target,
            explicit_repository_path=str(repo),
        )
        return await session.get_diff(request)

    try:
        result = asyncio.run(_run())
    except NoChangesError as e:
        typer.echo(e.message, err=True)
        if e.details.get("target") == DiffTarget.STAGED.value:
            typer.echo("Stage changes first, or use --target all.", err=True)
        raise typer.Exit(1)
    except ScmError as e:
        _fail(e)

    typer.echo(f"[{result.target.value}] {len(result.files)} file(s)", err=True)
    typer.echo(result.content, nl=not result.content.endswith("\n"))


@app.command("detect")
def detect_command(
    no_cache: bool = typer.Option(False, "--no-cache", help="Ignore cached detection results"),
    repo: Path = _repo_option(),
) -> None:
    """Report whether the repository has staged changes."""
    repo = repo.resolve()

    async def _run():
        session = await open_session(repo)
        return await session.detect_staged(str(repo), use_cache=not no_cache)

    try:
        result = asyncio.run(_run())
    except ScmError as e:
        _fail(e)

    typer.echo(f"Repository: {result.repository_path}")
    typer.echo(f"Staged files: {result.staged_file_count}")
    for path in result.staged_files:
        typer.echo(f"  {path}")
    typer.echo(f"Recommended target: {result.recommended_target.value}")
    if result.error_message:
        typer.echo(f"Detection error: {result.error_message}", err=True)


@app.command("status")
def status_command(
    file: str = typer.Argument(..., help="File to classify"),
) -> None:
    """Classify a single file (new, added, modified, deleted, renamed...)."""
    path = Path(file).resolve()

    async def _run():
        session = await open_session(path.parent if not path.is_dir() else path)
        return await session.classify(str(path))

    try:
        change = asyncio.run(_run())
    except ScmError as e:
        _fail(e)

    if change.status == FileStatus.RENAMED and change.rename_info:
        typer.echo(f"{change.status.label}: {change.rename_info.descriptor}")
    else:
        typer.echo(f"{change.status.label}: {change.path}")


@app.command("log")
def log_command(
    base: Optional[str] = typer.Option(None, "--base", help="Base branch or revision"),
    head: Optional[str] = typer.Option(None, "--head", help="Head branch or revision"),
    first_line: bool = typer.Option(False, "--first-line", help="Only print each message's first line"),
    repo: Path = _repo_option(),
) -> None:
    """Print commit messages between base and head."""
    repo = repo.resolve()

    async def _run():
        session = await open_session(repo)
        ctx = session.resolve(explicit_path=str(repo))
        return await session.client(ctx.vcs_type).get_commit_log(base, head, explicit_path=str(repo))

    try:
        messages = asyncio.run(_run())
    except ScmError as e:
        _fail(e)

    if not messages:
        typer.echo("No commits found.", err=True)
    for message in messages:
        typer.echo(message.split("\n", 1)[0] if first_line else message)
        if not first_line:
            typer.echo("")


@app.command("recent")
def recent_command(repo: Path = _repo_option()) -> None:
    """Print recent repository and user commit messages."""
    repo = repo.resolve()

    async def _run():
        session = await open_session(repo)
        ctx = session.resolve(explicit_path=str(repo))
        return await session.client(ctx.vcs_type).get_recent_commit_messages(explicit_path=str(repo))

    try:
        recent = asyncio.run(_run())
    except ScmError as e:
        _fail(e)

    typer.echo("Repository:")
    for message in recent.repository:
        typer.echo(f"  - {message}")
    typer.echo("Yours:")
    for message in recent.user:
        typer.echo(f"  - {message}")


@app.command("repos")
def repos_command(
    folders: Optional[list[str]] = typer.Argument(None, help="Workspace folders to scan"),
) -> None:
    """List git and svn working copies under the given folders."""
    roots = [str(Path(f).resolve()) for f in folders or ["."]]

    async def _run():
        session = ScmSession(load_settings())
        return await session.discover(roots)

    try:
        found = asyncio.run(_run())
    except ScmError as e:
        _fail(e)

    if not found:
        typer.echo("No repositories found.", err=True)
        raise typer.Exit(1)
    for repo in found:
        typer.echo(f"{repo.vcs_type.value}\t{repo.root_path}")


@app.command("message")
def message_command(
    message: str = typer.Argument(..., help="Commit message to prepare"),
    repo: Path = _repo_option(),
) -> None:
    """Hand a commit message to the commit input (printed when no clipboard exists)."""
    repo = repo.resolve()

    async def _run():
        session = await open_session(repo)
        ctx = session.resolve(explicit_path=str(repo))
        await session.client(ctx.vcs_type).set_commit_input(message, explicit_path=str(repo))

    try:
        asyncio.run(_run())
    except ScmError as e:
        _fail(e)


@app.command("commit")
def commit_command(
    message: str = typer.Option(..., "--message", "-m", help="Commit message"),
    files: Optional[list[str]] = typer.Argument(None, help="Files to commit (default: all included changes)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    repo: Path = _repo_option(),
) -> None:
    """Commit with the given message."""
    repo = repo.resolve()
    paths = _abs(files)

    if not yes and not typer.confirm(f"Commit with message {message!r}?", default=True):
        typer.echo("Commit cancelled.", err=True)
        raise typer.Exit(0)

    async def _run():
        session = await open_session(repo)
        ctx = session.resolve(paths, explicit_path=str(repo))
        client = session.client(ctx.vcs_type)
        try:
            await client.commit(message, paths, explicit_path=str(repo))
        except AuthenticationRequiredError as e:
            # Commits are resubmitted at most once, and only after the user agrees
            if not _confirm_auth(e):
                raise
            await client.commit(message, paths, explicit_path=str(repo))

    try:
        asyncio.run(_run())
    except ScmError as e:
        _fail(e)

    typer.echo("Commit successful!", err=True)
