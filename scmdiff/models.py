"""Data models for scmdiff.

Contains Pydantic models and enums shared across backends:
- VcsType, DiffTarget, FileStatus, LogFormat: Enumerations
- RenameInfo, FileChange: Per-file classification
- RepositoryContext, RegisteredRepository: Repository binding
- DiffRequest, DiffResult: Diff assembly input/output
- StagedDetectionResult, DetectionErrorKind, StagedDetails, TargetValidation:
  Target selection
- CommandResult: Raw process output
- RecentCommitMessages: Commit history for message suggestions
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class VcsType(str, Enum):
    """Supported backend families."""

    DISTRIBUTED = "git"
    CENTRALIZED = "svn"


class DiffTarget(str, Enum):
    """Scope of a diff request."""

    STAGED = "staged"
    ALL = "all"
    AUTO = "auto"


class FileStatus(str, Enum):
    """Change classification for a single file."""

    NEW = "new"
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    COPIED = "copied"
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        """Human label used in diff section headers."""
        return self.value.capitalize()


class LogFormat(str, Enum):
    """Raw commit-log encodings understood by the log parser."""

    TEXT = "text"  # svn delimited text
    XML = "xml"  # svn --xml
    LINES = "lines"  # one subject per line (git --pretty=format:%s)


class RenameInfo(BaseModel):
    """A rename pair as reported by the backend."""

    old_path: str
    new_path: str
    similarity: Optional[int] = None  # Percentage, None when not reported
    raw: str = ""  # Descriptor line as emitted by the backend

    @property
    def descriptor(self) -> str:
        """Render as ``old -> new (NN%)``."""
        text = f"{self.old_path} -> {self.new_path}"
        if self.similarity is not None:
            text += f" ({self.similarity}%)"
        return text


class FileChange(BaseModel):
    """Classified change for one repository-relative path."""

    path: str
    status: FileStatus
    rename_info: Optional[RenameInfo] = None

    @model_validator(mode="after")
    def _renamed_requires_info(self) -> "FileChange":
        if self.status == FileStatus.RENAMED and self.rename_info is None:
            raise ValueError("Renamed file changes require rename_info")
        return self

    @property
    def effective_status(self) -> FileStatus:
        """Status to act on; Unknown is treated as Modified."""
        if self.status == FileStatus.UNKNOWN:
            return FileStatus.MODIFIED
        return self.status


class RepositoryContext(BaseModel):
    """A repository bound to a single request."""

    model_config = ConfigDict(frozen=True)

    root_path: str
    vcs_type: VcsType
    is_active: bool = False


class RegisteredRepository(BaseModel):
    """A repository known to the resolver, in registration order."""

    model_config = ConfigDict(frozen=True)

    root_path: str
    vcs_type: VcsType


class DiffRequest(BaseModel):
    """Input to diff assembly."""

    model_config = ConfigDict(frozen=True)

    files: Optional[tuple[str, ...]] = None
    target: DiffTarget = DiffTarget.AUTO
    explicit_repository_path: Optional[str] = None


class DiffResult(BaseModel):
    """Assembled diff text and the scope it was computed for."""

    content: str
    target: DiffTarget
    # Paths as the caller passed them for file requests, repository-relative otherwise
    files: list[str] = []
    repository_path: str = ""
    from_cache: bool = False

    @model_validator(mode="after")
    def _target_is_resolved(self) -> "DiffResult":
        if self.target == DiffTarget.AUTO:
            raise ValueError("DiffResult target must be resolved, not auto")
        return self


class DetectionErrorKind(str, Enum):
    """Why staged-content detection degraded."""

    INVALID_REPOSITORY = "invalid_repository"
    PERMISSION_DENIED = "permission_denied"
    TIMEOUT = "timeout"
    COMMAND_FAILED = "command_failed"
    UNKNOWN = "unknown"


class StagedDetectionResult(BaseModel):
    """Outcome of probing a repository for staged content."""

    has_staged_content: bool
    staged_file_count: int = 0
    staged_files: list[str] = []
    recommended_target: DiffTarget = DiffTarget.ALL
    repository_path: str = ""
    error_message: Optional[str] = None
    error_kind: Optional[DetectionErrorKind] = None


class StagedDetails(BaseModel):
    """Staged files together with added/deleted line totals."""

    files: list[str] = []
    additions: int = 0
    deletions: int = 0


class TargetValidation(BaseModel):
    """Whether a diff target yields content, with a suggestion if not."""

    is_valid: bool
    reason: Optional[str] = None
    suggestion: Optional[DiffTarget] = None


class CommandResult(BaseModel):
    """Captured output of a finished VCS command."""

    argv: list[str]
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0


class RecentCommitMessages(BaseModel):
    """Recent commit subjects for the repository and the current user."""

    repository: list[str] = []
    user: list[str] = []
