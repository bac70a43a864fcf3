"""Exception classes for scmdiff.

Contains the error taxonomy shared by every backend:
- ScmError: Base exception carrying the backend type and operation
- RepositoryNotFoundError: No repository could be bound to a request
- NoChangesError: A diff request produced no content
- AuthenticationRequiredError: The backend needs credentials before retrying
- CommandTimeoutError: A VCS command exceeded its time limit
- CommandFailedError: A VCS command exited with an error
- InvalidConfigurationError: Settings could not be loaded or validated
- ExecutableNotFoundError: No usable git/svn executable was found
"""

from typing import Any, Dict, Optional, Sequence


class ScmError(Exception):
    """Base exception for all source-control errors."""

    def __init__(
        self,
        message: str,
        scm_type: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.scm_type = scm_type
        self.operation = operation
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Render the error for display at the CLI boundary."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "scm_type": self.scm_type,
            "operation": self.operation,
            "details": dict(self.details),
        }


class RepositoryNotFoundError(ScmError):
    """Raised when no repository can be resolved for a request."""

    pass


class NoChangesError(ScmError):
    """Raised when a diff request produces empty output."""

    pass


class AuthenticationRequiredError(ScmError):
    """Raised when the backend rejected the command for missing credentials.

    The caller may prompt the user and resubmit the same request once.
    """

    pass


class CommandTimeoutError(ScmError):
    """Raised when a VCS command does not finish within its timeout."""

    def __init__(self, argv: Sequence[str], timeout: float, **kwargs: Any):
        super().__init__(
            f"Command timed out after {timeout:g}s: {' '.join(argv)}",
            details={"timeout": timeout},
            **kwargs,
        )
        self.argv = list(argv)
        self.timeout = timeout


class CommandFailedError(ScmError):
    """Raised when a VCS command exits with a non-zero status.

    Partial stdout is kept so callers that expect a non-zero exit
    (``git diff --no-index``) can still use the output.
    """

    def __init__(
        self,
        message: str,
        argv: Sequence[str] = (),
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
        **kwargs: Any,
    ):
        details = kwargs.pop("details", None) or {}
        if returncode is not None:
            details.setdefault("returncode", returncode)
        super().__init__(message, details=details, **kwargs)
        self.argv = list(argv)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class InvalidConfigurationError(ScmError):
    """Raised when configuration files or values are invalid."""

    pass


class ExecutableNotFoundError(ScmError):
    """Raised when no git or svn executable can be located."""

    pass
