"""VCS command strategies.

This package provides one strategy per backend family:
- base: VcsBackend abstract base
- git: GitBackend (distributed, with an index)
- svn: SvnBackend (centralized, no index)
"""

from scmdiff.backends.base import VcsBackend
from scmdiff.backends.git import GitBackend
from scmdiff.backends.svn import SvnBackend
from scmdiff.models import VcsType

BACKENDS: dict[VcsType, type[VcsBackend]] = {
    VcsType.DISTRIBUTED: GitBackend,
    VcsType.CENTRALIZED: SvnBackend,
}

__all__ = [
    "BACKENDS",
    "GitBackend",
    "SvnBackend",
    "VcsBackend",
]
