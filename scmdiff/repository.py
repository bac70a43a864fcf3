"""Repository resolution for multi-root workspaces.

Contains:
- RepositoryResolver: Bind a request to exactly one registered repository
- discover_repositories: Find git and svn working copies under workspace folders
"""

from pathlib import Path
from typing import Iterable, Optional, Sequence

from scmdiff.backends import GitBackend
from scmdiff.exceptions import ScmError
from scmdiff.host import EditorState
from scmdiff.logging_config import get_logger
from scmdiff.models import RegisteredRepository, RepositoryContext, VcsType
from scmdiff.paths import is_descendant, normalize_path, paths_equal

logger = get_logger(__name__)

SVN_ADMIN_DIR = ".svn"


class RepositoryResolver:
    """Pick the repository a request belongs to.

    Resolution order:
    1. An explicit path inside a registered root
    2. The only registered repository
    3. The first request file inside a root (longest root wins)
    4. The active editor file, then recently opened files, then the
       workspace folder holding the active file
    5. The first registered repository
    """

    def __init__(
        self,
        registry: Optional[Iterable[RegisteredRepository]] = None,
        editor: Optional[EditorState] = None,
        windows: Optional[bool] = None,
    ):
        self.registry: list[RegisteredRepository] = []
        self.editor = editor
        self.windows = windows
        for repo in registry or []:
            self.register(repo.root_path, repo.vcs_type)

    def register(self, root_path: str, vcs_type: VcsType) -> RegisteredRepository:
        """Add a repository; re-registering a root keeps its original position."""
        for repo in self.registry:
            if paths_equal(repo.root_path, root_path, self.windows):
                return repo
        repo = RegisteredRepository(root_path=normalize_path(root_path), vcs_type=vcs_type)
        self.registry.append(repo)
        return repo

    def find_owner(
        self, path: str, vcs_type: Optional[VcsType] = None
    ) -> Optional[RegisteredRepository]:
        """Registered repository whose root is the longest prefix of ``path``.

        Ties go to the repository registered first.
        """
        best: Optional[RegisteredRepository] = None
        best_len = -1
        for repo in self._candidates(vcs_type):
            if is_descendant(path, repo.root_path, self.windows):
                root_len = len(normalize_path(repo.root_path))
                if root_len > best_len:
                    best, best_len = repo, root_len
        return best

    def _context(self, repo: RegisteredRepository) -> RepositoryContext:
        active = self.editor.active_file if self.editor else None
        return RepositoryContext(
            root_path=repo.root_path,
            vcs_type=repo.vcs_type,
            is_active=bool(active) and is_descendant(active, repo.root_path, self.windows),
        )

    def _candidates(self, vcs_type: Optional[VcsType]) -> list[RegisteredRepository]:
        if vcs_type is None:
            return self.registry
        return [repo for repo in self.registry if repo.vcs_type == vcs_type]

    def _from_editor(self, vcs_type: Optional[VcsType]) -> Optional[RegisteredRepository]:
        if self.editor is None:
            return None

        candidates = [self.editor.active_file, *self.editor.recent_files]
        for path in candidates:
            if path:
                repo = self.find_owner(path, vcs_type)
                if repo:
                    return repo

        active = self.editor.active_file
        if active:
            for folder in self.editor.workspace_folders:
                if not is_descendant(active, folder, self.windows):
                    continue
                for repo in self._candidates(vcs_type):
                    if is_descendant(repo.root_path, folder, self.windows):
                        return repo
        return None

    def resolve(
        self,
        files: Optional[Sequence[str]] = None,
        explicit_path: Optional[str] = None,
        vcs_type: Optional[VcsType] = None,
    ) -> Optional[RepositoryContext]:
        """Resolve the repository for a request; returns None if none is known.

        Args:
            files: Files the request is about.
            explicit_path: A path the caller chose explicitly.
            vcs_type: Only consider repositories of this backend family.
        """
        registry = self._candidates(vcs_type)
        if not registry:
            logger.debug("No repositories registered")
            return None

        try:
            if explicit_path:
                repo = self.find_owner(explicit_path, vcs_type)
                if repo:
                    return self._context(repo)
                logger.debug("Explicit path %s is not inside a known repository", explicit_path)

            if len(registry) == 1:
                return self._context(registry[0])

            for file in files or []:
                repo = self.find_owner(file, vcs_type)
                if repo:
                    return self._context(repo)

            repo = self._from_editor(vcs_type)
            if repo:
                return self._context(repo)
        except (OSError, ValueError) as e:
            logger.warning("Repository resolution failed, using first repository: %s", e)

        return self._context(registry[0])

    def group_files_by_repository(self, files: Iterable[str]) -> dict[str, list[str]]:
        """Map each owning root to the files inside it, in input order."""
        groups: dict[str, list[str]] = {}
        for file in files:
            repo = self.find_owner(file)
            if repo is None:
                logger.warning("File %s is not inside any known repository", file)
                continue
            groups.setdefault(repo.root_path, []).append(file)
        return groups


async def _detect(folder: Path, git: GitBackend) -> Optional[RegisteredRepository]:
    try:
        root = await git.find_root(str(folder))
    except ScmError as e:
        logger.debug("git probe failed for %s: %s", folder, e)
        root = None
    if root:
        return RegisteredRepository(root_path=normalize_path(root), vcs_type=VcsType.DISTRIBUTED)

    # Working copies since svn 1.7 keep a single .svn directory at the root
    for candidate in [folder, *folder.parents]:
        if (candidate / SVN_ADMIN_DIR).is_dir():
            return RegisteredRepository(
                root_path=normalize_path(str(candidate)), vcs_type=VcsType.CENTRALIZED
            )
    return None


async def discover_repositories(
    folders: Iterable[str], git: GitBackend
) -> list[RegisteredRepository]:
    """Find working copies in workspace folders.

    A folder that is not itself inside a working copy has its non-hidden
    immediate subdirectories checked instead.
    """
    found: list[RegisteredRepository] = []
    seen: set[str] = set()

    def _add(repo: Optional[RegisteredRepository]) -> bool:
        if repo is None:
            return False
        if repo.root_path not in seen:
            seen.add(repo.root_path)
            found.append(repo)
        return True

    for folder in folders:
        path = Path(folder)
        if not path.is_dir():
            logger.warning("Workspace folder %s does not exist", folder)
            continue
        if _add(await _detect(path, git)):
            continue
        for child in sorted(path.iterdir()):
            if child.is_dir() and not child.name.startswith("."):
                _add(await _detect(child, git))

    logger.debug("Discovered %d repositories", len(found))
    return found
