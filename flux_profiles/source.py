"""Fetching profile definitions from git repositories.

The resolver only depends on the `DefinitionFetcher` protocol. The
`GitDefinitionFetcher` clones profile repositories into a cache directory
that persists for the lifetime of the process, checks out the requested
branch or tag and parses the `profile.yaml` found at the requested path.

Example usage:
```python
from flux_profiles.source import GitDefinitionFetcher

fetcher = GitDefinitionFetcher()
definition = await fetcher.get_definition(
    "https://github.com/weaveworks/profiles-examples", "main", "weaveworks-nginx"
)
for artifact in definition.artifacts:
    print(f"Found artifact: {artifact.name}")
```
"""

import hashlib
import logging
from pathlib import Path
import tempfile
from typing import Protocol
from urllib.parse import urlparse

import aiofiles
import git
from slugify import slugify

from .exceptions import FetchError, InputException
from .manifest import ProfileDefinition

__all__ = [
    "DefinitionFetcher",
    "GitCache",
    "GitDefinitionFetcher",
]

_LOGGER = logging.getLogger(__name__)

PROFILE_FILENAME = "profile.yaml"
CACHE_DIRNAME = "flux-profiles-cache"


class DefinitionFetcher(Protocol):
    """Retrieves profile definitions from a repository."""

    async def get_definition(
        self, url: str, ref: str, path: str
    ) -> ProfileDefinition:
        """Return the profile definition at the path of the repository ref."""


class GitCache:
    """Cache manager for cloned profile repositories.

    Each repository and ref is cloned to its own directory so that different
    refs of the same repository may be checked out at once.
    """

    def __init__(self, cache_dir: Path | None = None) -> None:
        """Initialize the cache manager."""
        if cache_dir is None:
            cache_dir = Path(tempfile.gettempdir()) / CACHE_DIRNAME
        self._cache_dir = cache_dir

    @property
    def cache_dir(self) -> Path:
        """The directory containing all cached repositories."""
        return self._cache_dir

    def _slugify_url(self, url: str) -> str:
        """Return a readable directory name for the repository URL."""
        path = urlparse(url).path
        if path.endswith(".git"):
            path = path[:-4]
        slug = path.rstrip("/").split("/")[-1]
        # SSH URLs such as git@github.com:user/repo.git have no scheme
        if "@" in url and ":" in url and "://" not in url:
            slug = url.rsplit(":", 1)[-1].rstrip("/").split("/")[-1]
            slug = slug.removesuffix(".git")
        return slugify(slug, max_length=50, lowercase=True, separator="-") or "repo"

    def get_repo_path(self, url: str, ref: str | None = None) -> Path:
        """Return the local path where the repository ref is cached."""
        cache_key = hashlib.sha256()
        cache_key.update(url.encode("utf-8"))
        if ref:
            cache_key.update(ref.encode("utf-8"))
        return self._cache_dir / self._slugify_url(url) / cache_key.hexdigest()[:16]


class GitDefinitionFetcher:
    """Fetches profile definitions by cloning git repositories."""

    def __init__(self, cache: GitCache | None = None) -> None:
        """Initialize GitDefinitionFetcher."""
        self._cache = cache or GitCache()
        self._checkouts: dict[tuple[str, str], Path] = {}

    async def checkout(self, url: str, ref: str) -> Path:
        """Clone or update the repository at the ref, returning its local path.

        A repository ref is only updated once per fetcher.
        """
        key = (url, ref)
        if (repo_path := self._checkouts.get(key)) is not None:
            return repo_path
        repo_path = self._cache.get_repo_path(url, ref)
        try:
            if (repo_path / ".git").exists():
                _LOGGER.info("Updating existing repository at %s", repo_path)
                repo = git.Repo(str(repo_path))
                repo.git.fetch("--tags", "origin")
            else:
                _LOGGER.info("Cloning repository %s to %s", url, repo_path)
                repo_path.mkdir(parents=True, exist_ok=True)
                repo = git.Repo.clone_from(url, str(repo_path))
            if ref:
                _checkout_ref(repo, ref)
        except git.exc.GitError as err:
            raise FetchError(
                f"failed to fetch repository {url} at {ref!r}: {err}"
            ) from err
        except OSError as err:
            raise FetchError(f"failed to create cache path {repo_path}: {err}") from err
        self._checkouts[key] = repo_path
        return repo_path

    async def get_definition(
        self, url: str, ref: str, path: str
    ) -> ProfileDefinition:
        """Return the profile definition at the path of the repository ref."""
        repo_path = await self.checkout(url, ref)
        profile_file = repo_path / path.lstrip("/") / PROFILE_FILENAME
        _LOGGER.debug("Reading profile definition %s", profile_file)
        try:
            async with aiofiles.open(str(profile_file)) as definition_file:
                content = await definition_file.read()
        except OSError as err:
            raise FetchError(
                f"failed to read {PROFILE_FILENAME} from {url} at {ref!r} "
                f"path {path!r}: {err}"
            ) from err
        try:
            return ProfileDefinition.parse_yaml(content)
        except InputException as err:
            raise FetchError(
                f"failed to parse {PROFILE_FILENAME} from {url} at {ref!r} "
                f"path {path!r}: {err}"
            ) from err


def _checkout_ref(repo: git.Repo, ref: str) -> None:
    """Check out a branch, tag or commit of a cloned repository."""
    remote_branches = {
        remote_ref.remote_head for remote_ref in repo.remotes.origin.refs
    }
    if ref in remote_branches:
        _LOGGER.info("Checking out branch %s", ref)
        repo.git.checkout("-B", ref, f"origin/{ref}")
        return
    _LOGGER.info("Checking out %s", ref)
    try:
        repo.git.checkout(ref)
    except git.exc.GitCommandError:
        # The tag may have been created after the repository was cloned
        repo.git.fetch("--tags", "origin")
        repo.git.checkout(ref)
