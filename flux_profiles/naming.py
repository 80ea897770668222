"""Helpers for naming generated objects and tracking visited profiles."""

from collections.abc import Sequence
import posixpath

__all__ = [
    "join",
    "contains_key",
    "repo_key",
    "artifact_base_name",
    "artifact_path",
    "is_local_name",
    "is_local_path",
]

ARTIFACTS_DIR = "artifacts"


def join(*parts: str) -> str:
    """Join name parts with a dash."""
    return "-".join(parts)


def contains_key(keys: Sequence[str], key: str) -> bool:
    """Return true if the key was already visited."""
    for value in keys:
        if value == key:
            return True
    return False


def repo_key(url: str, branch: str, tag: str, path: str) -> str:
    """Return the key identifying a profile within a repository at a ref.

    A tag already identifies the profile path so it is not part of the key.
    """
    if tag:
        return f"{url}:{tag}"
    return f"{url}:{branch}:{path}"


def artifact_base_name(name: str) -> str:
    """Return the final segment of a possibly nested artifact name."""
    return posixpath.basename(name)


def artifact_path(root_dir: str, name: str, path: str) -> str:
    """Return the path where the artifact contents are copied to."""
    return posixpath.normpath(
        posixpath.join(root_dir, ARTIFACTS_DIR, name, path.lstrip("/"))
    )


def is_local_name(name: str) -> bool:
    """Return true if the name is a single directory name."""
    return bool(name) and "/" not in name and name not in (".", "..")


def is_local_path(path: str) -> bool:
    """Return true if the relative path stays within its parent directory."""
    if not path or posixpath.isabs(path):
        return False
    return posixpath.normpath(path).split("/")[0] != ".."
