"""Library for common flags that select the profile to resolve."""

from argparse import (
    Action,
    ArgumentError,
    ArgumentParser,
    Namespace,
)
import logging
import pathlib
from typing import Any

from flux_profiles.manifest import ProfileInstallation, ProfileSource
from flux_profiles.profile import ResolutionContext
from flux_profiles.source import GitCache, GitDefinitionFetcher

_LOGGER = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"
DEFAULT_BRANCH = "main"


class GitRepositoryAction(Action):
    """Parse a GitRepository reference in namespace/name format."""

    def __call__(
        self,
        parser: ArgumentParser,
        namespace: Namespace,
        values: Any,
        option_string: str | None = None,
    ) -> None:
        parts = str(values).split("/")
        if len(parts) != 2 or not all(parts):
            raise ArgumentError(
                self, f"Expected namespace/name format but got '{values}'"
            )
        setattr(namespace, self.dest, (parts[0], parts[1]))


def add_profile_flags(args: ArgumentParser) -> None:
    """Add flags that select the profile and how it is installed."""
    args.add_argument(
        "--url",
        required=True,
        help="URL of the git repository containing the profile",
    )
    ref = args.add_mutually_exclusive_group()
    ref.add_argument(
        "--branch",
        default=DEFAULT_BRANCH,
        help="Branch of the profile repository",
    )
    ref.add_argument(
        "--tag",
        default="",
        help="Tag of the profile e.g. `weaveworks-nginx/v0.1.0`, overrides --branch",
    )
    args.add_argument(
        "--profile-path",
        default="",
        help="Path of the profile definition within the repository",
    )
    args.add_argument(
        "--name",
        required=True,
        help="Name of the subscription, used as a prefix of generated objects",
    )
    args.add_argument(
        "--namespace",
        "-n",
        default=DEFAULT_NAMESPACE,
        help="Namespace of the generated objects",
    )
    args.add_argument(
        "--git-repository",
        action=GitRepositoryAction,
        default=None,
        help="The flux GitRepository containing local artifacts, in "
        "namespace/name format",
    )
    args.add_argument(
        "--cache-dir",
        type=pathlib.Path,
        default=None,
        help="Directory where profile repositories are cloned, defaults to a "
        "directory under the system temp dir",
    )
    args.add_argument(
        "--root-dir",
        default=None,
        help="Path within the GitRepository where the artifacts are written, "
        "defaults to the subscription name",
    )


def build_subscription(  # type: ignore[no-untyped-def]
    url: str,
    branch: str,
    tag: str,
    profile_path: str,
    name: str,
    namespace: str,
    **kwargs,  # pylint: disable=unused-argument
) -> ProfileInstallation:
    """Build the subscription from command line flags."""
    return ProfileInstallation(
        name=name,
        namespace=namespace,
        source=ProfileSource(
            url=url,
            branch="" if tag else branch,
            tag=tag,
            path=profile_path,
        ),
    )


def build_context(  # type: ignore[no-untyped-def]
    name: str,
    root_dir: str | None,
    git_repository: tuple[str, str] | None,
    **kwargs,  # pylint: disable=unused-argument
) -> ResolutionContext:
    """Build the resolution context from command line flags."""
    git_namespace, git_name = git_repository or ("", "")
    return ResolutionContext(
        root_dir=name if root_dir is None else root_dir,
        git_repository_namespace=git_namespace,
        git_repository_name=git_name,
    )


def build_fetcher(  # type: ignore[no-untyped-def]
    cache_dir: pathlib.Path | None,
    **kwargs,  # pylint: disable=unused-argument
) -> GitDefinitionFetcher:
    """Build the fetcher that clones profile repositories."""
    return GitDefinitionFetcher(GitCache(cache_dir))
