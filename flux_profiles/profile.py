"""Library for resolving a profile subscription into artifacts.

A profile definition declares a list of artifacts that are either a helm
chart, a kustomize overlay or another nested profile. Resolving walks the
tree of nested profiles depth first, fetching each definition, and returns a
flat list of artifacts with the flux objects needed to install them.

Example usage:
```python
from flux_profiles import profile
from flux_profiles.manifest import ProfileInstallation, ProfileSource
from flux_profiles.source import GitDefinitionFetcher

subscription = ProfileInstallation(
    name="mysub",
    namespace="default",
    source=ProfileSource(
        url="https://github.com/weaveworks/profiles-examples",
        branch="main",
        path="weaveworks-nginx",
    ),
)
context = profile.ResolutionContext(
    root_dir="mysub",
    git_repository_namespace="flux-system",
    git_repository_name="flux-system",
)
artifacts = await profile.make_artifacts(subscription, GitDefinitionFetcher(), context)
for artifact in artifacts:
    print(f"Found artifact: {artifact.name}")
```
"""

from dataclasses import dataclass, replace
import logging
import posixpath

from .builder import make_helm_release, make_helm_repository, make_kustomization
from .context import profile_trace
from .exceptions import (
    CyclicReferenceError,
    InvalidArtifactError,
    MissingSourceError,
    ProfileException,
    UnrecognizedKindError,
)
from .manifest import (
    GIT_REPOSITORY,
    Artifact,
    ArtifactKind,
    FluxObject,
    ProfileDefinition,
    ProfileInstallation,
    ProfileSource,
    ResolvedArtifact,
    SourceReference,
)
from .naming import artifact_path, contains_key, repo_key
from .source import DefinitionFetcher

__all__ = [
    "ResolutionContext",
    "make_artifacts",
]

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionContext:
    """State passed down while resolving a tree of profiles."""

    root_dir: str = ""
    """Directory that local artifact paths are written relative to."""

    git_repository_namespace: str = ""
    """Namespace of the GitRepository that local artifacts are read from."""

    git_repository_name: str = ""
    """Name of the GitRepository that local artifacts are read from."""

    nested_name: str = ""
    """Qualified name of the nested profile artifact being resolved."""

    visited: tuple[str, ...] = ()
    """Repo keys of the profiles entered on the current path."""

    @property
    def git_source(self) -> SourceReference | None:
        """The GitRepository reference for local artifacts, if configured."""
        if not self.git_repository_namespace or not self.git_repository_name:
            return None
        return SourceReference(
            kind=GIT_REPOSITORY,
            name=self.git_repository_name,
            namespace=self.git_repository_namespace,
        )

    def qualify(self, name: str) -> str:
        """Return the artifact name prefixed with the nested profile name."""
        if self.nested_name:
            return posixpath.join(self.nested_name, name)
        return name


async def make_artifacts(
    subscription: ProfileInstallation,
    fetcher: DefinitionFetcher,
    context: ResolutionContext | None = None,
) -> list[ResolvedArtifact]:
    """Resolve the profile subscription into a flat list of artifacts.

    Any failure aborts the whole resolution and no partial result is returned.
    """
    if context is None:
        context = ResolutionContext()
    source = subscription.source
    definition = await fetcher.get_definition(source.url, source.ref, source.path)
    _LOGGER.debug(
        "Fetched profile definition %s from %s at %s",
        definition.name,
        source.url,
        source.ref,
    )

    key = repo_key(source.url, source.branch, source.tag, source.path)
    if contains_key(context.visited, key):
        raise CyclicReferenceError(source.url, source.ref)
    context = replace(context, visited=context.visited + (key,))

    artifacts: list[ResolvedArtifact] = []
    with profile_trace(definition.name):
        for artifact in definition.artifacts:
            artifacts.extend(
                await _resolve_artifact(
                    subscription, definition, artifact, fetcher, context
                )
            )
    return artifacts


async def _resolve_artifact(
    subscription: ProfileInstallation,
    definition: ProfileDefinition,
    artifact: Artifact,
    fetcher: DefinitionFetcher,
    context: ResolutionContext,
) -> list[ResolvedArtifact]:
    """Resolve a single declared artifact of the profile definition."""
    artifact.validate()
    artifact = replace(artifact, name=context.qualify(artifact.name))
    try:
        kind = ArtifactKind(artifact.kind)
    except ValueError as err:
        raise UnrecognizedKindError(artifact.kind) from err
    _LOGGER.debug("Resolving %s artifact %s", kind.value, artifact.name)

    if kind == ArtifactKind.PROFILE:
        return await _resolve_nested_profile(subscription, artifact, fetcher, context)
    if kind == ArtifactKind.HELM_CHART:
        return [_resolve_helm_chart(subscription, definition, artifact, context)]
    return [_resolve_kustomize(subscription, definition, artifact, context)]


async def _resolve_nested_profile(
    subscription: ProfileInstallation,
    artifact: Artifact,
    fetcher: DefinitionFetcher,
    context: ResolutionContext,
) -> list[ResolvedArtifact]:
    """Resolve the artifacts of a nested profile in place of the artifact."""
    if (profile := artifact.profile) is None:
        raise InvalidArtifactError(artifact.name, "expected profile to be set")
    path = profile.path
    if profile.version:
        path = profile.version.split("/")[0] if "/" in profile.version else "."
    nested = replace(
        subscription,
        source=ProfileSource(
            url=profile.url,
            branch=profile.branch,
            tag=profile.version,
            path=path,
        ),
    )
    try:
        return await make_artifacts(
            nested, fetcher, replace(context, nested_name=artifact.name)
        )
    except ProfileException as err:
        err.add_context(
            f'failed to generate resources for nested profile "{artifact.name}"'
        )
        raise


def _require_git_source(
    artifact: Artifact, context: ResolutionContext
) -> SourceReference:
    """Return the GitRepository needed to reference local artifact files."""
    if (git_source := context.git_source) is None:
        raise MissingSourceError(
            f"artifact {artifact.name}: in case of local resources, the flux "
            "GitRepository object's details must be provided"
        )
    return git_source


def _local_artifact(
    subscription: ProfileInstallation,
    artifact: Artifact,
    path: str,
    objects: list[FluxObject],
) -> ResolvedArtifact:
    """Return an artifact whose files are copied from the profile repository.

    Files are copied from the path relative to the folder of the profile
    definition that declared the artifact.
    """
    source = subscription.source
    return ResolvedArtifact(
        name=artifact.name,
        objects=tuple(objects),
        repo_url=source.url,
        branch=source.ref,
        sparse_folder=source.path or ".",
        paths_to_copy=(path,),
    )


def _resolve_helm_chart(
    subscription: ProfileInstallation,
    definition: ProfileDefinition,
    artifact: Artifact,
    context: ResolutionContext,
) -> ResolvedArtifact:
    """Resolve a local or remote helm chart artifact."""
    objects: list[FluxObject] = []
    if artifact.path:
        git_source = _require_git_source(artifact, context)
        chart_path = artifact_path(context.root_dir, artifact.name, artifact.path)
        objects.append(
            make_helm_release(
                subscription, definition, artifact, chart_path, git_source
            )
        )
    else:
        objects.append(make_helm_release(subscription, definition, artifact))
    if artifact.chart is not None:
        objects.append(make_helm_repository(subscription, artifact.chart))
    if artifact.path:
        return _local_artifact(subscription, artifact, artifact.path, objects)
    return ResolvedArtifact(name=artifact.name, objects=tuple(objects))


def _resolve_kustomize(
    subscription: ProfileInstallation,
    definition: ProfileDefinition,
    artifact: Artifact,
    context: ResolutionContext,
) -> ResolvedArtifact:
    """Resolve a kustomize overlay artifact."""
    if not artifact.path:
        raise InvalidArtifactError(artifact.name, "expected path to be set")
    git_source = _require_git_source(artifact, context)
    path = artifact_path(context.root_dir, artifact.name, artifact.path)
    kustomization = make_kustomization(
        subscription, definition, artifact, path, git_source
    )
    return _local_artifact(subscription, artifact, artifact.path, [kustomization])
