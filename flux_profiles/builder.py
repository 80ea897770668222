"""Library for building flux objects from declared profile artifacts.

These are pure functions with no network or disk access. Object names are
derived from the subscription, the profile definition and the artifact so
that they are deterministic and safe to use as kubernetes names even when the
artifact belongs to a nested profile.
"""

import logging

from .manifest import (
    GIT_REPOSITORY,
    HELM_REPOSITORY,
    Artifact,
    ChartRef,
    HelmChartSpec,
    HelmRelease,
    HelmRepository,
    Kustomization,
    ProfileDefinition,
    ProfileInstallation,
    SourceReference,
)
from .naming import artifact_base_name, join

__all__ = [
    "object_name",
    "make_helm_release",
    "make_helm_repository",
    "make_kustomization",
]

_LOGGER = logging.getLogger(__name__)


def object_name(
    subscription: ProfileInstallation, definition: ProfileDefinition, name: str
) -> str:
    """Return the name of an object generated for the artifact.

    Nested artifact names contain a `/` so only the final segment is used.
    """
    return join(subscription.name, definition.name, artifact_base_name(name))


def helm_repository_name(subscription: ProfileInstallation, chart_name: str) -> str:
    """Return the name of the HelmRepository generated for a remote chart."""
    repo_name = subscription.source.url.rstrip("/").split("/")[-1]
    return join(subscription.name, repo_name, chart_name)


def make_helm_repository(
    subscription: ProfileInstallation, chart: ChartRef
) -> HelmRepository:
    """Build the HelmRepository that serves a remote chart."""
    return HelmRepository(
        name=helm_repository_name(subscription, chart.name),
        namespace=subscription.namespace,
        url=chart.url,
    )


def make_helm_release(
    subscription: ProfileInstallation,
    definition: ProfileDefinition,
    artifact: Artifact,
    chart_path: str | None = None,
    git_source: SourceReference | None = None,
) -> HelmRelease:
    """Build the HelmRelease for a chart artifact.

    A local chart is referenced by `chart_path` within the `git_source`
    GitRepository, otherwise the remote chart of the artifact is used.
    """
    if chart_path is not None:
        if git_source is None:
            raise ValueError("A local chart requires a GitRepository source")
        chart = HelmChartSpec(chart=chart_path, source_ref=git_source)
    elif artifact.chart is not None:
        chart = HelmChartSpec(
            chart=artifact.chart.name,
            version=artifact.chart.version,
            source_ref=SourceReference(
                kind=HELM_REPOSITORY,
                name=helm_repository_name(subscription, artifact.chart.name),
                namespace=subscription.namespace,
            ),
        )
    else:
        raise ValueError(f"Artifact {artifact.name} has neither a chart nor a path")
    release = HelmRelease(
        name=object_name(subscription, definition, artifact.name),
        namespace=subscription.namespace,
        chart=chart,
        values=subscription.values,
        values_from=subscription.values_from,
    )
    _LOGGER.debug("Built HelmRelease %s/%s", release.namespace, release.name)
    return release


def make_kustomization(
    subscription: ProfileInstallation,
    definition: ProfileDefinition,
    artifact: Artifact,
    path: str,
    git_source: SourceReference,
) -> Kustomization:
    """Build the Kustomization for an overlay artifact."""
    if git_source.kind != GIT_REPOSITORY:
        raise ValueError(f"Kustomization source must be a {GIT_REPOSITORY}")
    kustomization = Kustomization(
        name=object_name(subscription, definition, artifact.name),
        namespace=subscription.namespace,
        path=path,
        source_ref=git_source,
        target_namespace=subscription.namespace,
    )
    _LOGGER.debug(
        "Built Kustomization %s/%s", kustomization.namespace, kustomization.name
    )
    return kustomization
