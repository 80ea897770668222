"""Representation of profile documents and the flux objects built from them.

Profile documents are read from a profile repository (a `ProfileDefinition`)
or supplied by the user (a `ProfileInstallation`, also called a subscription).
Resolving a subscription produces flux `HelmRelease`, `HelmRepository` and
`Kustomization` objects that may be serialized with `to_doc()` and written to
a cluster repository.
"""

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, ClassVar, Optional

import yaml
from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
from mashumaro.exceptions import MissingField, InvalidFieldValue

from .exceptions import InputException, InvalidArtifactError
from .naming import is_local_name, is_local_path

__all__ = [
    "ArtifactKind",
    "ProfileSource",
    "ProfileInstallation",
    "ProfileRef",
    "ChartRef",
    "Artifact",
    "ProfileDefinition",
    "SourceReference",
    "HelmRelease",
    "HelmRepository",
    "Kustomization",
    "ResolvedArtifact",
]

_LOGGER = logging.getLogger(__name__)


# Match a prefix of apiVersion to ensure we have the right type of object.
# We don't check specific versions for forward compatibility on upgrade.
PROFILES_DOMAIN = "weave.works"
PROFILES_API_VERSION = "weave.works/v1alpha1"
HELM_RELEASE_API_VERSION = "helm.toolkit.fluxcd.io/v2beta1"
SOURCE_API_VERSION = "source.toolkit.fluxcd.io/v1beta1"
KUSTOMIZATION_API_VERSION = "kustomize.toolkit.fluxcd.io/v1beta1"
PROFILE_INSTALLATION_KIND = "ProfileInstallation"
PROFILE_DEFINITION_KIND = "ProfileDefinition"
HELM_RELEASE = "HelmRelease"
HELM_REPOSITORY = "HelmRepository"
GIT_REPOSITORY = "GitRepository"
KUSTOMIZE_KIND = "Kustomization"
DEFAULT_INTERVAL = "5m0s"


def _check_version(doc: dict[str, Any], version: str) -> None:
    """Assert that the resource has the specified version."""
    if not (api_version := doc.get("apiVersion")) or not isinstance(api_version, str):
        raise InputException(f"Invalid object missing apiVersion: {doc}")
    if not api_version.startswith(version):
        raise InputException(f"Invalid object expected '{version}': {doc}")


def _check_kind(doc: dict[str, Any], kind: str) -> None:
    """Assert that the resource is of the specified kind."""
    if doc.get("kind") != kind:
        raise InputException(f"Invalid object expected kind '{kind}': {doc}")


def _check_mapping(doc: dict[str, Any], key: str, value: Any) -> None:
    """Assert that a field of the resource is a mapping."""
    if not isinstance(value, dict):
        raise InputException(f"Invalid object {key} expected a mapping: {doc}")


def _check_strings(doc: dict[str, Any], keys: tuple[str, ...]) -> None:
    """Assert that the optional fields of the resource are strings."""
    for key in keys:
        if (value := doc.get(key)) is not None and not isinstance(value, str):
            raise InputException(f"Invalid object {key} expected a string: {doc}")


class ArtifactKind(str, Enum):
    """The kinds of artifacts that may be declared in a profile."""

    PROFILE = "Profile"
    HELM_CHART = "HelmChart"
    KUSTOMIZE = "Kustomize"

    @classmethod
    def _missing_(cls, value: object) -> "ArtifactKind | None":
        """Accept the lower case kind names used in profile documentation."""
        aliases = {
            "profile": cls.PROFILE,
            "helm-chart": cls.HELM_CHART,
            "helmchart": cls.HELM_CHART,
            "kustomize": cls.KUSTOMIZE,
        }
        if isinstance(value, str):
            return aliases.get(value.lower())
        return None


@dataclass(frozen=True)
class BaseManifest(DataClassDictMixin):
    """Base class for all manifest objects."""

    class Config(BaseConfig):
        omit_none = True


@dataclass(frozen=True)
class ValuesReference(BaseManifest):
    """A reference to a resource containing values for a HelmRelease."""

    kind: str
    """The kind of resource."""

    name: str
    """The name of the resource."""

    values_key: str = field(
        metadata=field_options(alias="valuesKey"), default="values.yaml"
    )
    """The key in the resource that contains the values."""

    target_path: Optional[str] = field(
        metadata=field_options(alias="targetPath"), default=None
    )
    """The path in the HelmRelease values to store the values."""

    optional: bool = False
    """Whether the reference is optional."""

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


@dataclass(frozen=True)
class ProfileSource(BaseManifest):
    """The location of a profile within a git repository."""

    url: str
    """The URL of the profile repository."""

    branch: str = ""
    """The branch of the profile repository, exclusive with tag."""

    tag: str = ""
    """The tag of the profile repository, takes precedence over branch."""

    path: str = ""
    """The path of the profile definition within the repository."""

    @property
    def ref(self) -> str:
        """The git reference used to fetch the profile."""
        return self.tag or self.branch


@dataclass(frozen=True)
class ProfileInstallation(BaseManifest):
    """A request to install a profile, also known as a subscription."""

    kind: ClassVar[str] = PROFILE_INSTALLATION_KIND
    """The kind of the object."""

    name: str
    """The subscription name, used as a prefix for generated objects."""

    namespace: str
    """The namespace that generated objects are placed in."""

    source: ProfileSource
    """The location of the profile definition."""

    values: Optional[dict[str, Any]] = None
    """Values passed to every generated HelmRelease."""

    values_from: Optional[list[ValuesReference]] = None
    """Values references passed to every generated HelmRelease."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "ProfileInstallation":
        """Parse a ProfileInstallation from a kubernetes resource object."""
        _check_version(doc, PROFILES_DOMAIN)
        _check_kind(doc, PROFILE_INSTALLATION_KIND)
        if not (metadata := doc.get("metadata")):
            raise InputException(f"Invalid {cls} missing metadata: {doc}")
        _check_mapping(doc, "metadata", metadata)
        _check_strings(metadata, ("name", "namespace"))
        if not (name := metadata.get("name")):
            raise InputException(f"Invalid {cls} missing metadata.name: {doc}")
        if not (namespace := metadata.get("namespace")):
            raise InputException(f"Invalid {cls} missing metadata.namespace: {doc}")
        if not (spec := doc.get("spec")):
            raise InputException(f"Invalid {cls} missing spec: {doc}")
        _check_mapping(doc, "spec", spec)
        if not (source := spec.get("source")):
            raise InputException(f"Invalid {cls} missing spec.source: {doc}")
        _check_mapping(doc, "spec.source", source)
        _check_strings(source, ("url", "branch", "tag", "path"))
        if not (url := source.get("url")):
            raise InputException(f"Invalid {cls} missing spec.source.url: {doc}")
        branch = source.get("branch", "")
        tag = source.get("tag", "")
        if branch and tag:
            raise InputException(
                f"Invalid {cls} spec.source.branch and spec.source.tag are "
                f"exclusive: {doc}"
            )
        values_from: list[ValuesReference] | None = None
        if values_from_dict := spec.get("valuesFrom"):
            values_from = [
                ValuesReference.from_dict(subdoc) for subdoc in values_from_dict
            ]
        return cls(
            name=name,
            namespace=namespace,
            source=ProfileSource(
                url=url, branch=branch, tag=tag, path=source.get("path", "")
            ),
            values=spec.get("values"),
            values_from=values_from,
        )

    def to_doc(self) -> dict[str, Any]:
        """Return the kubernetes resource object for the subscription."""
        source = {k: v for k, v in self.source.to_dict().items() if v}
        spec: dict[str, Any] = {"source": source}
        if self.values:
            spec["values"] = self.values
        if self.values_from:
            spec["valuesFrom"] = [ref.to_dict() for ref in self.values_from]
        return {
            "apiVersion": PROFILES_API_VERSION,
            "kind": PROFILE_INSTALLATION_KIND,
            "metadata": {"name": self.name, "namespace": self.namespace},
            "spec": spec,
        }


@dataclass(frozen=True)
class ProfileRef(BaseManifest):
    """A reference to a nested profile declared as an artifact."""

    url: str
    """The URL of the nested profile repository."""

    branch: str = ""
    """The branch of the nested profile."""

    version: str = ""
    """The version tag of the nested profile e.g. `weaveworks-nginx/v0.1.0`."""

    path: str = ""
    """The path of the nested profile when referenced by branch."""


@dataclass(frozen=True)
class ChartRef(BaseManifest):
    """A reference to a chart in a remote helm repository."""

    url: str
    """The URL of the helm repository."""

    name: str
    """The name of the chart within the helm repository."""

    version: Optional[str] = None
    """The version of the chart."""


@dataclass(frozen=True)
class Artifact(BaseManifest):
    """An artifact declared in a profile definition."""

    name: str
    """The name of the artifact."""

    kind: str
    """The kind of the artifact, see `ArtifactKind`."""

    profile: Optional[ProfileRef] = None
    """The nested profile, for Profile artifacts."""

    chart: Optional[ChartRef] = None
    """The remote chart, for HelmChart artifacts."""

    path: Optional[str] = None
    """The path within the profile repository for local artifacts."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "Artifact":
        """Parse an Artifact from an entry in a profile definition."""
        if not isinstance(doc, dict):
            raise InputException(f"Invalid {cls} expected a mapping: {doc}")
        if not doc.get("name"):
            raise InputException(f"Invalid {cls} missing name: {doc}")
        if not doc.get("kind"):
            raise InputException(f"Invalid {cls} missing kind: {doc}")
        _check_strings(doc, ("name", "kind", "path"))
        if (profile := doc.get("profile")) is not None:
            _check_mapping(doc, "profile", profile)
            _check_strings(profile, ("url", "branch", "version", "path"))
        if (chart := doc.get("chart")) is not None:
            _check_mapping(doc, "chart", chart)
            _check_strings(chart, ("url", "name", "version"))
        try:
            return cls.from_dict(doc)
        except (MissingField, InvalidFieldValue) as err:
            raise InputException(f"Invalid {cls}: {err}") from err

    def validate(self) -> None:
        """Validate that exactly the fields relevant to the kind are set.

        Names and paths may not point outside of the artifact directory.
        Unknown kinds are left to the resolver to reject.
        """
        if not is_local_name(self.name):
            raise InvalidArtifactError(
                self.name, "name may not contain '/' or be a relative path"
            )
        if self.path and not is_local_path(self.path):
            raise InvalidArtifactError(
                self.name, f"path {self.path!r} must be relative to the profile"
            )
        try:
            kind = ArtifactKind(self.kind)
        except ValueError:
            return
        if kind == ArtifactKind.PROFILE:
            if self.profile is None:
                raise InvalidArtifactError(self.name, "expected profile to be set")
            if self.chart is not None or self.path:
                raise InvalidArtifactError(
                    self.name, "profile artifacts may not set chart or path"
                )
            if self.profile.path and not is_local_path(self.profile.path):
                raise InvalidArtifactError(
                    self.name,
                    f"profile path {self.profile.path!r} must be relative to the "
                    "repository",
                )
            version = self.profile.version
            if "/" in version and not is_local_name(version.split("/")[0]):
                raise InvalidArtifactError(
                    self.name, f"profile version {version!r} has an invalid path"
                )
        elif kind == ArtifactKind.HELM_CHART:
            if self.profile is not None:
                raise InvalidArtifactError(
                    self.name, "helm chart artifacts may not set profile"
                )
            if self.chart is not None and self.path:
                raise InvalidArtifactError(
                    self.name, "expected exactly one, got both: chart, path"
                )
            if self.chart is None and not self.path:
                raise InvalidArtifactError(
                    self.name, "expected exactly one, got neither: chart, path"
                )
        elif kind == ArtifactKind.KUSTOMIZE:
            if not self.path:
                raise InvalidArtifactError(self.name, "expected path to be set")
            if self.chart is not None or self.profile is not None:
                raise InvalidArtifactError(
                    self.name, "kustomize artifacts may not set chart or profile"
                )


@dataclass(frozen=True)
class ProfileDefinition(BaseManifest):
    """A profile definition document, fetched from a profile repository."""

    kind: ClassVar[str] = PROFILE_DEFINITION_KIND
    """The kind of the object."""

    name: str
    """The name of the profile."""

    artifacts: tuple[Artifact, ...] = ()
    """The artifacts declared by the profile, in document order."""

    description: Optional[str] = None
    """A human readable description of the profile."""

    maintainer: Optional[str] = None
    """The maintainer of the profile."""

    prerequisites: Optional[list[str]] = None
    """Prerequisites for installing the profile."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "ProfileDefinition":
        """Parse a ProfileDefinition from a kubernetes resource object."""
        _check_version(doc, PROFILES_DOMAIN)
        _check_kind(doc, PROFILE_DEFINITION_KIND)
        if not (metadata := doc.get("metadata")):
            raise InputException(f"Invalid {cls} missing metadata: {doc}")
        _check_mapping(doc, "metadata", metadata)
        _check_strings(metadata, ("name",))
        if not (name := metadata.get("name")):
            raise InputException(f"Invalid {cls} missing metadata.name: {doc}")
        spec = doc.get("spec") or {}
        _check_mapping(doc, "spec", spec)
        _check_strings(spec, ("description", "maintainer"))
        artifacts = spec.get("artifacts") or []
        if not isinstance(artifacts, list):
            raise InputException(f"Invalid {cls} spec.artifacts is not a list: {doc}")
        return cls(
            name=name,
            artifacts=tuple(Artifact.parse_doc(subdoc) for subdoc in artifacts),
            description=spec.get("description"),
            maintainer=spec.get("maintainer"),
            prerequisites=spec.get("prerequisites"),
        )

    @classmethod
    def parse_yaml(cls, content: str) -> "ProfileDefinition":
        """Parse a serialized profile definition."""
        try:
            doc = yaml.safe_load(content)
        except yaml.YAMLError as err:
            raise InputException(f"Invalid {cls} yaml: {err}") from err
        if not isinstance(doc, dict):
            raise InputException(f"Invalid {cls} expected a yaml mapping")
        return cls.parse_doc(doc)


@dataclass(frozen=True)
class SourceReference(BaseManifest):
    """A cross namespace reference to a flux source object."""

    kind: str
    """The kind of the source e.g. GitRepository or HelmRepository."""

    name: str
    """The name of the source."""

    namespace: Optional[str] = None
    """The namespace of the source."""


@dataclass(frozen=True)
class HelmChartSpec(BaseManifest):
    """The chart template of a HelmRelease."""

    chart: str
    """The chart name, or the path of the chart within a GitRepository."""

    source_ref: SourceReference
    """The source that provides the chart."""

    version: Optional[str] = None
    """The version of the chart."""


@dataclass(frozen=True)
class HelmRelease(BaseManifest):
    """A representation of a Flux HelmRelease."""

    kind: ClassVar[str] = HELM_RELEASE
    """The kind of the object."""

    name: str
    """The name of the HelmRelease."""

    namespace: str
    """The namespace that owns the HelmRelease."""

    chart: HelmChartSpec
    """The chart to install."""

    values: Optional[dict[str, Any]] = None
    """The values to install in the chart."""

    values_from: Optional[list[ValuesReference]] = None
    """A list of values to reference from an ConfigMap or Secret."""

    interval: str = DEFAULT_INTERVAL
    """The reconcile interval."""

    def to_doc(self) -> dict[str, Any]:
        """Return the kubernetes resource object for the HelmRelease."""
        chart_spec: dict[str, Any] = {
            "chart": self.chart.chart,
            "sourceRef": self.chart.source_ref.to_dict(),
        }
        if self.chart.version:
            chart_spec["version"] = self.chart.version
        spec: dict[str, Any] = {
            "interval": self.interval,
            "chart": {"spec": chart_spec},
        }
        if self.values:
            spec["values"] = self.values
        if self.values_from:
            spec["valuesFrom"] = [ref.to_dict() for ref in self.values_from]
        return {
            "apiVersion": HELM_RELEASE_API_VERSION,
            "kind": HELM_RELEASE,
            "metadata": {"name": self.name, "namespace": self.namespace},
            "spec": spec,
        }


@dataclass(frozen=True)
class HelmRepository(BaseManifest):
    """A representation of a flux HelmRepository."""

    kind: ClassVar[str] = HELM_REPOSITORY
    """The kind of the object."""

    name: str
    """The name of the HelmRepository."""

    namespace: str
    """The namespace of owning the HelmRepository."""

    url: str
    """The URL to the repository of helm charts."""

    interval: str = DEFAULT_INTERVAL
    """The reconcile interval."""

    def to_doc(self) -> dict[str, Any]:
        """Return the kubernetes resource object for the HelmRepository."""
        return {
            "apiVersion": SOURCE_API_VERSION,
            "kind": HELM_REPOSITORY,
            "metadata": {"name": self.name, "namespace": self.namespace},
            "spec": {"interval": self.interval, "url": self.url},
        }


@dataclass(frozen=True)
class Kustomization(BaseManifest):
    """A flux Kustomization pointing at an overlay in a GitRepository."""

    kind: ClassVar[str] = KUSTOMIZE_KIND
    """The kind of the object."""

    name: str
    """The name of the kustomization."""

    namespace: str
    """The namespace of the kustomization."""

    path: str
    """The path to the kustomization contents within the source."""

    source_ref: SourceReference
    """The GitRepository that provides the kustomization contents."""

    target_namespace: Optional[str] = None
    """The namespace to target when performing the operation."""

    prune: bool = True
    """Whether to garbage collect removed objects."""

    interval: str = DEFAULT_INTERVAL
    """The reconcile interval."""

    def to_doc(self) -> dict[str, Any]:
        """Return the kubernetes resource object for the Kustomization."""
        spec: dict[str, Any] = {
            "interval": self.interval,
            "path": self.path,
            "prune": self.prune,
            "sourceRef": self.source_ref.to_dict(),
        }
        if self.target_namespace:
            spec["targetNamespace"] = self.target_namespace
        return {
            "apiVersion": KUSTOMIZATION_API_VERSION,
            "kind": KUSTOMIZE_KIND,
            "metadata": {"name": self.name, "namespace": self.namespace},
            "spec": spec,
        }


FluxObject = HelmRelease | HelmRepository | Kustomization


@dataclass(frozen=True)
class ResolvedArtifact:
    """A resolved artifact ready to be written to a cluster repository.

    The source fields are only set when the artifact's files live in the
    profile repository and must be copied next to the generated objects.
    """

    name: str
    """The logical name, qualified with any nested profile names."""

    objects: tuple[FluxObject, ...] = ()
    """The flux objects generated for the artifact."""

    repo_url: str | None = None
    """The profile repository that contains the artifact files."""

    branch: str | None = None
    """The branch or tag of the profile repository."""

    sparse_folder: str | None = None
    """The folder of the profile within the repository.

    This is the profile path of the subscription or nested profile that
    declared the artifact, or `.` for a profile at the repository root. It is
    not the profile definition name, which may differ from its folder.
    """

    paths_to_copy: tuple[str, ...] = ()
    """Paths relative to the sparse folder to copy."""

    def docs(self) -> list[dict[str, Any]]:
        """Return the kubernetes resource objects of the artifact."""
        return [obj.to_doc() for obj in self.objects]
