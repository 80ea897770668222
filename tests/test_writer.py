"""Tests for writing resolved artifacts to disk."""

from pathlib import Path

import pytest
import yaml

from flux_profiles.exceptions import InputException
from flux_profiles.manifest import (
    Kustomization,
    ProfileInstallation,
    ProfileSource,
    ResolvedArtifact,
    SourceReference,
)
from flux_profiles.profile import ResolutionContext, make_artifacts
from flux_profiles.source import GitCache, GitDefinitionFetcher
from flux_profiles.writer import write_output

CONTEXT = ResolutionContext(
    root_dir="clusters/mysub",
    git_repository_namespace="flux-system",
    git_repository_name="flux-system",
)


def subscription(url: str) -> ProfileInstallation:
    return ProfileInstallation(
        name="mysub",
        namespace="default",
        source=ProfileSource(url=url, branch="main", path="nginx"),
    )


def read_files(root: Path) -> list[str]:
    return sorted(
        str(path.relative_to(root)) for path in root.rglob("*") if path.is_file()
    )


async def test_write_output(profile_repo: Path, tmp_path: Path) -> None:
    """Test writing a resolved profile including local artifact files."""
    fetcher = GitDefinitionFetcher(GitCache(tmp_path / "cache"))
    sub = subscription(str(profile_repo))
    artifacts = await make_artifacts(sub, fetcher, CONTEXT)
    assert [artifact.name for artifact in artifacts] == [
        "nginx-server",
        "nginx-deployment",
        "nested/nested-chart",
    ]

    out_dir = tmp_path / "out"
    await write_output(out_dir, sub, artifacts, fetcher)

    assert read_files(out_dir) == [
        "artifacts/nested/nested-chart/charts/app/Chart.yaml",
        "artifacts/nested/nested-chart/helm-release.yaml",
        "artifacts/nginx-deployment/kustomize-flux.yaml",
        "artifacts/nginx-deployment/nginx/deployment/deployment.yaml",
        "artifacts/nginx-server/helm-release.yaml",
        "artifacts/nginx-server/helm-repository.yaml",
        "profile.yaml",
    ]
    assert yaml.safe_load((out_dir / "profile.yaml").read_text()) == sub.to_doc()

    kustomization = yaml.safe_load(
        (out_dir / "artifacts/nginx-deployment/kustomize-flux.yaml").read_text()
    )
    assert kustomization["metadata"] == {
        "name": "mysub-nginx-nginx-deployment",
        "namespace": "default",
    }
    assert (
        kustomization["spec"]["path"]
        == "clusters/mysub/artifacts/nginx-deployment/nginx/deployment"
    )

    release = yaml.safe_load(
        (out_dir / "artifacts/nested/nested-chart/helm-release.yaml").read_text()
    )
    assert release["metadata"]["name"] == "mysub-nested-nested-chart"
    assert (
        release["spec"]["chart"]["spec"]["chart"]
        == "clusters/mysub/artifacts/nested/nested-chart/charts/app"
    )


async def test_write_without_fetcher(tmp_path: Path) -> None:
    """Test only generated objects are written without a fetcher."""
    artifact = ResolvedArtifact(
        name="foo",
        objects=(
            Kustomization(
                name="mysub-nginx-foo",
                namespace="default",
                path="artifacts/foo/overlay",
                source_ref=SourceReference(kind="GitRepository", name="flux-system"),
            ),
        ),
        repo_url="https://github.com/weaveworks/profiles-examples",
        branch="main",
        sparse_folder="nginx",
        paths_to_copy=("overlay",),
    )
    sub = subscription("https://github.com/weaveworks/profiles-examples")
    await write_output(tmp_path, sub, [artifact])
    assert read_files(tmp_path) == [
        "artifacts/foo/kustomize-flux.yaml",
        "profile.yaml",
    ]


async def test_write_missing_artifact_path(profile_repo: Path, tmp_path: Path) -> None:
    """Test copying an artifact path that is not in the repository."""
    fetcher = GitDefinitionFetcher(GitCache(tmp_path / "cache"))
    artifact = ResolvedArtifact(
        name="foo",
        repo_url=str(profile_repo),
        branch="main",
        sparse_folder="nginx",
        paths_to_copy=("missing",),
    )
    with pytest.raises(InputException, match="does not exist"):
        await write_output(
            tmp_path / "out", subscription(str(profile_repo)), [artifact], fetcher
        )


def local_artifact(repo: Path, sparse_folder: str, path: str) -> ResolvedArtifact:
    return ResolvedArtifact(
        name="foo",
        repo_url=str(repo),
        branch="main",
        sparse_folder=sparse_folder,
        paths_to_copy=(path,),
    )


async def test_copy_outside_checkout(profile_repo: Path, tmp_path: Path) -> None:
    """Test files outside of the repository checkout are not copied."""
    secret = tmp_path / "secret"
    secret.write_text("host secret")
    out_dir = tmp_path / "x" / "y" / "z" / "out"
    fetcher = GitDefinitionFetcher(GitCache(tmp_path / "cache"))
    artifact = local_artifact(profile_repo, "nginx", "../../../../secret")

    with pytest.raises(InputException, match="is outside of"):
        await write_output(
            out_dir, subscription(str(profile_repo)), [artifact], fetcher
        )
    assert read_files(tmp_path / "x") == [
        "y/z/out/profile.yaml",
    ]


async def test_copy_outside_artifact_dir(profile_repo: Path, tmp_path: Path) -> None:
    """Test files are not copied outside of the artifact directory."""
    out_dir = tmp_path / "out"
    fetcher = GitDefinitionFetcher(GitCache(tmp_path / "cache"))
    artifact = local_artifact(profile_repo, "nginx/nginx/deployment", "../deployment")

    with pytest.raises(InputException, match="Artifact output"):
        await write_output(
            out_dir, subscription(str(profile_repo)), [artifact], fetcher
        )
    assert not (out_dir / "artifacts" / "deployment").exists()


async def test_artifact_name_outside_output(tmp_path: Path) -> None:
    """Test an artifact name may not leave the output directory."""
    out_dir = tmp_path / "out"
    artifact = ResolvedArtifact(name="../../escape")

    with pytest.raises(InputException, match="is outside of"):
        await write_output(
            out_dir,
            subscription("https://github.com/weaveworks/profiles-examples"),
            [artifact],
        )
    assert not (tmp_path / "escape").exists()
