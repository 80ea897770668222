"""Test fixtures for flux-profiles."""

from pathlib import Path
from typing import Any

import git
import pytest
import yaml

from flux_profiles.exceptions import FetchError
from flux_profiles.manifest import ProfileDefinition

AUTHOR = git.Actor("Test User", "test@example.com")


class StaticFetcher:
    """A definition fetcher that returns definitions from memory."""

    def __init__(self) -> None:
        """Initialize StaticFetcher."""
        self.definitions: dict[tuple[str, str, str], ProfileDefinition] = {}
        self.calls: list[tuple[str, str, str]] = []

    def add(self, url: str, ref: str, path: str, doc: dict[str, Any]) -> None:
        """Add a profile definition document served for the location."""
        self.definitions[(url, ref, path)] = ProfileDefinition.parse_doc(doc)

    async def get_definition(
        self, url: str, ref: str, path: str
    ) -> ProfileDefinition:
        """Return the profile definition at the location."""
        self.calls.append((url, ref, path))
        if (definition := self.definitions.get((url, ref, path))) is None:
            raise FetchError(f"profile not found: {url} {ref} {path}")
        return definition


def definition_doc(name: str, artifacts: list[dict[str, Any]]) -> dict[str, Any]:
    """Return a ProfileDefinition document."""
    return {
        "apiVersion": "weave.works/v1alpha1",
        "kind": "ProfileDefinition",
        "metadata": {"name": name},
        "spec": {"description": f"{name} profile", "artifacts": artifacts},
    }


@pytest.fixture
def fetcher() -> StaticFetcher:
    """Fixture for a fetcher returning definitions from memory."""
    return StaticFetcher()


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


@pytest.fixture
def profile_repo(tmp_path: Path) -> Path:
    """Create a local git repository containing a profile and a nested profile.

    The `nginx` profile has a remote helm chart, a kustomize overlay and a
    nested profile `nested` from the same repository which has a local chart.
    The `nested` profile is also tagged as `nested/v0.1.0`.
    """
    repo_dir = tmp_path / "profiles-examples"
    repo_dir.mkdir()
    repo = git.Repo.init(str(repo_dir))
    _write(
        repo_dir / "nginx" / "profile.yaml",
        yaml.dump(
            definition_doc(
                "nginx",
                [
                    {
                        "name": "nginx-server",
                        "kind": "HelmChart",
                        "chart": {
                            "url": "https://charts.bitnami.com/bitnami",
                            "name": "nginx",
                            "version": "8.9.1",
                        },
                    },
                    {
                        "name": "nginx-deployment",
                        "kind": "Kustomize",
                        "path": "nginx/deployment",
                    },
                    {
                        "name": "nested",
                        "kind": "Profile",
                        "profile": {
                            "url": str(repo_dir),
                            "branch": "main",
                            "path": "nested",
                        },
                    },
                ],
            )
        ),
    )
    _write(
        repo_dir / "nginx" / "nginx" / "deployment" / "deployment.yaml",
        "apiVersion: apps/v1\nkind: Deployment\nmetadata:\n  name: nginx\n",
    )
    _write(
        repo_dir / "nested" / "profile.yaml",
        yaml.dump(
            definition_doc(
                "nested",
                [{"name": "nested-chart", "kind": "HelmChart", "path": "charts/app"}],
            )
        ),
    )
    _write(
        repo_dir / "nested" / "charts" / "app" / "Chart.yaml",
        "apiVersion: v2\nname: app\nversion: 0.1.0\n",
    )
    _write(repo_dir / "empty" / "profile.yaml", yaml.dump(definition_doc("empty", [])))
    _write(repo_dir / "broken" / "profile.yaml", "- not a mapping\n")
    _write(
        repo_dir / "malformed" / "profile.yaml",
        "apiVersion: weave.works/v1alpha1\nkind: ProfileDefinition\nmetadata: oops\n",
    )
    repo.git.add(A=True)
    repo.index.commit("Add profiles", author=AUTHOR, committer=AUTHOR)
    repo.git.branch("-M", "main")
    repo.create_tag("nested/v0.1.0")
    return repo_dir
