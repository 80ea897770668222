"""Tests for the flux-profiles `get artifacts` command."""

from pathlib import Path

import pytest

from . import run_main


def test_get_artifacts(
    profile_repo: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """Test printing the artifacts of a profile."""
    run_main(
        [
            "get",
            "artifacts",
            "--url",
            str(profile_repo),
            "--profile-path",
            "nginx",
            "--name",
            "mysub",
            "--git-repository",
            "flux-system/flux-system",
        ],
        tmp_path / "cache",
    )
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split() == ["NAME", "OBJECTS", "PATHS"]
    assert [line.split() for line in lines[1:]] == [
        [
            "nginx-server",
            "HelmRelease/mysub-nginx-nginx-server,"
            "HelmRepository/mysub-profiles-examples-nginx",
            "-",
        ],
        [
            "nginx-deployment",
            "Kustomization/mysub-nginx-nginx-deployment",
            "nginx/deployment",
        ],
        [
            "nested/nested-chart",
            "HelmRelease/mysub-nested-nested-chart",
            "charts/app",
        ],
    ]


def test_get_artifacts_from_tag(
    profile_repo: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """Test printing the artifacts of a tagged profile."""
    run_main(
        [
            "get",
            "artifact",
            "--url",
            str(profile_repo),
            "--tag",
            "nested/v0.1.0",
            "--profile-path",
            "nested",
            "--name",
            "mysub",
            "--git-repository",
            "flux-system/flux-system",
        ],
        tmp_path / "cache",
    )
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert lines[1].split()[0] == "nested-chart"


def test_get_artifacts_missing_profile(
    profile_repo: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """Test a profile path that does not exist in the repository."""
    with pytest.raises(SystemExit):
        run_main(
            [
                "get",
                "artifacts",
                "--url",
                str(profile_repo),
                "--profile-path",
                "missing",
                "--name",
                "mysub",
            ],
            tmp_path / "cache",
        )
    assert "failed to read profile.yaml" in capsys.readouterr().err


def test_get_artifacts_empty_profile(
    profile_repo: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """Test a profile that declares no artifacts."""
    run_main(
        [
            "get",
            "artifacts",
            "--url",
            str(profile_repo),
            "--profile-path",
            "empty",
            "--name",
            "mysub",
        ],
        tmp_path / "cache",
    )
    assert capsys.readouterr().out == (
        f"No artifacts found in profile {profile_repo}\n"
    )
