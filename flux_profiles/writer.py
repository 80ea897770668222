"""Library for writing resolved profile artifacts to a directory.

The output directory contains the subscription in `profile.yaml` and a
directory per artifact under `artifacts/` with the generated flux objects,
plus any files of local artifacts copied from the profile repository:

```
mysub/
  profile.yaml
  artifacts/
    nginx-server/
      helm-release.yaml
      helm-repository.yaml
    nginx-deployment/
      kustomize-flux.yaml
      nginx/deployment/...
```
"""

import logging
from pathlib import Path
import shutil
from collections.abc import Sequence
from typing import Any

import aiofiles
import yaml

from .exceptions import InputException
from .manifest import (
    HELM_RELEASE,
    HELM_REPOSITORY,
    KUSTOMIZE_KIND,
    ProfileInstallation,
    ResolvedArtifact,
)
from .naming import ARTIFACTS_DIR
from .source import GitDefinitionFetcher

__all__ = [
    "write_output",
]

_LOGGER = logging.getLogger(__name__)

PROFILE_FILENAME = "profile.yaml"
OBJECT_FILENAMES = {
    HELM_RELEASE: "helm-release.yaml",
    HELM_REPOSITORY: "helm-repository.yaml",
    KUSTOMIZE_KIND: "kustomize-flux.yaml",
}


async def write_docs(path: Path, docs: Sequence[dict[str, Any]]) -> None:
    """Write the kubernetes objects as a yaml document stream."""
    content = yaml.dump_all(docs, sort_keys=False, explicit_start=len(docs) > 1)
    async with aiofiles.open(str(path), mode="w") as output_file:
        await output_file.write(content)


def _copy_path(src: Path, dest: Path, src_root: Path, dest_root: Path) -> None:
    """Copy a file or directory from a profile repository checkout.

    Both paths are resolved, following symlinks, and must stay within the
    checkout and the artifact output directory.
    """
    src = src.resolve()
    dest = dest.resolve()
    if not src.is_relative_to(src_root.resolve()):
        raise InputException(f"Artifact path {src} is outside of {src_root}")
    if not dest.is_relative_to(dest_root.resolve()):
        raise InputException(f"Artifact output {dest} is outside of {dest_root}")
    if src.is_dir():
        shutil.copytree(src, dest, dirs_exist_ok=True)
    elif src.is_file():
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)
    else:
        raise InputException(f"Artifact path {src} does not exist")


async def write_output(
    out_dir: Path,
    subscription: ProfileInstallation,
    artifacts: Sequence[ResolvedArtifact],
    fetcher: GitDefinitionFetcher | None = None,
) -> None:
    """Write the subscription and resolved artifacts to the output directory.

    Files of local artifacts are only copied when a fetcher is provided to
    check out the profile repositories.
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    await write_docs(out_dir / PROFILE_FILENAME, [subscription.to_doc()])
    for artifact in artifacts:
        artifact_dir = out_dir / ARTIFACTS_DIR / artifact.name
        if not artifact_dir.resolve().is_relative_to(out_dir.resolve()):
            raise InputException(f"Artifact {artifact.name} is outside of {out_dir}")
        artifact_dir.mkdir(parents=True, exist_ok=True)
        for obj in artifact.objects:
            _LOGGER.debug("Writing %s %s to %s", obj.kind, obj.name, artifact_dir)
            await write_docs(artifact_dir / OBJECT_FILENAMES[obj.kind], [obj.to_doc()])
        if fetcher is None or not artifact.paths_to_copy:
            continue
        if artifact.repo_url is None or artifact.branch is None:
            raise InputException(f"Artifact {artifact.name} has no source repository")
        checkout = await fetcher.checkout(artifact.repo_url, artifact.branch)
        folder = checkout / (artifact.sparse_folder or ".")
        for path in artifact.paths_to_copy:
            _LOGGER.debug("Copying %s from %s", path, artifact.repo_url)
            _copy_path(folder / path, artifact_dir / path, checkout, artifact_dir)
