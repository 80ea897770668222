"""Flux-profiles build action."""

from argparse import (
    ArgumentParser,
    _SubParsersAction as SubParsersAction,
)
import logging
import pathlib
from typing import cast

from flux_profiles import profile, writer

from . import selector
from .format import YamlFormatter

_LOGGER = logging.getLogger(__name__)


class BuildAction:
    """Flux-profiles build action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "build",
                help="Build the flux objects for a profile",
                description="""Resolves a profile and any nested profiles from
                    their git repositories and outputs the flux HelmRelease,
                    HelmRepository and Kustomization objects that install it.""",
            ),
        )
        selector.add_profile_flags(args)
        args.add_argument(
            "--output-dir",
            type=pathlib.Path,
            default=None,
            help="Directory to write the profile and its artifacts to, including "
            "files of local artifacts. When unset objects are printed instead.",
        )
        args.add_argument(
            "--output-file",
            type=str,
            default="/dev/stdout",
            help="Output file for the objects when no output directory is set",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        output_dir: pathlib.Path | None,
        output_file: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        subscription = selector.build_subscription(**kwargs)
        context = selector.build_context(**kwargs)
        fetcher = selector.build_fetcher(**kwargs)
        artifacts = await profile.make_artifacts(subscription, fetcher, context)
        _LOGGER.debug("Resolved %d artifacts", len(artifacts))

        if output_dir is not None:
            await writer.write_output(output_dir, subscription, artifacts, fetcher)
            return

        docs = [doc for artifact in artifacts for doc in artifact.docs()]
        with open(output_file, "w") as file:
            YamlFormatter().print(docs, file=file)
