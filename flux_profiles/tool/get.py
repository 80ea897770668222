"""Flux-profiles get action."""

import logging
import sys
from argparse import (
    ArgumentParser,
    _SubParsersAction as SubParsersAction,
)
from typing import Any, cast

from flux_profiles import profile

from .format import PrintFormatter
from . import selector


_LOGGER = logging.getLogger(__name__)


class GetArtifactsAction:
    """Get details about the artifacts of a profile."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "artifacts",
                aliases=["artifact"],
                help="Get the resolved artifacts of a profile",
                description="Print the artifacts of a profile and nested profiles",
            ),
        )
        selector.add_profile_flags(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        subscription = selector.build_subscription(**kwargs)
        context = selector.build_context(**kwargs)
        artifacts = await profile.make_artifacts(
            subscription, selector.build_fetcher(**kwargs), context
        )

        cols = ["name", "objects", "paths"]
        results: list[dict[str, Any]] = []
        for artifact in artifacts:
            results.append(
                {
                    "name": artifact.name,
                    "objects": ",".join(
                        f"{obj.kind}/{obj.name}" for obj in artifact.objects
                    ),
                    "paths": ",".join(artifact.paths_to_copy) or "-",
                }
            )

        if not results:
            print(f"No artifacts found in profile {subscription.source.url}")
            return

        PrintFormatter(cols).print(results, file=sys.stdout)


class GetAction:
    """Flux-profiles get action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "get",
                help="Print information about profiles",
                description="Print information about resolved profiles",
            ),
        )
        subcmds = args.add_subparsers(
            title="Available commands",
            required=True,
        )
        GetArtifactsAction.register(subcmds)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        # No-op given subcommands are always the dispatch target
