"""Test helpers for flux-profiles tools."""

from pathlib import Path

from flux_profiles.tool.flux_profiles import main


def run_main(args: list[str], cache_dir: Path) -> None:
    """Run the command line tool with a clone cache private to the test."""
    main([*args, "--cache-dir", str(cache_dir)])
