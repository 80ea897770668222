"""Command line tool for flux-profiles."""
