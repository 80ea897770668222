"""
flux-profiles resolves profile definitions from git repositories into flux
HelmRelease, HelmRepository and Kustomization objects.
"""

__all__ = [
    "builder",
    "manifest",
    "naming",
    "profile",
    "source",
    "writer",
    "exceptions",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
