"""Exceptions related to flux-profiles."""

__all__ = [
    "ProfileException",
    "InputException",
    "FetchError",
    "InvalidArtifactError",
    "CyclicReferenceError",
    "MissingSourceError",
    "UnrecognizedKindError",
]


class ProfileException(Exception):
    """Generic base exception used for this library."""

    def add_context(self, context: str) -> None:
        """Prefix the error message with details about where it happened."""
        self.args = (f"{context}: {self}",)


class InputException(ProfileException):
    """Raised when the input files or values are not formatted as expected."""


class FetchError(ProfileException):
    """Raised when a profile definition could not be retrieved or parsed."""


class InvalidArtifactError(InputException):
    """Raised when a declared artifact fails validation."""

    def __init__(self, artifact_name: str, reason: str) -> None:
        super().__init__(f"validation failed for artifact {artifact_name}: {reason}")
        self.artifact_name = artifact_name
        self.reason = reason


class CyclicReferenceError(ProfileException):
    """Raised when a profile points recursively back at itself."""

    def __init__(self, url: str, ref: str) -> None:
        super().__init__(
            f"recursive artifact detected: profile {url} on branch {ref} contains "
            "an artifact that points recursively back at itself"
        )
        self.url = url
        self.ref = ref


class MissingSourceError(ProfileException):
    """Raised when a local artifact is resolved without a GitRepository source."""


class UnrecognizedKindError(InputException):
    """Raised when a declared artifact has an unsupported kind."""

    def __init__(self, kind: str) -> None:
        super().__init__(f'artifact kind "{kind}" not recognized')
        self.kind = kind
