"""Exceptions raised while bootstrapping a hosted application.

Every failure that ends a run derives from ``BootstrapError``; the CLI turns
any of them into exit status 1.
"""


class BootstrapError(Exception):
    """Base class for launcher failures."""


class ConfigurationError(BootstrapError):
    """The launcher configuration is unusable, e.g. no entry point designated."""


class ArtifactResolutionError(BootstrapError):
    """A remote artifact could not be resolved; the whole acquisition is aborted."""


class ArtifactNotFoundError(ArtifactResolutionError):
    """No configured repository serves the requested artifact."""

    def __init__(self, coordinate, repositories=()):
        self.coordinate = coordinate
        self.repositories = list(repositories)
        tried = ", ".join(self.repositories) or "no repositories"
        super().__init__(f"Artifact {coordinate} not found (tried: {tried})")


class EntryPointNotFoundError(BootstrapError):
    """The entry-point module does not exist in any layer."""


class EntryPointSignatureError(BootstrapError):
    """The entry-point module has no function callable with the argument list."""


class EntryPointInvocationError(BootstrapError):
    """The hosted entry point raised; the original exception is chained."""
