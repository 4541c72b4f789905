"""
bootstrapper.py
---------------
Runs a hosted application once its runtime libraries are in place.

Steps: check the entry-point designation, read the dependency descriptor,
acquire the artifacts (local library directory or remote repositories),
build the resolution scope and call the entry function with the original
arguments.
"""

from __future__ import annotations

import inspect
import logging
from pathlib import Path
from typing import Any, Callable, Sequence

from common.app_setup import print_and_log, print_error
from connectors.local_locator import LocalArtifactLocator
from connectors.maven_connector import CachingMavenResolver
from connectors.remote_resolver import RemoteArtifactResolver
from descriptor.models import ResolvedArtifact, RuntimeDescriptor
from launcher.config import LauncherSettings, LaunchMode
from launcher.errors import (
    BootstrapError,
    ConfigurationError,
    EntryPointInvocationError,
    EntryPointNotFoundError,
    EntryPointSignatureError,
)
from launcher.scope import (
    DEFAULT_EXCLUDED_PREFIXES,
    RESERVED_NAMES,
    RESOLVER_LIBRARY_PREFIXES,
    HostScope,
    OverrideResolutionScope,
    ResolutionScope,
)

logger = logging.getLogger(__name__)

DEFAULT_ENTRY_FUNCTION = "main"


def split_entry_point(designation: str) -> tuple[str, str]:
    """Split ``package.module[:function]`` into module and function names."""
    module_name, _, function_name = designation.strip().partition(":")
    return module_name.strip(), function_name.strip() or DEFAULT_ENTRY_FUNCTION


class Bootstrapper:
    """
    One bootstrap run for ``settings``.

    Args:
        settings (LauncherSettings): Effective configuration.
        host_scope: Scope used for everything the application layer does not provide.
        remote_resolver (RemoteArtifactResolver | None): Used in remote mode; built
            from the settings when not given.
    """

    def __init__(self, settings: LauncherSettings, host_scope: ResolutionScope | None = None,
                 remote_resolver: RemoteArtifactResolver | None = None):
        self.settings = settings
        self.host_scope = host_scope or HostScope()
        self._remote_resolver = remote_resolver
        self.artifacts: list[ResolvedArtifact] = []
        self.scope: OverrideResolutionScope | None = None

    def run(self, args: Sequence[str]) -> Any:
        """Bootstrap and call the entry point with ``args``; returns what the entry point returns."""
        designation = (self.settings.entry_point or "").strip()
        if not designation:
            raise ConfigurationError(
                "No entry point specified! Set one of:\n"
                "  - option: --entry-point app.main\n"
                "  - environment variable: RUNTIME_DEPENDENCY_ENTRY_POINT=app.main\n"
                "  - 'entry-point' in runtime-manifest.yaml"
            )
        module_name, function_name = split_entry_point(designation)
        if not module_name:
            raise ConfigurationError(f"Invalid entry point designation: {designation!r}")

        descriptor = self.settings.container.read_descriptor()
        self.artifacts = self.acquire(descriptor)
        self.scope = self.build_scope(self.artifacts)

        print_and_log(f"Launching {module_name}:{function_name}")
        with self.scope.activate():
            entry = self._load_entry(self.scope, module_name, function_name)
            return self._invoke(entry, designation, list(args))

    def acquire(self, descriptor: RuntimeDescriptor) -> list[ResolvedArtifact]:
        """Obtain the descriptor's artifacts with the configured strategy."""
        if not descriptor.dependencies:
            logger.info("No dependencies to resolve")
            return []

        logger.info("Found %d dependencies", len(descriptor.dependencies))
        if self.settings.mode is LaunchMode.REMOTE:
            logger.info("Found %d repositories", len(descriptor.repositories))
            artifacts = self.remote_resolver().resolve(descriptor.dependencies, descriptor.repositories)
        else:
            locator = LocalArtifactLocator(self.settings.library_path)
            artifacts = locator.acquire(descriptor.dependencies, self.settings.artifact_extension)
        print_and_log(f"Loaded {len(artifacts)} of {len(descriptor.dependencies)} dependencies")
        return artifacts

    def remote_resolver(self) -> RemoteArtifactResolver:
        if self._remote_resolver is None:
            resolver = CachingMavenResolver(
                self.settings.cache_dir,
                extension=self.settings.artifact_extension,
                include_central=self.settings.include_central,
            )
            self._remote_resolver = RemoteArtifactResolver(self.settings.cache_dir, resolver=resolver)
        return self._remote_resolver

    def build_scope(self, artifacts: Sequence[ResolvedArtifact]) -> OverrideResolutionScope:
        """Scope over the application itself followed by the artifacts, in order."""
        excluded = DEFAULT_EXCLUDED_PREFIXES
        if self.settings.mode is LaunchMode.REMOTE:
            excluded = excluded | RESOLVER_LIBRARY_PREFIXES
        locations: list[Path] = [self.settings.application]
        locations.extend(artifact.location for artifact in artifacts)
        return OverrideResolutionScope(locations, self.host_scope,
                                       excluded_prefixes=excluded, reserved_names=RESERVED_NAMES)

    # ------------------------------------------------------------------
    # helpers

    @staticmethod
    def _load_entry(scope: OverrideResolutionScope, module_name: str, function_name: str) -> Callable:
        try:
            module = scope.resolve(module_name)
        except ModuleNotFoundError as exc:
            # only a missing entry module itself; a missing import inside it is the application's failure
            if exc.name and module_name.startswith(exc.name) and module_name[len(exc.name):][:1] in ("", "."):
                raise EntryPointNotFoundError(f"Entry point module not found: {module_name}") from exc
            raise EntryPointInvocationError(f"Failed to import {module_name}: {exc}") from exc
        except Exception as exc:
            raise EntryPointInvocationError(f"Failed to import {module_name}: {exc}") from exc

        entry = getattr(module, function_name, None)
        if entry is None or not callable(entry):
            raise EntryPointSignatureError(f"Entry function {function_name}(args) not found in: {module_name}")
        try:
            inspect.signature(entry).bind([])
        except TypeError as exc:
            raise EntryPointSignatureError(
                f"Entry function {module_name}:{function_name} must accept the argument list: {exc}"
            ) from exc
        except ValueError:
            # no signature available (some builtins); let the call decide
            pass
        return entry

    @staticmethod
    def _invoke(entry: Callable, designation: str, args: list[str]) -> Any:
        try:
            return entry(args)
        except SystemExit:
            raise
        except Exception as exc:
            raise EntryPointInvocationError(f"Entry point {designation} failed: {exc}") from exc


def launch(settings: LauncherSettings, args: Sequence[str], host_scope: ResolutionScope | None = None) -> int:
    """
    Run a Bootstrapper and translate bootstrap failures into an exit status.
    SystemExit raised by the hosted application propagates unchanged.
    """
    try:
        Bootstrapper(settings, host_scope=host_scope).run(args)
    except BootstrapError as exc:
        print_error(f"Failed to launch application: {exc}", exc_info=True)
        return 1
    return 0
