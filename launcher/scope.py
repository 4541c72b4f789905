"""
scope.py
--------
Layered module resolution for the hosted application.

An ``OverrideResolutionScope`` sits in front of the host interpreter's own
modules. For every requested name it answers, in this order:

1. a module this scope already loaded,
2. the host, when the name is reserved for the launcher itself or falls in
   an excluded namespace (standard library, launcher libraries),
3. its own locations (application archive and acquired artifacts), child-first,
4. the host.

The launcher's own modules always come from the host so an acquired artifact
can never replace the code that is running the bootstrap.

``sys.modules`` is shared by the whole process, so a scope only publishes its
modules there while it is active. Activating a scope sets aside the host's
entries for the top-level names its locations provide; deactivating it removes
the scope's modules again and puts the host's entries back.
"""

from __future__ import annotations

import importlib
import importlib.abc
import importlib.machinery
import importlib.util
import logging
import os
import sys
import threading
import zipfile
from contextlib import contextmanager
from importlib.machinery import ModuleSpec, PathFinder
from types import ModuleType
from typing import Iterable, Iterator, Protocol

logger = logging.getLogger(__name__)

# launcher packages; an artifact defining any of these must not shadow them
LAUNCHER_PACKAGES = ("launcher", "common", "descriptor", "connectors")

RESERVED_NAMES = frozenset(
    LAUNCHER_PACKAGES
    + (
        "launcher.scope",
        "launcher.bootstrapper",
        "launcher.config",
        "launcher.errors",
        "launcher.cli",
        "common.app_setup",
    )
)

# libraries the launcher itself runs on
LAUNCHER_LIBRARY_PREFIXES = frozenset({
    "typer", "click", "rich", "pygments", "markdown_it", "mdurl", "shellingham",
    "pydantic", "pydantic_core", "annotated_types", "typing_extensions", "typing_inspection",
    "yaml", "_yaml", "box",
})

# libraries used by the remote resolver
RESOLVER_LIBRARY_PREFIXES = frozenset({
    "httpx", "httpcore", "h11", "h2", "anyio", "sniffio", "certifi", "idna",
})

PLATFORM_PREFIXES = frozenset(sys.stdlib_module_names) | frozenset(sys.builtin_module_names) | {"__main__"}

DEFAULT_EXCLUDED_PREFIXES = PLATFORM_PREFIXES | LAUNCHER_LIBRARY_PREFIXES

# longest first, so "x.cpython-311-x86_64-linux-gnu.so" is read as "x"
MODULE_SUFFIXES = tuple(sorted(importlib.machinery.all_suffixes(), key=len, reverse=True))


class ResolutionScope(Protocol):
    def resolve(self, name: str) -> ModuleType: ...


class HostScope:
    """The host interpreter's own modules: ``sys.modules`` and ``sys.path``."""

    def resolve(self, name: str) -> ModuleType:
        return importlib.import_module(name)


class OverrideResolutionScope(importlib.abc.MetaPathFinder):
    """
    Child-first module scope over ``locations`` with ``host_scope`` as fallback.

    Args:
        locations: Directories and zip archives searched for top-level modules, in order.
        host_scope: Scope answering excluded names and names not found in ``locations``.
        excluded_prefixes: Namespaces always answered by the host.
        reserved_names: Exact names always answered by the host.
    """

    def __init__(self, locations: Iterable[str | os.PathLike], host_scope: ResolutionScope,
                 excluded_prefixes: Iterable[str] = DEFAULT_EXCLUDED_PREFIXES,
                 reserved_names: Iterable[str] = RESERVED_NAMES):
        self.locations = tuple(os.fspath(location) for location in locations)
        self.host_scope = host_scope
        self.excluded_prefixes = frozenset(excluded_prefixes)
        self.reserved_names = frozenset(reserved_names)
        self._resolved: dict[str, ModuleType] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._activation_guard = threading.Lock()
        self._activations = 0
        self._set_aside: dict[str, ModuleType] = {}
        self._top_level_names: frozenset[str] | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(locations={list(self.locations)!r})"

    # ------------------------------------------------------------------
    # resolution

    def resolve(self, name: str) -> ModuleType:
        """Return the module for ``name``; raises ModuleNotFoundError when neither layer has it."""
        with self.activate(), self._lock_for(name):
            module = self._resolved.get(name)
            if module is not None:
                return module

            if self.is_excluded(name):
                return self.host_scope.resolve(name)

            module = self._load_own(name)
            if module is not None:
                return module

            return self.host_scope.resolve(name)

    def is_excluded(self, name: str) -> bool:
        """True when ``name`` must always be answered by the host."""
        if name in self.reserved_names:
            return True
        return any(name == prefix or name.startswith(prefix + ".") for prefix in self.excluded_prefixes)

    def owns(self, name: str) -> bool:
        """True when ``name`` was loaded from this scope's own locations."""
        return name in self._resolved

    def top_level_names(self) -> frozenset[str]:
        """Top-level module and package names the locations can provide."""
        if self._top_level_names is None:
            names: set[str] = set()
            for location in self.locations:
                names.update(_names_in_location(location))
            self._top_level_names = frozenset(n for n in names if not self.is_excluded(n))
        return self._top_level_names

    # ------------------------------------------------------------------
    # meta path hook

    def find_spec(self, fullname: str, path=None, target=None) -> ModuleSpec | None:
        if self.is_excluded(fullname):
            return None
        parent_name = fullname.rpartition(".")[0]
        if path is None:
            return None if parent_name else self._own_spec(fullname, self.locations)
        # submodules only below packages this scope loaded itself
        if not parent_name or not self.owns(parent_name):
            return None
        return self._own_spec(fullname, path)

    @contextmanager
    def activate(self) -> Iterator[OverrideResolutionScope]:
        """
        Make this scope the first import finder for the duration of the block.
        Re-entrant and shared by threads; the last exit restores ``sys.modules``.
        """
        with self._activation_guard:
            if self._activations == 0:
                self._install()
            self._activations += 1
        try:
            yield self
        finally:
            with self._activation_guard:
                self._activations -= 1
                if self._activations == 0:
                    self._uninstall()

    # ------------------------------------------------------------------
    # helpers

    def _install(self):
        provided = self.top_level_names()
        for name in list(sys.modules):
            if name.partition(".")[0] in provided and name not in self._resolved:
                self._set_aside[name] = sys.modules.pop(name)
        sys.modules.update(self._resolved)
        sys.meta_path.insert(0, self)

    def _uninstall(self):
        try:
            sys.meta_path.remove(self)
        except ValueError:
            logger.warning("Resolution scope was already removed from sys.meta_path")
        provided = self.top_level_names()
        for name in list(sys.modules):
            if name in self._resolved or name.partition(".")[0] in provided:
                del sys.modules[name]
        sys.modules.update(self._set_aside)
        self._set_aside.clear()

    def _lock_for(self, name: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.RLock()
            return lock

    def _own_spec(self, name: str, search_path) -> ModuleSpec | None:
        spec = PathFinder.find_spec(name, list(search_path))
        # namespace portions are left to the host
        if spec is None or spec.loader is None:
            return None
        spec.loader = _ScopeLoader(self, spec.loader)
        return spec

    def _load_own(self, name: str) -> ModuleType | None:
        parent_name, _, child = name.rpartition(".")
        if parent_name:
            parent = self.resolve(parent_name)
            # executing the parent may already have imported this module
            module = self._resolved.get(name)
            if module is not None:
                return module
            search_path = getattr(parent, "__path__", None)
            if not self.owns(parent_name) or search_path is None:
                return None
            spec = self._own_spec(name, search_path)
        else:
            spec = self._own_spec(name, self.locations)
        if spec is None:
            return None

        module = importlib.util.module_from_spec(spec)
        sys.modules[name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(name, None)
            raise

        if parent_name:
            setattr(self._resolved[parent_name], child, module)
        return module


class _ScopeLoader(importlib.abc.Loader):
    """Wraps a location's loader so every module it executes is recorded by the scope."""

    def __init__(self, scope: OverrideResolutionScope, loader):
        self._scope = scope
        self._loader = loader

    def create_module(self, spec):
        return self._loader.create_module(spec)

    def exec_module(self, module):
        name = module.__name__
        # recorded before execution so imports of the module's own name see it
        self._scope._resolved[name] = module
        try:
            self._loader.exec_module(module)
        except BaseException:
            self._scope._resolved.pop(name, None)
            raise
        logger.debug("Resolved %s from %s", name, getattr(module.__spec__, "origin", None))

    def __getattr__(self, attr):
        return getattr(self._loader, attr)


def _module_name(file_name: str) -> str | None:
    for suffix in MODULE_SUFFIXES:
        if file_name.endswith(suffix):
            return file_name[:-len(suffix)]
    return None


def _is_package_init(file_name: str) -> bool:
    return _module_name(file_name) == "__init__"


def _names_in_location(location: str) -> set[str]:
    names = set()
    if os.path.isdir(location):
        with os.scandir(location) as entries:
            for entry in entries:
                if entry.is_dir():
                    if any(_is_package_init(child) for child in os.listdir(entry.path)):
                        names.add(entry.name)
                elif entry.is_file():
                    names.add(_module_name(entry.name) or "")
    elif zipfile.is_zipfile(location):
        with zipfile.ZipFile(location) as archive:
            for member in archive.namelist():
                top, sep, rest = member.partition("/")
                if not sep:
                    names.add(_module_name(top) or "")
                elif _is_package_init(rest):
                    names.add(top)
    else:
        logger.warning("Ignoring location that is neither a directory nor a zip archive: %s", location)
    return {name for name in names if name.isidentifier()}
