import sys
import textwrap
import types
import zipfile

import pytest

# every module a test creates is named with this prefix, so it can be dropped afterwards
TEST_MODULE_PREFIX = "rtl_"


@pytest.fixture(autouse=True)
def isolated_imports():
    """Forget test modules and stray meta path entries after each test."""
    meta_path = list(sys.meta_path)
    yield
    for name in [n for n in sys.modules if n.startswith(TEST_MODULE_PREFIX)]:
        del sys.modules[name]
    sys.meta_path[:] = meta_path


@pytest.fixture
def probe():
    """A host module artifacts can report to: ``rtl_probe.loads`` lists executed module names."""
    module = types.ModuleType("rtl_probe")
    module.loads = []
    sys.modules["rtl_probe"] = module
    return module


def write_tree(root, files):
    root.mkdir(parents=True, exist_ok=True)
    for relative, source in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source))
    return root


@pytest.fixture
def make_archive(tmp_path):
    """Create a zip archive of python sources: make_archive("lib.zip", {"mod.py": "..."})."""
    def make(name, files):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as archive:
            for relative, source in files.items():
                archive.writestr(relative, textwrap.dedent(source))
        return path
    return make


@pytest.fixture
def make_app(tmp_path):
    """Create an application directory with the given files."""
    def make(files, name="app"):
        return write_tree(tmp_path / name, files)
    return make


class FakeHost:
    """Host scope backed by a dict; records every name it is asked for."""

    def __init__(self, modules=None):
        self.modules = dict(modules or {})
        self.calls = []

    def resolve(self, name):
        self.calls.append(name)
        try:
            return self.modules[name]
        except KeyError:
            raise ModuleNotFoundError(f"No module named {name!r}", name=name) from None


@pytest.fixture
def fake_host():
    return FakeHost()
