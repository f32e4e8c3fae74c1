import pytest

from chipdb_locator.exepath import FixedResolver
from chipdb_locator.locator import file_test_open


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's CHIPDB_* overrides out of the tests."""
    for name in ('CHIPDB_PREFIX', 'CHIPDB_SUBDIR', 'CHIPDB_VERBOSE'):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_chipdb():
    """Create a chipdb file at the given path and return the path as a string."""
    def _make(path):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(".device 1k\n")
        return str(path)
    return _make


@pytest.fixture
def install(tmp_path):
    """A fake install: prefix, home and an executable directory under tmp_path."""
    prefix = tmp_path / 'prefix'
    home = tmp_path / 'home'
    bindir = tmp_path / 'portable' / 'bin'
    for d in (prefix, home, bindir):
        d.mkdir(parents=True)
    return {
        'prefix': prefix,
        'home': home,
        'bindir': bindir,
        'resolver': FixedResolver(str(bindir)),
    }


class RecordingProbe:
    """Open-for-read probe that remembers every path it was asked about."""

    def __init__(self):
        self.calls = []

    def __call__(self, path):
        self.calls.append(path)
        return file_test_open(path)


@pytest.fixture
def probe():
    return RecordingProbe()
