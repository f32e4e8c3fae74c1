"""
Chip database lookup

Given a device name, tries the places a chipdb-<device>.txt file is
installed, in priority order:

1. the user's home directory, only when the install prefix starts with "~/"
2. <prefix>/share/<subdir>/
3. <executable dir>/../share/<subdir>/

The first candidate that can be opened for reading wins. The executable
directory is only resolved when the first two candidates miss.
"""

import logging
import os
import sys
from typing import Callable, Iterator, Mapping, Optional, Sequence, Tuple

from chipdb_locator.exepath import ExecutablePathResolver, default_resolver
from chipdb_locator.settings import DEFAULT_CHIPDB_SUBDIR, DEFAULT_PREFIX

logger = logging.getLogger(__name__)

HOME_MARKER = "~/"

# Each entry is a group of variables joined in order; the first group whose
# variables are all set wins.
POSIX_HOME_SOURCES: Sequence[Tuple[str, ...]] = (("HOME",),)
WINDOWS_HOME_SOURCES: Sequence[Tuple[str, ...]] = (
    ("USERPROFILE",),
    ("HOMEDRIVE", "HOMEPATH"),
)


def chipdb_filename(device: str) -> str:
    return f"chipdb-{device}.txt"


def file_test_open(path: str) -> bool:
    """True if the file can be opened for reading. Missing and unreadable look the same."""
    try:
        with open(path, "r"):
            pass
    except OSError:
        return False
    return True


def home_sources(platform: Optional[str] = None) -> Sequence[Tuple[str, ...]]:
    platform = sys.platform if platform is None else platform
    if platform == "win32":
        return WINDOWS_HOME_SOURCES
    return POSIX_HOME_SOURCES


def home_directory(
    environ: Optional[Mapping[str, str]] = None,
    sources: Optional[Sequence[Tuple[str, ...]]] = None,
) -> Optional[str]:
    """
    Look up the user's home directory from the environment.

    Args:
        environ: Environment mapping; defaults to os.environ
        sources: Ordered groups of variable names; defaults to the ones for
            the running platform

    Returns:
        The home directory, or None if no group is fully populated
    """
    environ = os.environ if environ is None else environ
    sources = home_sources() if sources is None else sources

    for names in sources:
        values = [environ.get(name) for name in names]
        if all(values):
            return "".join(values)
    return None


def iter_candidates(
    device: str,
    prefix: str = DEFAULT_PREFIX,
    subdir: str = DEFAULT_CHIPDB_SUBDIR,
    home_dir: Optional[str] = None,
    resolver: Optional[ExecutablePathResolver] = None,
) -> Iterator[str]:
    """
    Yield candidate chipdb paths in priority order.

    The executable directory is resolved only when the last candidate is
    requested.

    Raises:
        ExecutablePathError: If resolving the executable directory fails
    """
    filename = chipdb_filename(device)

    if prefix.startswith(HOME_MARKER):
        home = home_dir if home_dir is not None else home_directory()
        if home is None:
            logger.warning(f"Install prefix {prefix!r} needs a home directory but none is set")
        else:
            yield f"{home}{prefix[1:]}/{subdir}/{filename}"

    yield f"{prefix}/share/{subdir}/{filename}"

    resolver = resolver or default_resolver()
    yield f"{resolver.resolve()}../share/{subdir}/{filename}"


def find_chipdb(
    device: str,
    prefix: str = DEFAULT_PREFIX,
    subdir: str = DEFAULT_CHIPDB_SUBDIR,
    home_dir: Optional[str] = None,
    verbose: bool = False,
    resolver: Optional[ExecutablePathResolver] = None,
    probe: Callable[[str], bool] = file_test_open,
) -> Optional[str]:
    """
    Find the chip database file for a device.

    Args:
        device: Device name, e.g. "hx8k"
        prefix: Install prefix; a leading "~/" enables the home directory lookup
        subdir: Subdirectory the chipdb files are installed under
        home_dir: Use this instead of the home directory from the environment
        verbose: Log every candidate at INFO instead of DEBUG. The records
            only show up if the caller has configured a logging handler;
            cli.main does this, a bare library call does not
        resolver: Executable directory resolver; defaults to the platform's
        probe: Check for a usable file; defaults to an open-for-read test

    Returns:
        Path of the first readable candidate, or None if none is readable

    Raises:
        ExecutablePathError: If the executable directory can't be determined
    """
    level = logging.INFO if verbose else logging.DEBUG

    for candidate in iter_candidates(device, prefix, subdir, home_dir, resolver):
        logger.log(level, f"Looking for chipdb '{device}' at {candidate}")
        if probe(candidate):
            return candidate

    return None
