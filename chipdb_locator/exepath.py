"""
Executable directory resolution

Finds the directory holding the binary of the running process. There is no
portable OS call for this, so each platform gets its own resolver and
default_resolver() picks the one that fits sys.platform.

Every resolver returns an absolute directory ending in a separator, or "" when
the argv[0] search comes up empty.
"""

import ctypes
import logging
import os
import stat
import sys
from typing import Callable, Mapping, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

# FreeBSD sysctl(3) MIB for the running process' image path
CTL_KERN = 1
KERN_PROC = 14
KERN_PROC_PATHNAME = 12

WIN_MAX_PATH = 260
DEFAULT_PATH_MAX = 4096


class ExecutablePathError(RuntimeError):
    """An introspection call needed to locate the executable failed."""

    def __init__(self, call: str, reason: str):
        self.call = call
        self.reason = reason
        super().__init__(f"{call} failed: {reason}")


class ExecutablePathResolver(Protocol):
    def resolve(self) -> str:
        ...


def trim_to_dirname(path: str, separators: str = "/") -> str:
    """
    Drop everything after the last separator.

    Args:
        path: Full path of the executable
        separators: Characters accepted as path separators

    Returns:
        The directory part ending in exactly one separator, or "" if the
        path has no separator at all
    """
    end = len(path)
    while end > 0 and path[end - 1] not in separators:
        end -= 1
    # collapse "/usr/bin//tool" to "/usr/bin/"
    while end > 1 and path[end - 2] in separators:
        end -= 1
    return path[:end]


def _path_max(path: str) -> int:
    try:
        return os.pathconf(path, "PC_PATH_MAX")
    except (AttributeError, ValueError, OSError):
        return DEFAULT_PATH_MAX


class ProcSelfExeResolver:
    """Reads the /proc/self/exe symlink (Linux, Cygwin)."""

    def __init__(self, link: str = "/proc/self/exe"):
        self.link = link

    def resolve(self) -> str:
        call = f'readlink("{self.link}")'
        try:
            target = os.readlink(self.link)
        except OSError as e:
            raise ExecutablePathError(call, e.strerror or str(e)) from e

        if len(os.fsencode(target)) >= _path_max(os.path.dirname(self.link) or "/"):
            raise ExecutablePathError(call, "link target truncated")

        return trim_to_dirname(target)


def _load_libc():
    libc = ctypes.CDLL(None, use_errno=True)
    libc.sysctl.argtypes = [
        ctypes.POINTER(ctypes.c_int),
        ctypes.c_uint,
        ctypes.c_void_p,
        ctypes.POINTER(ctypes.c_size_t),
        ctypes.c_void_p,
        ctypes.c_size_t,
    ]
    libc.sysctl.restype = ctypes.c_int
    return libc


def _errno_text() -> str:
    return os.strerror(ctypes.get_errno())


class SysctlPathnameResolver:
    """Asks the kernel for the process path with KERN_PROC_PATHNAME (FreeBSD)."""

    def __init__(self, libc=None):
        self._libc = libc

    def resolve(self) -> str:
        libc = self._libc or _load_libc()
        mib = (ctypes.c_int * 4)(CTL_KERN, KERN_PROC, KERN_PROC_PATHNAME, -1)
        size = ctypes.c_size_t(0)

        if libc.sysctl(mib, 4, None, ctypes.pointer(size), None, 0) != 0:
            raise ExecutablePathError("sysctl", _errno_text())

        buffer = ctypes.create_string_buffer(size.value)
        if libc.sysctl(mib, 4, buffer, ctypes.pointer(size), None, 0) != 0:
            raise ExecutablePathError("sysctl", _errno_text())

        # size now holds the filled length, NUL included
        raw = buffer.raw[:size.value].split(b"\0", 1)[0]
        return trim_to_dirname(os.fsdecode(raw))


class ArgvSearchResolver:
    """
    Derives the executable from argv[0] (OpenBSD and other systems without
    a process-path API).

    An explicit path is canonicalized; a bare command name is looked up in
    PATH the way a shell would. Nothing found resolves to "" rather than
    raising.
    """

    def __init__(
        self,
        argv0: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        stat_func: Callable[[str], os.stat_result] = os.stat,
        pathsep: str = os.pathsep,
    ):
        self.argv0 = argv0
        self.environ = environ
        self.stat_func = stat_func
        self.pathsep = pathsep

    def _argv0(self) -> str:
        if self.argv0 is not None:
            return self.argv0
        argv: Sequence[str] = getattr(sys, "orig_argv", None) or sys.argv
        return argv[0] if argv else ""

    def _is_executable(self, candidate: str) -> bool:
        try:
            st = self.stat_func(candidate)
        except OSError:
            return False
        return bool(st.st_mode & stat.S_IXUSR)

    def resolve(self) -> str:
        comm = self._argv0()
        if not comm:
            return ""

        if comm.startswith(("/", ".")):
            try:
                epath = os.path.realpath(comm, strict=True)
            except OSError:
                logger.debug(f"Could not canonicalize argv[0] {comm!r}")
                return ""
            return trim_to_dirname(epath)

        environ = os.environ if self.environ is None else self.environ
        for directory in environ.get("PATH", "").split(self.pathsep):
            if not directory:
                continue
            epath = f"{directory}/{comm}"
            if self._is_executable(epath):
                return trim_to_dirname(epath)

        logger.debug(f"{comm!r} not found on PATH")
        return ""


def _load_dyld():
    libsystem = ctypes.CDLL(None)
    libsystem._NSGetExecutablePath.argtypes = [
        ctypes.c_char_p,
        ctypes.POINTER(ctypes.c_uint32),
    ]
    libsystem._NSGetExecutablePath.restype = ctypes.c_int
    return libsystem


class NSGetExecutablePathResolver:
    """Calls _NSGetExecutablePath with a growing buffer (macOS)."""

    def __init__(self, dyld=None):
        self._dyld = dyld

    def resolve(self) -> str:
        dyld = self._dyld or _load_dyld()
        size = ctypes.c_uint32(0)
        buffer = ctypes.create_string_buffer(0)
        while dyld._NSGetExecutablePath(buffer, ctypes.pointer(size)) != 0:
            if size.value <= len(buffer):
                raise ExecutablePathError("_NSGetExecutablePath", "no buffer size reported")
            buffer = ctypes.create_string_buffer(size.value)
        return trim_to_dirname(os.fsdecode(buffer.value))


def _load_kernel32():
    kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    kernel32.GetModuleFileNameW.argtypes = [ctypes.c_void_p, ctypes.c_wchar_p, ctypes.c_uint32]
    kernel32.GetModuleFileNameW.restype = ctypes.c_uint32
    kernel32.GetShortPathNameW.argtypes = [ctypes.c_wchar_p, ctypes.c_wchar_p, ctypes.c_uint32]
    kernel32.GetShortPathNameW.restype = ctypes.c_uint32
    return kernel32


def _win_error_text() -> str:
    get_last_error = getattr(ctypes, "get_last_error", None)
    if get_last_error is None:
        return "unknown error"
    return ctypes.FormatError(get_last_error())


class ModuleFileNameResolver:
    """
    Uses GetModuleFileNameW and GetShortPathNameW (Windows).

    The short 8.3 form keeps spaces out of the directory so it can be spliced
    into command lines unquoted.
    """

    def __init__(self, kernel32=None):
        self._kernel32 = kernel32

    def _module_file_name(self, kernel32) -> str:
        size = WIN_MAX_PATH + 1
        while True:
            buffer = ctypes.create_unicode_buffer(size)
            length = kernel32.GetModuleFileNameW(None, buffer, size)
            if length == 0:
                raise ExecutablePathError("GetModuleFileName()", _win_error_text())
            if length < size:
                return buffer.value
            size *= 2

    def _short_path_name(self, kernel32, long_path: str) -> str:
        size = WIN_MAX_PATH + 1
        while True:
            buffer = ctypes.create_unicode_buffer(size)
            length = kernel32.GetShortPathNameW(long_path, buffer, size)
            if length == 0:
                raise ExecutablePathError("GetShortPathName()", _win_error_text())
            if length < size:
                return buffer.value
            size = length

    def resolve(self) -> str:
        kernel32 = self._kernel32 or _load_kernel32()
        long_path = self._module_file_name(kernel32)
        short_path = self._short_path_name(kernel32, long_path)
        return trim_to_dirname(short_path, separators="/\\")


class RootResolver:
    """Targets without a real filesystem (emscripten, wasi)."""

    def resolve(self) -> str:
        return "/"


class FixedResolver:
    """Returns a directory the caller already knows. "" stays unresolved."""

    def __init__(self, directory: str):
        if directory and not directory.endswith(("/", "\\")):
            directory += "/"
        self.directory = directory

    def resolve(self) -> str:
        return self.directory


def default_resolver(platform: Optional[str] = None) -> ExecutablePathResolver:
    """
    Pick the resolver for a platform.

    Args:
        platform: A sys.platform value; defaults to the running interpreter's

    Returns:
        A fresh resolver; it does no caching of its own
    """
    platform = sys.platform if platform is None else platform

    if platform.startswith(("linux", "cygwin")):
        return ProcSelfExeResolver()
    if platform.startswith(("freebsd", "dragonfly")):
        return SysctlPathnameResolver()
    if platform == "darwin":
        return NSGetExecutablePathResolver()
    if platform == "win32":
        return ModuleFileNameResolver()
    if platform in ("emscripten", "wasi"):
        return RootResolver()
    return ArgvSearchResolver()


def proc_self_dirname() -> str:
    """Directory of the running executable, with a trailing separator."""
    return default_resolver().resolve()
