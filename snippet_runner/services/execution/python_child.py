"""
Entry script for the child interpreter that runs one Python snippet.

The runtimes start it as ``python -I -B -c <source of this file>``; the
snippet, the importable module names and the resource limits arrive in
environment variables. Before the snippet runs the child:

- caps its own address space and CPU time,
- lets the snippet import only the allowed top-level modules; any other
  import raises ``ImportError("File not found: '<name>'")`` when it runs,
  so ``try``/``except ImportError`` keeps working,
- installs an audit hook that refuses sockets, process creation, native
  code loading, and file access outside the working directory and the
  interpreter's own installation.

Audit hooks cannot be removed once installed, so the last point also
covers modules reached without going through ``__import__``.
"""

import builtins
import os
import sys
import types

SOURCE_VAR = "SNIPPET_SOURCE"
MODULES_VAR = "SNIPPET_MODULES"
MEMORY_VAR = "SNIPPET_MEMORY_BYTES"
CPU_VAR = "SNIPPET_CPU_SECONDS"

SNIPPET_FILENAME = "main.py"

BLOCKED_EVENTS = frozenset({
    "os.system", "os.fork", "os.forkpty", "os.kill", "os.killpg",
    "os.posix_spawn", "os.startfile", "subprocess.Popen", "pty.spawn",
    "resource.setrlimit", "resource.prlimit",
})
BLOCKED_PREFIXES = ("socket.", "ctypes.", "os.exec", "os.spawn", "winreg.", "_winapi.")

# Private modules that expose process, native-code or subinterpreter
# primitives without audit events of their own
BLOCKED_IMPORTS = frozenset({"_posixsubprocess", "_ctypes", "_winapi"})
BLOCKED_IMPORT_PREFIXES = ("_test", "_xx", "_interp")

WRITE_EVENTS = frozenset({
    "os.remove", "os.rename", "os.replace", "os.rmdir", "os.mkdir",
    "os.chmod", "os.chown", "os.link", "os.symlink", "os.truncate",
    "os.utime", "os.chflags", "os.lchflags", "os.setxattr",
    "os.removexattr", "shutil.rmtree", "shutil.copyfile", "shutil.copytree",
    "shutil.move",
})
READ_EVENTS = frozenset({
    "os.listdir", "os.scandir", "os.listxattr", "os.getxattr", "glob.glob",
})

_WRITE_FLAGS = os.O_WRONLY | os.O_RDWR | os.O_APPEND | os.O_CREAT | os.O_TRUNC


def _real(path):
    return os.path.realpath(os.fsdecode(path))


def _within(path, roots):
    real = _real(path)
    return any(real == root or real.startswith(root.rstrip(os.sep) + os.sep) for root in roots)


def _paths(args):
    return [arg for arg in args if isinstance(arg, (str, bytes, os.PathLike))]


def _address_space_in_use():
    try:
        with open("/proc/self/statm") as statm:
            return int(statm.read().split()[0]) * os.sysconf("SC_PAGE_SIZE")
    except (OSError, ValueError):
        return 0


def limit_resources(memory_bytes, cpu_seconds):
    if sys.platform == "win32":
        return
    import resource

    limits = []
    if memory_bytes > 0:
        # Budget on top of what the interpreter already maps
        limits.append((resource.RLIMIT_AS, _address_space_in_use() + memory_bytes))
    if cpu_seconds > 0:
        limits.append((resource.RLIMIT_CPU, cpu_seconds))
    for kind, value in limits:
        try:
            resource.setrlimit(kind, (value, value))
        except (ValueError, OSError):
            # Not every platform supports every limit (RLIMIT_AS on macOS)
            continue


def restrict_imports(allowed):
    original_import = builtins.__import__

    def snippet_import(name, globals=None, locals=None, fromlist=(), level=0):
        if level == 0 and (globals is None or globals.get("__name__") == "__main__"):
            top = name.partition(".")[0]
            if top not in allowed:
                raise ImportError(f"File not found: '{top}'", name=top)
        return original_import(name, globals, locals, fromlist, level)

    builtins.__import__ = snippet_import


def make_audit_hook(workdir, read_roots):
    write_roots = (workdir,)

    def refuse(event):
        raise PermissionError(f"Operation not permitted in the snippet sandbox: {event}")

    def hook(event, args):
        if event in BLOCKED_EVENTS or event.startswith(BLOCKED_PREFIXES):
            refuse(event)
        elif event == "import":
            name = str(args[0]) if args else ""
            if name.partition(".")[0] in BLOCKED_IMPORTS or name.startswith(BLOCKED_IMPORT_PREFIXES):
                raise ImportError(f"File not found: '{name}'", name=name)
        elif event == "open":
            path, mode, flags = (tuple(args) + (None, None, None))[:3]
            if not isinstance(path, (str, bytes, os.PathLike)):
                return
            if isinstance(mode, str):
                writing = any(flag in mode for flag in "wax+")
            else:
                writing = isinstance(flags, int) and bool(flags & _WRITE_FLAGS)
            if not _within(path, write_roots if writing else read_roots):
                refuse(f"open {os.fsdecode(path)!r}")
        elif event in WRITE_EVENTS:
            for path in _paths(args):
                if not _within(path, write_roots):
                    refuse(f"{event} {os.fsdecode(path)!r}")
        elif event in READ_EVENTS:
            for path in _paths(args) or ["."]:
                if not _within(path, read_roots):
                    refuse(f"{event} {os.fsdecode(path)!r}")

    return hook


def interpreter_roots():
    candidates = [sys.prefix, sys.base_prefix, sys.exec_prefix, sys.base_exec_prefix, *sys.path]
    return tuple(sorted({_real(path) for path in candidates if path}))


def main():
    for stream in (sys.stdout, sys.stderr):
        stream.reconfigure(encoding="utf-8", errors="backslashreplace")

    source = os.environ.pop(SOURCE_VAR, "")
    allowed = frozenset(filter(None, os.environ.pop(MODULES_VAR, "").split(",")))
    memory_bytes = int(os.environ.pop(MEMORY_VAR, "0") or 0)
    cpu_seconds = int(os.environ.pop(CPU_VAR, "0") or 0)

    code = compile(source, SNIPPET_FILENAME, "exec")

    workdir = _real(os.getcwd())
    read_roots = interpreter_roots() + (workdir,)

    limit_resources(memory_bytes, cpu_seconds)
    restrict_imports(allowed)
    sys.addaudithook(make_audit_hook(workdir, read_roots))

    module = types.ModuleType("__main__")
    module.__dict__["__builtins__"] = builtins
    sys.modules["__main__"] = module
    exec(code, module.__dict__)


if __name__ == "__main__":
    main()
