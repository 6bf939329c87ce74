"""
Apply rlimits, then exec the real command.

Run as a script by the sandbox so limits are set in a fresh interpreter
instead of a preexec_fn hook in the threaded service process:

    python -I rlimit_launcher.py <cpu_s> <memory_mb> <file_mb> <open_files> -- argv...

Only the standard library is imported; the child environment carries no
PYTHONPATH.
"""

import os
import resource
import sys

EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127
EXIT_USAGE = 2


def apply_limits(cpu_seconds: int, memory_mb: int, max_file_mb: int, max_open_files: int) -> None:
    resource.setrlimit(resource.RLIMIT_CPU, (cpu_seconds, cpu_seconds))
    memory = memory_mb * 1024 * 1024
    resource.setrlimit(resource.RLIMIT_AS, (memory, memory))
    file_size = max_file_mb * 1024 * 1024
    resource.setrlimit(resource.RLIMIT_FSIZE, (file_size, file_size))
    resource.setrlimit(resource.RLIMIT_NOFILE, (max_open_files, max_open_files))
    resource.setrlimit(resource.RLIMIT_CORE, (0, 0))


def main(args: list[str]) -> int:
    if len(args) < 6 or args[4] != "--":
        sys.stderr.write("usage: rlimit_launcher.py CPU MEM FSIZE NOFILE -- COMMAND...\n")
        return EXIT_USAGE

    apply_limits(*(int(value) for value in args[:4]))
    command = args[5:]
    try:
        os.execvp(command[0], command)
    except OSError as e:
        sys.stderr.write(f"cannot execute {command[0]}: {e.strerror}\n")
        return EXIT_NOT_FOUND if isinstance(e, FileNotFoundError) else EXIT_NOT_EXECUTABLE


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
