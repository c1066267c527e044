"""Platform abstraction layer."""

from .files import add_execute_bit, atomic_write_text, is_executable, write_private_bytes
from .process import ProcessError, ProcessRunner, SubprocessRunner, run

__all__ = [
    # files
    "add_execute_bit",
    "atomic_write_text",
    "is_executable",
    "write_private_bytes",
    # process
    "ProcessError",
    "ProcessRunner",
    "SubprocessRunner",
    "run",
]
