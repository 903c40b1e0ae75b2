"""Operating-system seams: subprocesses and files."""

from .files import atomic_write_text, private_key_file
from .process import ProcessError, run

__all__ = [
    "ProcessError",
    "atomic_write_text",
    "private_key_file",
    "run",
]
