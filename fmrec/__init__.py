"""
fmrec package.

Library and CLI to drive an external command-line audio recorder (fmedia)
as a long-lived background process: start, pause, resume, stop, cancel and
list capture devices, with recording state exposed as an observable stream.

Expose package version via __version__.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fmrec")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
