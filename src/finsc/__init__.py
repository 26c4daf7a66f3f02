"""
finsc distribution import namespace.

Re-exports the core `combinator_contracts` package so that
`import finsc` and `import combinator_contracts` expose the same API.
"""

from importlib.metadata import PackageNotFoundError, version

# src/finsc/__init__.py
from combinator_contracts import *  # noqa: F401,F403
from combinator_contracts import __all__ as _core_all

try:
    from ._version import __version__  # written by release builds
except ImportError:  # pragma: no cover - editable installs and source checkouts
    try:
        __version__ = version("finsc")
    except PackageNotFoundError:
        __version__ = "0+unknown"

__all__ = ["__version__", *_core_all]
