"""Top-level package for sparse_conv_toolkit.

Attribute access is forwarded lazily to the common subpackages so code like
``sparse_conv_toolkit.core`` works after importing ``sparse_conv_toolkit``.
"""

from __future__ import annotations

from importlib import import_module
from importlib.metadata import PackageNotFoundError, version as _pkg_version

try:  # Best-effort version string
    __version__ = _pkg_version("sparse-conv-toolkit")
except PackageNotFoundError:  # During editable installs/tests
    __version__ = "0.0.0"

version = __version__


def __getattr__(name: str):
    """Lazy import selected subpackages on attribute access."""
    if name in {"core", "utils"}:
        return import_module(f"{__name__}.{name}")
    if name in {"SparseConvolutionLayer", "SparseConvolutionConfig", "LayerShape"}:
        return getattr(import_module(f"{__name__}.core"), name)
    msg = f"module '{__name__}' has no attribute '{name}'"
    raise AttributeError(msg)


__all__ = ("LayerShape", "SparseConvolutionConfig", "SparseConvolutionLayer", "__version__", "version")
