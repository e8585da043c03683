"""Exception types raised by the sparse convolution layer."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised when a layer configuration, record or shape is invalid."""


class ConnectivityError(RuntimeError):
    """Raised when a feature map connectivity pattern cannot be generated."""


__all__ = ["ConfigurationError", "ConnectivityError"]
