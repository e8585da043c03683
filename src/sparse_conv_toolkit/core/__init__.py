from .configs import AbsoluteCount, ConnectivityTarget, SparseConvolutionConfig, SparsityRatio
from .errors import ConfigurationError, ConnectivityError
from .layers import SparseConvolutionLayer
from .layers.common import LayerAction, LayerData, LayerShape, SparseLayout

__all__ = [
    "AbsoluteCount",
    "ConfigurationError",
    "ConnectivityError",
    "ConnectivityTarget",
    "LayerAction",
    "LayerData",
    "LayerShape",
    "SparseConvolutionConfig",
    "SparseConvolutionLayer",
    "SparseLayout",
    "SparsityRatio",
]
