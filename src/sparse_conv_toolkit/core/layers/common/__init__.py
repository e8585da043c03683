from .connectivity_builders import (
    CONNECTIVITY_BUILDERS,
    ConnectivityResult,
    build_balanced,
    build_connectivity,
    build_dense,
    fill_connection_matrix,
)
from .initializers import LayerData, init_sparse_weights, standard_deviation_for
from .metadata import LayerAction, LayerDataConfiguration
from .shapes import LayerShape, input_shape, output_shape
from .sparse_layout import SparseLayout, encode_sparse_layout
from .validators import validate_layer_shape

__all__ = [
    "CONNECTIVITY_BUILDERS",
    "ConnectivityResult",
    "LayerAction",
    "LayerData",
    "LayerDataConfiguration",
    "LayerShape",
    "SparseLayout",
    "build_balanced",
    "build_connectivity",
    "build_dense",
    "encode_sparse_layout",
    "fill_connection_matrix",
    "init_sparse_weights",
    "input_shape",
    "output_shape",
    "standard_deviation_for",
    "validate_layer_shape",
]
