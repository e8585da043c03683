"""Validation helpers shared across layers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sparse_conv_toolkit.core.errors import ConfigurationError

if TYPE_CHECKING:
    from .shapes import LayerShape


def validate_layer_shape(
    shape: LayerShape,
    *,
    feature_map_count: int,
    dimension_count: int,
    role: str,
) -> None:
    """Ensure ``shape`` has the feature map and dimension counts the layer expects."""
    if shape.feature_map_count != feature_map_count:
        msg = (
            f"Feature map count in layer ({feature_map_count}) and {role} configuration "
            f"({shape.feature_map_count}) don't match"
        )
        raise ConfigurationError(msg)
    if shape.dimension_count != dimension_count:
        msg = (
            f"Dimension count in layer ({dimension_count}) and {role} configuration "
            f"({shape.dimension_count}) don't match"
        )
        raise ConfigurationError(msg)
    for i, size in enumerate(shape.dimension_sizes):
        if size < 0:
            msg = f"Dimension ({i}) of {role} configuration has negative size {size}"
            raise ConfigurationError(msg)


__all__ = ["validate_layer_shape"]
