"""Shape algebra for windowed (convolution-style) layers.

Forward inference maps an input configuration to the output configuration.
The inverse is a best-effort reconstruction: with strides above one several
input sizes collapse onto the same output size, and the inverse returns the
smallest of them.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import TYPE_CHECKING

from sparse_conv_toolkit.core.errors import ConfigurationError

from .validators import validate_layer_shape

if TYPE_CHECKING:
    from sparse_conv_toolkit.core.configs import SparseConvolutionConfig


@dataclass(frozen=True)
class LayerShape:
    """Spatial sizes per dimension plus the number of feature maps."""

    dimension_sizes: tuple[int, ...]
    feature_map_count: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "dimension_sizes", tuple(int(s) for s in self.dimension_sizes))
        object.__setattr__(self, "feature_map_count", int(self.feature_map_count))

    @property
    def dimension_count(self) -> int:
        return len(self.dimension_sizes)

    @property
    def neuron_count_per_feature_map(self) -> int:
        return math.prod(self.dimension_sizes)

    @property
    def neuron_count(self) -> int:
        return self.neuron_count_per_feature_map * self.feature_map_count


def output_shape(input_shape: LayerShape, config: SparseConvolutionConfig) -> LayerShape:
    """Compute the output configuration produced from ``input_shape``.

    Raises:
        ConfigurationError: If the shape does not match the layer, or the padded
            input is smaller than the window in some dimension.

    """
    validate_layer_shape(
        input_shape,
        feature_map_count=config.input_feature_map_count,
        dimension_count=config.dimension_count,
        role="input",
    )

    sizes = []
    for i, window in enumerate(config.window_sizes):
        total = input_shape.dimension_sizes[i] + config.left_zero_padding[i] + config.right_zero_padding[i]
        if total < window:
            msg = (
                f"Total dimension size (with padding) {total} of dimension ({i}) "
                f"is smaller than layer window size ({window})"
            )
            raise ConfigurationError(msg)
        sizes.append((total - window) // config.strides[i] + 1)

    return LayerShape(tuple(sizes), config.output_feature_map_count)


def input_shape(output_shape: LayerShape, config: SparseConvolutionConfig) -> LayerShape:
    """Reconstruct the input configuration that yields ``output_shape``.

    Exact for unit strides. For larger strides the result is the smallest input
    size whose forward mapping reproduces ``output_shape``.
    """
    validate_layer_shape(
        output_shape,
        feature_map_count=config.output_feature_map_count,
        dimension_count=config.dimension_count,
        role="output",
    )

    sizes = []
    for i, size in enumerate(output_shape.dimension_sizes):
        if size < 1:
            msg = f"Output dimension ({i}) must be at least 1 to reconstruct input, got {size}"
            raise ConfigurationError(msg)
        reconstructed = (
            (size - 1) * config.strides[i]
            + config.window_sizes[i]
            - config.left_zero_padding[i]
            - config.right_zero_padding[i]
        )
        if reconstructed < 0:
            msg = f"No input size of dimension ({i}) produces output size {size} with the configured padding"
            raise ConfigurationError(msg)
        sizes.append(reconstructed)

    return LayerShape(tuple(sizes), config.input_feature_map_count)


__all__ = ["LayerShape", "input_shape", "output_shape"]
