"""Weight initialization for sparse feature map connectivity."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import TYPE_CHECKING

import torch

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .sparse_layout import SparseLayout

_MAX_ABS_STD_MULTIPLE = 100.0


@dataclass
class LayerData:
    """Parameter buffers of a sparse layer.

    Attributes:
        weights: Flat weights, one ``window_volume`` block per connection, in
            layout order
        bias: One value per output feature map, or ``None`` without bias

    """

    weights: torch.Tensor
    bias: torch.Tensor | None = None

    def weight_block(self, layout: SparseLayout, output_feature_map_id: int, window_sizes: Sequence[int]) -> torch.Tensor:
        """View of output ``k``'s weights shaped ``[in_degree, *window_sizes]``."""
        volume = math.prod(window_sizes)
        start = int(layout.row_offsets[output_feature_map_id]) * volume
        end = int(layout.row_offsets[output_feature_map_id + 1]) * volume
        return self.weights[start:end].view(-1, *window_sizes)


def standard_deviation_for(in_degree: int, output_feature_map_count: int, window_volume: int) -> float:
    """Standard deviation for an output feature map with ``in_degree`` inputs."""
    fan = math.sqrt(float(in_degree) * float(output_feature_map_count))
    return math.sqrt(1.0 / (fan * float(window_volume)))


def _bounded_normal(count: int, std: float, generator: torch.Generator, dtype: torch.dtype) -> torch.Tensor:
    max_abs = _MAX_ABS_STD_MULTIPLE * std
    values = torch.randn(count, generator=generator, dtype=dtype) * std
    outliers = values.abs() > max_abs
    while torch.any(outliers):
        values[outliers] = torch.randn(int(outliers.sum()), generator=generator, dtype=dtype) * std
        outliers = values.abs() > max_abs
    return values


def init_sparse_weights(
    layout: SparseLayout,
    *,
    window_sizes: Sequence[int],
    output_feature_map_count: int,
    bias: bool,
    generator: torch.Generator,
    dtype: torch.dtype = torch.float32,
) -> LayerData:
    """Draw weights scaled to each output feature map's realised fan-in.

    Output ``k`` with ``d`` inputs gets ``window_volume * d`` values from
    ``N(0, std)`` where ``std = sqrt(1 / (sqrt(d * outputs) * window_volume))``;
    values beyond ``100 * std`` are redrawn. Outputs with no inputs get nothing.
    Bias, when present, starts at zero.
    """
    volume = math.prod(window_sizes)
    weights = torch.zeros(layout.connection_count * volume, dtype=dtype)

    degrees = layout.in_degrees().tolist()
    for output_feature_map_id, in_degree in enumerate(degrees):
        if in_degree == 0:
            continue
        std = standard_deviation_for(in_degree, output_feature_map_count, volume)
        start = int(layout.row_offsets[output_feature_map_id]) * volume
        weights[start : start + in_degree * volume] = _bounded_normal(in_degree * volume, std, generator, dtype)

    bias_values = torch.zeros(output_feature_map_count, dtype=dtype) if bias else None
    return LayerData(weights=weights, bias=bias_values)


__all__ = ["LayerData", "init_sparse_weights", "standard_deviation_for"]
