"""Shared parameter metadata for sparse layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class LayerAction(str, Enum):
    """Kinds of work a layer can be asked to estimate cost for."""

    FORWARD = "forward"
    BACKWARD_DATA = "backward_data"
    BACKWARD_WEIGHTS = "backward_weights"
    BACKWARD_DATA_AND_WEIGHTS = "backward_data_and_weights"
    UPDATE_WEIGHTS = "update_weights"


@dataclass(frozen=True)
class LayerDataConfiguration:
    """Shape of one parameter part: ``input_count x output_count`` blocks of ``window_sizes``."""

    input_feature_map_count: int
    output_feature_map_count: int
    window_sizes: tuple[int, ...] = field(default=())


__all__ = ["LayerAction", "LayerDataConfiguration"]
