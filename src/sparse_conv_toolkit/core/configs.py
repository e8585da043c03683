# FILEPATH: src/sparse_conv_toolkit/core/configs.py

"""Layer configuration: connectivity targets and the sparse convolution config."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import math
from typing import Any, Union

from .errors import ConfigurationError


@dataclass(frozen=True)
class AbsoluteCount:
    """Connectivity given as the total number of feature map connections."""

    count: int

    def resolve(self, input_feature_map_count: int, output_feature_map_count: int) -> int:
        return int(self.count)


@dataclass(frozen=True)
class SparsityRatio:
    """Connectivity given as a fraction of the dense ``input x output`` case."""

    ratio: float

    def resolve(self, input_feature_map_count: int, output_feature_map_count: int) -> int:
        # Round half up, matching how persisted ratios have always been resolved
        return int(input_feature_map_count * output_feature_map_count * float(self.ratio) + 0.5)


ConnectivityTarget = Union[AbsoluteCount, SparsityRatio]


def _coerce(value: Any, kind: type, name: str) -> Any:
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        msg = f"{name} must be {kind.__name__}, got {value!r}"
        raise ConfigurationError(msg) from exc


def _per_dimension(
    values: Sequence[int] | None,
    *,
    dimension_count: int,
    default: int,
    name: str,
) -> tuple[int, ...]:
    if values is None or len(values) == 0:
        return (default,) * dimension_count
    if len(values) != dimension_count:
        msg = f"Invalid dimension count {len(values)} for {name}"
        raise ConfigurationError(msg)
    return tuple(_coerce(v, int, name) for v in values)


@dataclass(frozen=True)
class SparseConvolutionConfig:
    """Configuration for a sparse convolution layer.

    Attributes:
        window_sizes: Window size per spatial dimension (each >= 1)
        input_feature_map_count: Number of input feature maps
        output_feature_map_count: Number of output feature maps
        connectivity: Either an ``AbsoluteCount`` or a ``SparsityRatio``; the
            other representation is derived from it
        left_zero_padding: Zero padding before each dimension (empty => zeros)
        right_zero_padding: Zero padding after each dimension (empty => zeros)
        strides: Stride per dimension (empty => ones)
        bias: Whether the layer carries one bias value per output feature map

    """

    window_sizes: tuple[int, ...]
    input_feature_map_count: int
    output_feature_map_count: int
    connectivity: ConnectivityTarget
    left_zero_padding: tuple[int, ...] = field(default=())
    right_zero_padding: tuple[int, ...] = field(default=())
    strides: tuple[int, ...] = field(default=())
    bias: bool = True

    def __post_init__(self) -> None:
        window_sizes = tuple(_coerce(w, int, "window size") for w in self.window_sizes)
        dims = len(window_sizes)
        object.__setattr__(self, "window_sizes", window_sizes)
        object.__setattr__(
            self,
            "left_zero_padding",
            _per_dimension(self.left_zero_padding, dimension_count=dims, default=0, name="left zero padding"),
        )
        object.__setattr__(
            self,
            "right_zero_padding",
            _per_dimension(self.right_zero_padding, dimension_count=dims, default=0, name="right zero padding"),
        )
        object.__setattr__(
            self,
            "strides",
            _per_dimension(self.strides, dimension_count=dims, default=1, name="strides"),
        )
        object.__setattr__(
            self,
            "input_feature_map_count",
            _coerce(self.input_feature_map_count, int, "input_feature_map_count"),
        )
        object.__setattr__(
            self,
            "output_feature_map_count",
            _coerce(self.output_feature_map_count, int, "output_feature_map_count"),
        )
        object.__setattr__(self, "bias", bool(self.bias))
        self._check()

    def _check(self) -> None:
        for i, window in enumerate(self.window_sizes):
            if window <= 0:
                msg = f"window dimension ({i}) for sparse convolution layer may not be zero, got {window}"
                raise ConfigurationError(msg)

        if self.input_feature_map_count <= 0:
            msg = f"input_feature_map_count must be positive, got {self.input_feature_map_count}"
            raise ConfigurationError(msg)
        if self.output_feature_map_count <= 0:
            msg = f"output_feature_map_count must be positive, got {self.output_feature_map_count}"
            raise ConfigurationError(msg)

        if isinstance(self.connectivity, SparsityRatio):
            ratio = _coerce(self.connectivity.ratio, float, "feature_map_connection_sparsity_ratio")
            if not (0.0 < ratio <= 1.0):
                msg = f"feature_map_connection_sparsity_ratio must be in (0, 1], got {ratio}"
                raise ConfigurationError(msg)
        elif isinstance(self.connectivity, AbsoluteCount):
            _coerce(self.connectivity.count, int, "feature_map_connection_count")
        else:
            msg = f"connectivity must be AbsoluteCount or SparsityRatio, got {type(self.connectivity).__name__}"
            raise ConfigurationError(msg)

        count = self.connection_count
        if count < self.input_feature_map_count:
            msg = (
                f"feature_map_connection_count ({count}) may not be smaller than "
                f"input_feature_map_count ({self.input_feature_map_count})"
            )
            raise ConfigurationError(msg)
        if count < self.output_feature_map_count:
            msg = (
                f"feature_map_connection_count ({count}) may not be smaller than "
                f"output_feature_map_count ({self.output_feature_map_count})"
            )
            raise ConfigurationError(msg)
        dense = self.input_feature_map_count * self.output_feature_map_count
        if count > dense:
            msg = f"feature_map_connection_count ({count}) may not be larger than in dense case ({dense})"
            raise ConfigurationError(msg)

        for name, paddings in (("left", self.left_zero_padding), ("right", self.right_zero_padding)):
            for i, (pad, window) in enumerate(zip(paddings, self.window_sizes)):
                if pad < 0:
                    msg = f"{name} zero padding {pad} of dimension ({i}) may not be negative"
                    raise ConfigurationError(msg)
                if pad >= window:
                    msg = (
                        f"{name} zero padding {pad} of dimension ({i}) is greater or equal "
                        f"than layer window size ({window})"
                    )
                    raise ConfigurationError(msg)

        for i, stride in enumerate(self.strides):
            if stride <= 0:
                msg = f"stride dimension ({i}) is {stride}, must be >= 1"
                raise ConfigurationError(msg)

    @property
    def connection_count(self) -> int:
        return self.connectivity.resolve(self.input_feature_map_count, self.output_feature_map_count)

    @property
    def sparsity_ratio(self) -> float | None:
        """The configured ratio, or ``None`` when an absolute count is authoritative."""
        if isinstance(self.connectivity, SparsityRatio):
            return float(self.connectivity.ratio)
        return None

    @property
    def dimension_count(self) -> int:
        return len(self.window_sizes)

    @property
    def window_volume(self) -> int:
        return math.prod(self.window_sizes)


__all__ = [
    "AbsoluteCount",
    "ConnectivityTarget",
    "SparseConvolutionConfig",
    "SparsityRatio",
]
