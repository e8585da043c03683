# FILEPATH: src/sparse_conv_toolkit/core/layers/sparse_convolution.py

"""Sparse convolution layer.

Each connected ``(output, input)`` feature map pair carries a full spatial
window of weights; unconnected pairs carry nothing. Connectivity is drawn once
per randomisation and stored as a ``SparseLayout`` next to the weights.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
from typing import Any

import torch

from sparse_conv_toolkit.core.configs import AbsoluteCount, SparseConvolutionConfig, SparsityRatio
from sparse_conv_toolkit.core.errors import ConfigurationError

from .common.connectivity_builders import build_connectivity
from .common.initializers import LayerData, init_sparse_weights
from .common.metadata import LayerAction, LayerDataConfiguration
from .common.shapes import LayerShape, input_shape, output_shape
from .common.sparse_layout import SparseLayout, encode_sparse_layout

logger = logging.getLogger(__name__)

_COSTED_ACTIONS = {LayerAction.FORWARD, LayerAction.BACKWARD_DATA, LayerAction.BACKWARD_WEIGHTS}


def _first_shape(shapes: LayerShape | Sequence[LayerShape]) -> LayerShape:
    if isinstance(shapes, LayerShape):
        return shapes
    if len(shapes) == 0:
        msg = "At least one input configuration is required"
        raise ConfigurationError(msg)
    return shapes[0]


def _record_value(value: Any, kind: type, field: str, name: str) -> Any:
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        msg = f"Invalid {field!r} of layer {name!r}: expected {kind.__name__}, got {value!r}"
        raise ConfigurationError(msg) from exc


class SparseConvolutionLayer:
    """Convolution whose feature map connectivity is a sparse, degree-balanced graph."""

    type_name = "SparseConvolution"

    def __init__(self, config: SparseConvolutionConfig, instance_name: str = "") -> None:
        self.config = config
        self.instance_name = instance_name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(self.parameter_strings())})"

    def clone(self) -> SparseConvolutionLayer:
        return type(self)(self.config, instance_name=self.instance_name)

    # ------------------------------------------------------------------
    # Shape algebra
    # ------------------------------------------------------------------

    def output_shape(self, input_shapes: LayerShape | Sequence[LayerShape]) -> LayerShape:
        return output_shape(_first_shape(input_shapes), self.config)

    def input_shape(self, output_config: LayerShape, input_layer_id: int = 0) -> LayerShape:
        """Smallest input shape producing ``output_config``.

        The layer has a single input, so ``input_layer_id`` is accepted only for interface parity.
        """
        return input_shape(output_config, self.config)

    # ------------------------------------------------------------------
    # Parameter storage
    # ------------------------------------------------------------------

    def data_config(self) -> list[int]:
        """Lengths of the weight buffer and, with bias, the bias buffer."""
        res = [self.config.connection_count * self.config.window_volume]
        if self.config.bias:
            res.append(self.config.output_feature_map_count)
        return res

    def data_custom_config(self) -> list[int]:
        """Lengths of the column index and row offset buffers."""
        return [self.config.connection_count, self.config.output_feature_map_count + 1]

    def layer_data_configuration_list(self) -> list[LayerDataConfiguration]:
        res = [LayerDataConfiguration(1, self.config.connection_count, self.config.window_sizes)]
        if self.config.bias:
            res.append(LayerDataConfiguration(1, self.config.output_feature_map_count, ()))
        return res

    def weight_decay_part_ids(self) -> set[int]:
        return {0}

    # ------------------------------------------------------------------
    # Randomisation
    # ------------------------------------------------------------------

    def randomize_custom_data(self, generator: torch.Generator) -> SparseLayout:
        cfg = self.config
        dense = cfg.connection_count == cfg.input_feature_map_count * cfg.output_feature_map_count
        kind = "dense" if dense else "balanced"
        matrix = build_connectivity(
            kind,
            from_nodes=cfg.input_feature_map_count,
            to_nodes=cfg.output_feature_map_count,
            params={"connection_count": cfg.connection_count},
            generator=generator,
        )
        layout = encode_sparse_layout(matrix)
        logger.debug(
            f"{self.instance_name or self.type_name}: placed {layout.connection_count} {kind} connections, "
            f"in-degrees {layout.in_degrees().tolist()}",
        )
        return layout

    def randomize_weights(
        self,
        layout: SparseLayout,
        generator: torch.Generator,
        dtype: torch.dtype = torch.float32,
    ) -> LayerData:
        return init_sparse_weights(
            layout,
            window_sizes=self.config.window_sizes,
            output_feature_map_count=self.config.output_feature_map_count,
            bias=self.config.bias,
            generator=generator,
            dtype=dtype,
        )

    def randomize_data(
        self,
        generator: torch.Generator,
        dtype: torch.dtype = torch.float32,
    ) -> tuple[LayerData, SparseLayout]:
        """Draw a fresh connectivity layout, then weights conditioned on it."""
        layout = self.randomize_custom_data(generator)
        data = self.randomize_weights(layout, generator, dtype=dtype)
        return data, layout

    # ------------------------------------------------------------------
    # Cost estimation and description
    # ------------------------------------------------------------------

    def flops_per_entry(
        self,
        input_shapes: LayerShape | Sequence[LayerShape],
        action: LayerAction,
    ) -> float:
        if action not in _COSTED_ACTIONS:
            return 0.0
        neuron_count = self.output_shape(input_shapes).neuron_count_per_feature_map
        per_item_flops = self.config.connection_count * 2 * self.config.window_volume
        if not self.config.bias:
            per_item_flops -= 1
        return float(neuron_count) * float(per_item_flops)

    def parameter_strings(self) -> list[str]:
        cfg = self.config
        parts = ["x".join(str(w) for w in cfg.window_sizes) if cfg.window_sizes else "fc"]
        parts.append(f"fm {cfg.input_feature_map_count}x{cfg.output_feature_map_count}")

        if any(cfg.left_zero_padding) or any(cfg.right_zero_padding):
            pads = [
                str(left) if left == right else f"{left}_{right}"
                for left, right in zip(cfg.left_zero_padding, cfg.right_zero_padding)
            ]
            parts.append("pad " + "x".join(pads))

        if any(s != 1 for s in cfg.strides):
            parts.append("stride " + "x".join(str(s) for s in cfg.strides))

        if not cfg.bias:
            parts.append("w/out bias")

        if cfg.sparsity_ratio is not None:
            sparsity = f"sparsity ratio {cfg.sparsity_ratio:.5f}"
        else:
            sparsity = f"connections {cfg.connection_count}"

        return [", ".join(parts), sparsity]

    # ------------------------------------------------------------------
    # Serialised record
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        cfg = self.config
        record: dict[str, Any] = {
            "type": self.type_name,
            "input_feature_map_count": cfg.input_feature_map_count,
            "output_feature_map_count": cfg.output_feature_map_count,
        }
        if self.instance_name:
            record["name"] = self.instance_name
        if not cfg.bias:
            record["bias"] = False

        if cfg.sparsity_ratio is not None:
            record["feature_map_connection_sparsity_ratio"] = cfg.sparsity_ratio
        else:
            record["feature_map_connection_count"] = cfg.connection_count

        dimension_params = []
        for i, window in enumerate(cfg.window_sizes):
            dim_param: dict[str, int] = {"kernel_size": window}
            if cfg.left_zero_padding[i] > 0:
                dim_param["left_padding"] = cfg.left_zero_padding[i]
            if cfg.right_zero_padding[i] > 0:
                dim_param["right_padding"] = cfg.right_zero_padding[i]
            if cfg.strides[i] > 1:
                dim_param["stride"] = cfg.strides[i]
            dimension_params.append(dim_param)
        record["dimension_param"] = dimension_params
        return record

    @classmethod
    def from_dict(cls, record: Mapping[str, Any], instance_name: str = "") -> SparseConvolutionLayer:
        name = instance_name or str(record.get("name", ""))
        layer_type = record.get("type", cls.type_name)
        if layer_type != cls.type_name:
            msg = f"Record for layer {name!r} has type {layer_type!r}, expected {cls.type_name!r}"
            raise ConfigurationError(msg)

        counts = {}
        for key in ("input_feature_map_count", "output_feature_map_count"):
            if key not in record:
                msg = f"Missing {key!r} in sparse convolution record for layer {name!r}"
                raise ConfigurationError(msg)
            counts[key] = _record_value(record[key], int, key, name)

        dimension_params = record.get("dimension_param") or []
        if isinstance(dimension_params, (str, bytes)) or not isinstance(dimension_params, Sequence):
            msg = f"'dimension_param' of layer {name!r} must be a list"
            raise ConfigurationError(msg)
        if not all(isinstance(d, Mapping) and "kernel_size" in d for d in dimension_params):
            msg = f"Every dimension_param entry of layer {name!r} needs a 'kernel_size'"
            raise ConfigurationError(msg)
        window_sizes = [_record_value(d["kernel_size"], int, "kernel_size", name) for d in dimension_params]
        left = [_record_value(d.get("left_padding", 0), int, "left_padding", name) for d in dimension_params]
        right = [_record_value(d.get("right_padding", 0), int, "right_padding", name) for d in dimension_params]
        strides = [_record_value(d.get("stride", 1), int, "stride", name) for d in dimension_params]

        if record.get("feature_map_connection_count") is not None:
            count = _record_value(record["feature_map_connection_count"], int, "feature_map_connection_count", name)
            connectivity: AbsoluteCount | SparsityRatio = AbsoluteCount(count)
        elif record.get("feature_map_connection_sparsity_ratio") is not None:
            ratio = _record_value(
                record["feature_map_connection_sparsity_ratio"],
                float,
                "feature_map_connection_sparsity_ratio",
                name,
            )
            connectivity = SparsityRatio(ratio)
        else:
            msg = f"No sparsity pattern defined in sparse convolution record for layer {name!r} of type {layer_type}"
            raise ConfigurationError(msg)

        config = SparseConvolutionConfig(
            window_sizes=tuple(window_sizes),
            input_feature_map_count=counts["input_feature_map_count"],
            output_feature_map_count=counts["output_feature_map_count"],
            connectivity=connectivity,
            left_zero_padding=tuple(left),
            right_zero_padding=tuple(right),
            strides=tuple(strides),
            bias=bool(record.get("bias", True)),
        )
        return cls(config, instance_name=name)


__all__ = ["SparseConvolutionLayer"]
