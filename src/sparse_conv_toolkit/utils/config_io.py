"""Load and dump sparse convolution layer records from YAML or JSON files."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from sparse_conv_toolkit.core.errors import ConfigurationError
from sparse_conv_toolkit.core.layers import SparseConvolutionLayer

logger = logging.getLogger(__name__)


def _read_mapping(path: Path) -> Any:
    with open(path) as f:
        if path.suffix.lower() == ".json":
            try:
                return json.load(f)
            except json.JSONDecodeError as exc:
                msg = f"Invalid JSON in {path}: {exc}"
                raise ConfigurationError(msg) from exc
        try:
            return yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            msg = f"Invalid YAML in {path}: {exc}"
            raise ConfigurationError(msg) from exc


def load_layer_configs(path: Path | str) -> list[SparseConvolutionLayer]:
    """Load layers from a YAML or JSON file.

    The file holds either a single layer record or a ``layers:`` list of them.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ConfigurationError: If the content is not a valid layer record.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = _read_mapping(path)
    if isinstance(data, dict) and "layers" in data:
        records = data["layers"]
    else:
        records = [data]
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        msg = f"Expected a layer record or a 'layers' list of records in {path}"
        raise ConfigurationError(msg)

    layers = [SparseConvolutionLayer.from_dict(r, instance_name=str(r.get("name", f"layer_{i}"))) for i, r in enumerate(records)]
    logger.debug(f"Loaded {len(layers)} layer(s) from {path}")
    return layers


def load_layer_config(path: Path | str) -> SparseConvolutionLayer:
    """Load exactly one layer from ``path``."""
    layers = load_layer_configs(path)
    if len(layers) != 1:
        msg = f"Expected exactly one layer in {path}, found {len(layers)}"
        raise ConfigurationError(msg)
    return layers[0]


def dump_layer_config(layers: SparseConvolutionLayer | list[SparseConvolutionLayer], path: Path | str) -> None:
    """Write layer records to ``path``; ``.json`` selects JSON, anything else YAML."""
    path = Path(path)
    if isinstance(layers, SparseConvolutionLayer):
        payload: Any = layers.to_dict()
    else:
        payload = {"layers": [layer.to_dict() for layer in layers]}

    with open(path, "w") as f:
        if path.suffix.lower() == ".json":
            json.dump(payload, f, indent=2)
        else:
            yaml.safe_dump(payload, f, sort_keys=False)


__all__ = ["dump_layer_config", "load_layer_config", "load_layer_configs"]
