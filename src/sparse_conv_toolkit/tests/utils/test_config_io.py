import json

import pytest
import yaml

from sparse_conv_toolkit.core import ConfigurationError, SparseConvolutionLayer
from sparse_conv_toolkit.utils import dump_layer_config, load_layer_config, load_layer_configs

_YAML = """
layers:
  - name: conv1
    type: SparseConvolution
    input_feature_map_count: 4
    output_feature_map_count: 8
    feature_map_connection_sparsity_ratio: 0.25
    dimension_param:
      - {kernel_size: 3, left_padding: 1, right_padding: 1}
      - {kernel_size: 3, left_padding: 1, right_padding: 1}
  - name: conv2
    input_feature_map_count: 8
    output_feature_map_count: 8
    feature_map_connection_count: 16
    bias: false
    dimension_param:
      - {kernel_size: 1}
"""


def test_load_yaml_layer_list(tmp_path) -> None:
    path = tmp_path / "layers.yaml"
    path.write_text(_YAML)

    conv1, conv2 = load_layer_configs(path)
    assert conv1.instance_name == "conv1"
    assert conv1.config.connection_count == 8
    assert conv1.config.left_zero_padding == (1, 1)
    assert conv2.config.bias is False
    assert conv2.config.window_sizes == (1,)


def test_dump_and_reload_json(tmp_path) -> None:
    layer = SparseConvolutionLayer.from_dict(
        {
            "input_feature_map_count": 2,
            "output_feature_map_count": 3,
            "feature_map_connection_count": 4,
            "dimension_param": [{"kernel_size": 5, "stride": 2}],
        },
        instance_name="single",
    )
    path = tmp_path / "layer.json"
    dump_layer_config(layer, path)
    assert json.loads(path.read_text())["feature_map_connection_count"] == 4

    restored = load_layer_config(path)
    assert restored.config == layer.config
    assert restored.instance_name == "single"


def test_dump_yaml_list(tmp_path) -> None:
    path = tmp_path / "layers.yaml"
    path.write_text(_YAML)
    layers = load_layer_configs(path)

    out = tmp_path / "out.yml"
    dump_layer_config(layers, out)
    data = yaml.safe_load(out.read_text())
    assert [r["name"] for r in data["layers"]] == ["conv1", "conv2"]
    assert [layer.config for layer in load_layer_configs(out)] == [layer.config for layer in layers]


def test_load_errors(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_layer_config(tmp_path / "missing.yaml")

    bad = tmp_path / "bad.yaml"
    bad.write_text("layers: 3\n")
    with pytest.raises(ConfigurationError, match="'layers' list"):
        load_layer_configs(bad)

    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(ConfigurationError, match="Invalid JSON"):
        load_layer_configs(broken)

    two = tmp_path / "two.yaml"
    two.write_text(_YAML)
    with pytest.raises(ConfigurationError, match="exactly one layer"):
        load_layer_config(two)
