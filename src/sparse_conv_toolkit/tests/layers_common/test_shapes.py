import itertools

import pytest

from sparse_conv_toolkit.core.configs import AbsoluteCount, SparseConvolutionConfig
from sparse_conv_toolkit.core.errors import ConfigurationError
from sparse_conv_toolkit.core.layers.common import LayerShape, input_shape, output_shape


def _config(**overrides) -> SparseConvolutionConfig:
    params = {
        "window_sizes": (3, 3),
        "input_feature_map_count": 4,
        "output_feature_map_count": 4,
        "connectivity": AbsoluteCount(8),
    }
    params.update(overrides)
    return SparseConvolutionConfig(**params)


def test_unpadded_unit_stride_output() -> None:
    cfg = _config()
    out = output_shape(LayerShape((5, 5), 4), cfg)
    assert out == LayerShape((3, 3), 4)
    assert out.neuron_count_per_feature_map == 9
    assert out.neuron_count == 36
    assert output_shape(LayerShape((5, 5), 4), cfg) == out


def test_padded_strided_output() -> None:
    cfg = _config(left_zero_padding=(1, 1), right_zero_padding=(1, 1), strides=(2, 2))
    assert output_shape(LayerShape((4, 4), 4), cfg) == LayerShape((2, 2), 4)


def test_output_feature_maps_follow_layer() -> None:
    cfg = _config(output_feature_map_count=6, connectivity=AbsoluteCount(12))
    assert output_shape(LayerShape((3, 7), 4), cfg) == LayerShape((1, 5), 6)


def test_too_small_padded_input_raises() -> None:
    cfg = _config(left_zero_padding=(1, 0))
    with pytest.raises(ConfigurationError, match=r"dimension \(1\) is smaller than layer window size \(3\)"):
        output_shape(LayerShape((2, 2), 4), cfg)


def test_mismatched_input_configuration_raises() -> None:
    cfg = _config()
    with pytest.raises(ConfigurationError, match=r"Feature map count in layer \(4\) and input configuration \(3\)"):
        output_shape(LayerShape((5, 5), 3), cfg)
    with pytest.raises(ConfigurationError, match=r"Dimension count in layer \(2\) and input configuration \(3\)"):
        output_shape(LayerShape((5, 5, 5), 4), cfg)
    with pytest.raises(ConfigurationError, match=r"output configuration \(5\)"):
        input_shape(LayerShape((3, 3), 5), cfg)


def test_unit_stride_round_trip() -> None:
    for left, right in itertools.product(range(3), range(3)):
        cfg = _config(left_zero_padding=(left, 0), right_zero_padding=(0, right))
        for size in range(3, 9):
            original = LayerShape((size, size + 1), 4)
            assert input_shape(output_shape(original, cfg), cfg) == original


def test_strided_inverse_is_smallest_consistent_input() -> None:
    cfg = _config(window_sizes=(3,), strides=(3,), left_zero_padding=(1,), right_zero_padding=(2,))
    for size in range(1, 20):
        original = LayerShape((size,), 4)
        out = output_shape(original, cfg)
        rebuilt = input_shape(out, cfg)
        assert rebuilt.feature_map_count == 4
        assert output_shape(rebuilt, cfg) == out
        assert rebuilt.dimension_sizes[0] <= size < rebuilt.dimension_sizes[0] + 3


def test_inverse_rejects_unreachable_output() -> None:
    cfg = _config(window_sizes=(3,), left_zero_padding=(2,), right_zero_padding=(2,))
    with pytest.raises(ConfigurationError, match="No input size"):
        input_shape(LayerShape((1,), 4), cfg)
