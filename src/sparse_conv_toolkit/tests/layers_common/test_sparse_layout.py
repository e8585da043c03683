import numpy as np
import pytest
import torch

from sparse_conv_toolkit.core.errors import ConfigurationError
from sparse_conv_toolkit.core.layers.common import SparseLayout, encode_sparse_layout, fill_connection_matrix


def test_encode_orders_rows_then_ascending_columns() -> None:
    mat = torch.tensor(
        [
            [0, 1, 0, 1],
            [0, 0, 0, 0],
            [1, 1, 1, 0],
        ],
        dtype=torch.bool,
    )
    layout = encode_sparse_layout(mat)
    assert layout.column_indices.tolist() == [1, 3, 0, 1, 2]
    assert layout.row_offsets.tolist() == [0, 2, 2, 5]
    assert layout.in_degrees().tolist() == [2, 0, 3]
    assert layout.row(2).tolist() == [0, 1, 2]
    assert layout.row(1).numel() == 0
    assert layout.connection_count == 5
    assert layout.output_feature_map_count == 3
    assert torch.equal(layout.to_matrix(4), mat)
    layout.validate(4)


def test_offsets_of_generated_layout() -> None:
    gen = torch.Generator().manual_seed(21)
    mat = fill_connection_matrix(torch.zeros(11, 7, dtype=torch.bool), connection_count=30, generator=gen).matrix
    layout = encode_sparse_layout(mat)

    offsets = layout.row_offsets
    assert int(offsets[0]) == 0
    assert int(offsets[-1]) == 30
    assert torch.all(offsets[1:] >= offsets[:-1])
    assert int(layout.in_degrees().sum()) == 30
    assert torch.equal(layout.in_degrees(), mat.sum(dim=1).to(layout.in_degrees().dtype))
    layout.validate(7)


def test_to_numpy_gives_uint32_buffers() -> None:
    layout = encode_sparse_layout(torch.eye(3).bool())
    cols, rows = layout.to_numpy()
    assert cols.dtype == np.uint32
    assert rows.dtype == np.uint32
    assert cols.tolist() == [0, 1, 2]
    assert rows.tolist() == [0, 1, 2, 3]


@pytest.mark.parametrize(
    ("columns", "offsets", "match"),
    [
        ([0, 1], [1, 2], "start at 0"),
        ([0, 1], [0, 1], "does not match"),
        ([0, 1, 2], [0, 2, 1, 3], "non-decreasing"),
        ([0, 5], [0, 1, 2], r"\[0, 4\)"),
        ([2, 1], [0, 2, 2], "strictly ascending"),
    ],
)
def test_validate_rejects_broken_layouts(columns, offsets, match) -> None:
    layout = SparseLayout(
        column_indices=torch.tensor(columns, dtype=torch.int32),
        row_offsets=torch.tensor(offsets, dtype=torch.int32),
    )
    with pytest.raises(ConfigurationError, match=match):
        layout.validate(4)
