"""Row-offset / column-index encoding of feature map connectivity.

Row ``k`` of the layout lists the input feature maps connected to output
feature map ``k`` in ascending order. Weight blocks are addressed in the same
order, so the ordering is part of the parameter storage contract.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import torch

from sparse_conv_toolkit.core.errors import ConfigurationError


@dataclass(frozen=True)
class SparseLayout:
    """CSR-style layout: ``column_indices`` [connection_count], ``row_offsets`` [outputs + 1]."""

    column_indices: torch.Tensor
    row_offsets: torch.Tensor

    @property
    def connection_count(self) -> int:
        return int(self.column_indices.numel())

    @property
    def output_feature_map_count(self) -> int:
        return int(self.row_offsets.numel()) - 1

    def in_degrees(self) -> torch.Tensor:
        return self.row_offsets[1:] - self.row_offsets[:-1]

    def row(self, output_feature_map_id: int) -> torch.Tensor:
        start = int(self.row_offsets[output_feature_map_id])
        end = int(self.row_offsets[output_feature_map_id + 1])
        return self.column_indices[start:end]

    def to_matrix(self, input_feature_map_count: int) -> torch.Tensor:
        """Rebuild the boolean ``[outputs, inputs]`` connectivity mask."""
        matrix = torch.zeros(self.output_feature_map_count, input_feature_map_count, dtype=torch.bool)
        rows = torch.repeat_interleave(
            torch.arange(self.output_feature_map_count),
            self.in_degrees().to(torch.long),
        )
        matrix[rows, self.column_indices.to(torch.long)] = True
        return matrix

    def to_numpy(self) -> tuple[np.ndarray, np.ndarray]:
        """Return the two custom-data buffers as ``uint32`` arrays."""
        return (
            self.column_indices.cpu().numpy().astype(np.uint32),
            self.row_offsets.cpu().numpy().astype(np.uint32),
        )

    def validate(self, input_feature_map_count: int) -> None:
        offsets = self.row_offsets
        if offsets.numel() < 1 or int(offsets[0]) != 0:
            msg = "row_offsets must start at 0"
            raise ConfigurationError(msg)
        if int(offsets[-1]) != self.connection_count:
            msg = f"last row offset ({int(offsets[-1])}) does not match column index count ({self.connection_count})"
            raise ConfigurationError(msg)
        if torch.any(self.in_degrees() < 0):
            msg = "row_offsets must be non-decreasing"
            raise ConfigurationError(msg)
        if self.connection_count and (
            int(self.column_indices.min()) < 0 or int(self.column_indices.max()) >= input_feature_map_count
        ):
            msg = f"column indices must lie in [0, {input_feature_map_count})"
            raise ConfigurationError(msg)
        for k in range(self.output_feature_map_count):
            cols = self.row(k)
            if cols.numel() > 1 and not torch.all(cols[1:] > cols[:-1]):
                msg = f"column indices of output feature map {k} must be strictly ascending"
                raise ConfigurationError(msg)


def encode_sparse_layout(connection_matrix: torch.Tensor) -> SparseLayout:
    """Linearise a ``[outputs, inputs]`` boolean mask into a ``SparseLayout``."""
    matrix = connection_matrix.to(dtype=torch.bool)
    output_count = matrix.shape[0]

    column_indices: list[int] = []
    row_offsets: list[int] = []
    for output_feature_map_id in range(output_count):
        row_offsets.append(len(column_indices))
        column_indices.extend(matrix[output_feature_map_id].nonzero(as_tuple=False).view(-1).tolist())
    row_offsets.append(len(column_indices))

    return SparseLayout(
        column_indices=torch.tensor(column_indices, dtype=torch.int32),
        row_offsets=torch.tensor(row_offsets, dtype=torch.int32),
    )


__all__ = ["SparseLayout", "encode_sparse_layout"]
