"""Connectivity builder utilities for sparse layers.

Masks follow the ``[to_nodes, from_nodes]`` convention: rows are output feature
maps, columns are input feature maps, ``True`` marks a connection.

The balanced builder places a fixed number of connections so that fan-in and
fan-out stay as close to uniform as possible. It runs in passes. Each pass
works on a copy of the starting mask under soft per-node degree caps, and
loosens the caps by one (the margin) whenever a pass gets stuck.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import TYPE_CHECKING, Any

import torch

from sparse_conv_toolkit.core.errors import ConnectivityError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

logger = logging.getLogger(__name__)

_CURSOR_ATTEMPTS = 20
_RANDOM_ATTEMPTS = 100
_OVERFLOW_ATTEMPTS = 100
_MARGIN_HEADROOM = 16


@dataclass(frozen=True)
class ConnectivityResult:
    """Filled mask plus the degree caps of the pass that produced it."""

    matrix: torch.Tensor
    margin: int
    max_output_degree: int
    max_input_degree: int
    overflow_output_degree: int
    overflow_input_degree: int


def _overflow_cap(cap: int) -> int:
    return max(cap + 1, int(cap * 1.01))


def _randint(high: int, generator: torch.Generator) -> int:
    return int(torch.randint(high, (1,), generator=generator).item())


def _sample_free_pair(
    matrix: torch.Tensor,
    outputs: list[int],
    inputs: list[int],
    attempts: int,
    generator: torch.Generator,
) -> tuple[int, int] | None:
    if not outputs or not inputs:
        return None
    for _ in range(attempts):
        o = outputs[_randint(len(outputs), generator)]
        i = inputs[_randint(len(inputs), generator)]
        if not matrix[o, i]:
            return o, i
    return None


def _scan_free_pair(
    matrix: torch.Tensor,
    outputs: list[int],
    inputs: list[int],
    generator: torch.Generator,
) -> tuple[int, int] | None:
    """Pick uniformly among all free pairs of the available nodes."""
    out_idx = torch.tensor(outputs, dtype=torch.long)
    in_idx = torch.tensor(inputs, dtype=torch.long)
    free = (~matrix[out_idx][:, in_idx]).nonzero(as_tuple=False)
    if free.shape[0] == 0:
        return None
    row, col = free[_randint(free.shape[0], generator)].tolist()
    return outputs[row], inputs[col]


def _swap_repair(
    matrix: torch.Tensor,
    fixed: torch.Tensor,
    outputs: list[int],
    inputs: list[int],
    start: int,
    generator: torch.Generator,
) -> tuple[int, int] | None:
    """Grow ``(o, i)`` by rewiring an existing edge ``(o2, i2)``.

    Requires every pair of available nodes to be taken already. The edge
    ``(o2, i2)`` is replaced by ``(o, i2)`` and ``(o2, i)``, so ``o`` and ``i``
    each gain one connection while ``o2`` and ``i2`` keep their degree. Edges
    in ``fixed`` are never moved. Returns the pair whose degrees grew.
    """
    movable = matrix & ~fixed
    for k in range(len(outputs)):
        o = outputs[(start + k) % len(outputs)]
        free_inputs = ~matrix[o]
        for i in inputs:
            free_outputs = ~matrix[:, i]
            candidates = movable & free_outputs.unsqueeze(1) & free_inputs.unsqueeze(0)
            found = candidates.nonzero(as_tuple=False)
            if found.shape[0] == 0:
                continue
            o2, i2 = found[_randint(found.shape[0], generator)].tolist()
            matrix[o2, i2] = False
            matrix[o, i2] = True
            matrix[o2, i] = True
            return o, i
    return None


def _pick_donor(movable: torch.Tensor, degree: list[int]) -> int | None:
    for node in sorted(range(len(degree)), key=lambda n: -degree[n]):
        if degree[node] < 2:
            return None
        if torch.any(movable[node]):
            return node
    return None


def _cover_isolated(
    matrix: torch.Tensor,
    fixed: torch.Tensor,
    out_degree: list[int],
    in_degree: list[int],
    generator: torch.Generator,
) -> None:
    """Move edges onto feature maps left without any connection.

    An edge leaves the best-connected node on the same side, so degrees on the
    other side are unchanged and no cap is exceeded. Edges in ``fixed`` stay.
    """
    for o in range(len(out_degree)):
        if out_degree[o] > 0:
            continue
        movable = matrix & ~fixed
        donor = _pick_donor(movable, out_degree)
        if donor is None:
            break
        edges = movable[donor].nonzero(as_tuple=False).view(-1)
        i = int(edges[_randint(edges.shape[0], generator)])
        matrix[donor, i] = False
        matrix[o, i] = True
        out_degree[donor] -= 1
        out_degree[o] += 1

    for i in range(len(in_degree)):
        if in_degree[i] > 0:
            continue
        movable_t = (matrix & ~fixed).t()
        donor = _pick_donor(movable_t, in_degree)
        if donor is None:
            break
        edges = movable_t[donor].nonzero(as_tuple=False).view(-1)
        o = int(edges[_randint(edges.shape[0], generator)])
        matrix[o, donor] = False
        matrix[o, i] = True
        in_degree[donor] -= 1
        in_degree[i] += 1


def _fill_pass(
    matrix: torch.Tensor,
    connection_count: int,
    margin: int,
    generator: torch.Generator,
) -> ConnectivityResult | None:
    local = matrix.clone()
    output_count, input_count = local.shape

    max_out = math.ceil(connection_count / output_count) + margin
    max_in = math.ceil(connection_count / input_count) + margin
    overflow_out = _overflow_cap(max_out)
    overflow_in = _overflow_cap(max_in)

    out_degree = [int(d) for d in local.sum(dim=1).tolist()]
    in_degree = [int(d) for d in local.sum(dim=0).tolist()]
    avail_out = [o for o in range(output_count) if out_degree[o] < max_out]
    avail_out_overflow = [o for o in range(output_count) if out_degree[o] < overflow_out]
    avail_in = [i for i in range(input_count) if in_degree[i] < max_in]
    avail_in_overflow = [i for i in range(input_count) if in_degree[i] < overflow_in]

    explore_strict = bool(avail_out) and bool(avail_in)
    cursor = 0
    for _ in range(sum(out_degree), connection_count):
        pair = None
        if explore_strict:
            for _attempt in range(_CURSOR_ATTEMPTS):
                o = avail_out[cursor]
                i = avail_in[_randint(len(avail_in), generator)]
                if not local[o, i]:
                    pair = (o, i)
                    break
            if pair is None:
                pair = _sample_free_pair(local, avail_out, avail_in, _RANDOM_ATTEMPTS, generator)
            if pair is None:
                pair = _scan_free_pair(local, avail_out, avail_in, generator)
            if pair is None:
                pair = _swap_repair(local, matrix, avail_out, avail_in, cursor, generator)
            explore_strict = pair is not None

        if pair is None:
            pair = _sample_free_pair(local, avail_out_overflow, avail_in_overflow, _OVERFLOW_ATTEMPTS, generator)
        if pair is None:
            return None

        o, i = pair
        # No-op after a swap repair, which already rewired the mask
        local[o, i] = True

        out_degree[o] += 1
        if out_degree[o] == max_out:
            avail_out.remove(o)
        else:
            cursor += 1
            if out_degree[o] == overflow_out:
                avail_out_overflow.remove(o)

        in_degree[i] += 1
        if in_degree[i] == max_in:
            avail_in.remove(i)
        elif in_degree[i] == overflow_in:
            avail_in_overflow.remove(i)

        if avail_out:
            cursor %= len(avail_out)
        if explore_strict:
            explore_strict = bool(avail_out) and bool(avail_in)

    _cover_isolated(local, matrix, out_degree, in_degree, generator)

    return ConnectivityResult(
        matrix=local,
        margin=margin,
        max_output_degree=max_out,
        max_input_degree=max_in,
        overflow_output_degree=overflow_out,
        overflow_input_degree=overflow_in,
    )


def fill_connection_matrix(
    connection_matrix: torch.Tensor,
    *,
    connection_count: int,
    generator: torch.Generator,
    max_margin: int | None = None,
) -> ConnectivityResult:
    """Add connections to ``connection_matrix`` until it holds ``connection_count``.

    The input mask is left untouched; the filled copy is returned in the
    result. Degrees on both sides are kept near ``connection_count / count``.

    Args:
        connection_matrix: Boolean mask ``[output_count, input_count]``, possibly
            pre-populated
        connection_count: Total number of connections wanted
        generator: Random source; advanced by every draw
        max_margin: Largest cap relaxation tried before giving up. Defaults to
            ``max(output_count, input_count) + 16``

    Raises:
        ConnectivityError: If the target is impossible or no pass succeeds
            within ``max_margin``.

    """
    if connection_matrix.dim() != 2:
        msg = f"connection_matrix must be 2D [output_count, input_count], got shape {tuple(connection_matrix.shape)}"
        raise ConnectivityError(msg)
    matrix = connection_matrix.to(dtype=torch.bool)
    output_count, input_count = matrix.shape
    if output_count == 0 or input_count == 0:
        msg = f"connection_matrix must be non-empty, got shape {tuple(matrix.shape)}"
        raise ConnectivityError(msg)

    existing = int(matrix.sum().item())
    if connection_count < existing:
        msg = f"connection_count ({connection_count}) is smaller than the {existing} connections already present"
        raise ConnectivityError(msg)
    if connection_count > output_count * input_count:
        msg = f"connection_count ({connection_count}) exceeds dense case ({output_count * input_count})"
        raise ConnectivityError(msg)

    if max_margin is None:
        max_margin = max(output_count, input_count) + _MARGIN_HEADROOM

    for margin in range(max_margin + 1):
        result = _fill_pass(matrix, connection_count, margin, generator)
        if result is not None:
            return result
        logger.debug(
            f"Connectivity pass failed for {output_count}x{input_count} with {connection_count} connections "
            f"at margin {margin}; relaxing degree caps",
        )

    msg = (
        f"Could not place {connection_count} connections between {output_count} output and "
        f"{input_count} input feature maps within margin {max_margin}"
    )
    logger.error(msg)
    raise ConnectivityError(msg)


def _connection_count_from_params(from_nodes: int, to_nodes: int, params: Mapping[str, Any] | None) -> int:
    if params and "connection_count" in params:
        return int(params["connection_count"])
    if params and "sparsity" in params:
        p = float(params["sparsity"])
        if not (0 < p <= 1):
            msg = "sparsity must be in (0,1]"
            raise ValueError(msg)
        return int(from_nodes * to_nodes * p + 0.5)
    msg = "balanced requires 'connection_count' or 'sparsity' parameter"
    raise ValueError(msg)


def build_dense(
    from_nodes: int,
    to_nodes: int,
    params: Mapping[str, Any] | None = None,
    *,
    generator: torch.Generator | None = None,
) -> torch.Tensor:
    return torch.ones(to_nodes, from_nodes, dtype=torch.bool)


def build_balanced(
    from_nodes: int,
    to_nodes: int,
    params: Mapping[str, Any] | None = None,
    *,
    generator: torch.Generator | None = None,
) -> torch.Tensor:
    """Build degree-balanced random connectivity.

    Args:
        from_nodes: Number of input feature maps
        to_nodes: Number of output feature maps
        params: Either ``connection_count`` (total edges) or ``sparsity``
            (fraction of the dense case)
        generator: Random source (required)

    Returns:
        Boolean mask [to_nodes, from_nodes]

    """
    if generator is None:
        msg = "balanced connectivity requires an explicit torch.Generator"
        raise ValueError(msg)
    count = _connection_count_from_params(from_nodes, to_nodes, params)
    empty = torch.zeros(to_nodes, from_nodes, dtype=torch.bool)
    return fill_connection_matrix(empty, connection_count=count, generator=generator).matrix


CONNECTIVITY_BUILDERS: dict[str, Callable[..., torch.Tensor]] = {
    "dense": build_dense,
    "balanced": build_balanced,
}


def build_connectivity(
    kind: str,
    *,
    from_nodes: int,
    to_nodes: int,
    params: Mapping[str, Any] | None = None,
    generator: torch.Generator | None = None,
) -> torch.Tensor:
    try:
        builder = CONNECTIVITY_BUILDERS[kind]
    except KeyError as exc:
        msg = f"Unknown connectivity builder '{kind}'"
        raise ValueError(msg) from exc
    return builder(from_nodes, to_nodes, params, generator=generator)


__all__ = [
    "CONNECTIVITY_BUILDERS",
    "ConnectivityResult",
    "build_balanced",
    "build_connectivity",
    "build_dense",
    "fill_connection_matrix",
]
