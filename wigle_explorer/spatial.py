"""
Spatial helpers: grid quantization for view centering, a grid-bucket index
for proximity matching, and the heat-point builder.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from wigle_explorer.filters import filter_by_types
from wigle_explorer.models import NetworkRecord, ObservationRecord
from wigle_explorer.sampler import decimation_step

logger = logging.getLogger(__name__)

DEFAULT_GRID_SIZE = 0.01  # degrees, about 1.1 km at the equator

NETWORK_HEAT_SHARE = 0.3
OBSERVATION_HEAT_SHARE = 0.7
NETWORK_HEAT_WEIGHT = 0.8

_NEIGHBOR_OFFSETS = tuple((di, dj) for di in (-1, 0, 1) for dj in (-1, 0, 1))


def _coords(records: Sequence) -> np.ndarray:
    return np.array([(r.lat, r.lon) for r in records], dtype=float).reshape(-1, 2)


def quantize(records: Sequence, grid_size: float = DEFAULT_GRID_SIZE) -> np.ndarray:
    """Cell index of every record, rounding half up to the nearest multiple of grid_size"""
    return np.floor(_coords(records) / grid_size + 0.5).astype(np.int64)


def find_density_center(records: Sequence, grid_size: float = DEFAULT_GRID_SIZE) -> Optional[Tuple[float, float]]:
    """
    Center of the grid cell holding the most records.

    Ties go to the cell that was seen first in ingestion order.
    Returns None for an empty record set.
    """
    if len(records) == 0:
        return None

    counts: Dict[Tuple[int, int], int] = {}
    for i, j in quantize(records, grid_size).tolist():
        counts[(i, j)] = counts.get((i, j), 0) + 1

    best_cell = None
    best_count = 0
    for cell, count in counts.items():
        if count > best_count:
            best_cell, best_count = cell, count

    logger.debug(f"Densest cell {best_cell} holds {best_count} of {len(records)} records")
    return best_cell[0] * grid_size, best_cell[1] * grid_size


class GridIndex:
    """
    Buckets records into square cells of `cell_size` degrees.

    Two points closer than cell_size on both axes always sit in the same or
    adjacent cells, so probing the 3x3 neighborhood finds every candidate.
    """

    def __init__(self, records: Sequence, cell_size: float):
        if cell_size <= 0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self.cell_size = cell_size
        self.records = records
        self._cells: Dict[Tuple[int, int], List[int]] = defaultdict(list)
        if len(records):
            cells = np.floor(_coords(records) / cell_size).astype(np.int64)
            for index, (i, j) in enumerate(cells.tolist()):
                self._cells[(i, j)].append(index)

    def __len__(self) -> int:
        return len(self.records)

    def cell_of(self, lat: float, lon: float) -> Tuple[int, int]:
        return int(np.floor(lat / self.cell_size)), int(np.floor(lon / self.cell_size))

    def candidates(self, lat: float, lon: float) -> Iterator[int]:
        """Indexes of records in the cell of (lat, lon) and its 8 neighbors"""
        ci, cj = self.cell_of(lat, lon)
        for di, dj in _NEIGHBOR_OFFSETS:
            bucket = self._cells.get((ci + di, cj + dj))
            if bucket:
                yield from bucket

    def first_within(self, lat: float, lon: float, epsilon: float) -> Optional[int]:
        """Lowest record index with |dlat| < epsilon and |dlon| < epsilon, if any"""
        best = None
        for index in self.candidates(lat, lon):
            if best is not None and index >= best:
                continue
            record = self.records[index]
            if abs(record.lat - lat) < epsilon and abs(record.lon - lon) < epsilon:
                best = index
        return best


def build_heat_points(networks: Sequence[NetworkRecord], observations: Sequence[ObservationRecord],
                      active_types: Iterable[str], max_points: int = 100000,
                      intensity: float = 1.0) -> List[List[float]]:
    """
    Weighted [lat, lon, weight] triples for a heat layer.

    Networks get 30% of the point budget at a fixed weight, observations 70%
    weighted by signal level. Each set is decimated by a fixed step.
    """
    types = frozenset(active_types)
    if not types:
        return []

    points: List[List[float]] = []

    nets = filter_by_types(networks, types)
    step = decimation_step(len(nets), max_points * NETWORK_HEAT_SHARE)
    for record in nets[::step]:
        points.append([record.lat, record.lon, NETWORK_HEAT_WEIGHT * intensity])

    obs = filter_by_types(observations, types)
    step = decimation_step(len(obs), max_points * OBSERVATION_HEAT_SHARE)
    for record in obs[::step]:
        weight = max(0.1, min(1.0, (record.level + 100) / 70.0)) * intensity
        points.append([record.lat, record.lon, weight])

    return points
