"""Precomputed uniform grid index over the static feature files."""
import asyncio
import json
import logging
import math
from pathlib import Path
from typing import Iterable, Mapping, Optional

from core.features import FeatureBackend, FeatureRecord, iter_records
from core.geodesy import distance_km
from core.geometry import KM_PER_DEGREE
from core.models import Coordinate, Feature, FeatureType

_log = logging.getLogger(__name__)

Cell = tuple[int, int]


class GridIndex:
    """
    World partitioned into cells of roughly ``cell_km`` per edge.

    Rows are ``cell_km`` tall; the 360° of longitude are split into a whole
    number of columns so column indices wrap cleanly at the antimeridian.
    Each cell holds one entry per record vertex that falls in it. An index
    is either built in memory or backed by a directory of ``{row}_{col}.json``
    files that are read on first use.
    """

    def __init__(self, cell_km: float = 50.0, directory: Optional[Path] = None):
        if cell_km <= 0:
            raise ValueError(f"cell_km must be positive, got {cell_km}")
        self.cell_km = cell_km
        self.cell_deg = cell_km / KM_PER_DEGREE
        self.n_cols = math.ceil(360.0 / self.cell_deg)
        self.col_deg = 360.0 / self.n_cols
        self.directory = Path(directory) if directory is not None else None
        self._cells: dict[Cell, list[Feature]] = {}

    # -----------------------------------------------------------------------
    # Cell arithmetic
    # -----------------------------------------------------------------------

    @property
    def diagonal_km(self) -> float:
        return self.cell_km * math.sqrt(2)

    def _col(self, lon: float) -> int:
        return math.floor((lon + 180.0) / self.col_deg)

    def cell_of(self, point: Coordinate) -> Cell:
        return (math.floor(point.lat / self.cell_deg), self._col(point.lon) % self.n_cols)

    def cell_center(self, cell: Cell) -> Coordinate:
        row, col = cell
        lat = max(-90.0, min(90.0, (row + 0.5) * self.cell_deg))
        lon = -180.0 + (col % self.n_cols + 0.5) * self.col_deg
        return Coordinate(lat, lon)

    def cells_near(self, point: Coordinate, radius_km: float) -> list[Cell]:
        """Cells whose centre lies within ``radius_km`` plus one cell diagonal."""
        reach_km = radius_km + self.diagonal_km
        reach_deg = reach_km / KM_PER_DEGREE

        first_row = math.floor(max(-90.0, point.lat - reach_deg) / self.cell_deg)
        last_row = math.floor(min(90.0, point.lat + reach_deg) / self.cell_deg)

        extreme_lat = min(90.0, abs(point.lat) + reach_deg)
        cos_lat = math.cos(math.radians(extreme_lat))
        if cos_lat < 1e-9 or reach_deg / cos_lat >= 180.0:
            cols = range(self.n_cols)
        else:
            lon_span = reach_deg / cos_lat
            first_col = self._col(point.lon - lon_span)
            last_col = self._col(point.lon + lon_span)
            cols = sorted({c % self.n_cols for c in range(first_col, last_col + 1)})

        cells: list[Cell] = []
        for row in range(first_row, last_row + 1):
            for col in cols:
                cell = (row, col)
                if distance_km(point, self.cell_center(cell)) <= reach_km:
                    cells.append(cell)
        return cells

    # -----------------------------------------------------------------------
    # Building and persistence
    # -----------------------------------------------------------------------

    def add(self, record: FeatureRecord, source: str = "grid") -> None:
        for vertex in record.geometry.vertices():
            cell = self.cell_of(vertex)
            self._cells.setdefault(cell, []).append(record.to_feature(vertex, source))

    def build(self, records: Iterable[FeatureRecord], source: str = "grid") -> int:
        count = 0
        for record in records:
            self.add(record, source)
            count += 1
        _log.info("Grid index: %d records in %d cells", count, len(self._cells))
        return count

    @classmethod
    def from_files(
        cls, files: Mapping[FeatureType, Path], cell_km: float = 50.0
    ) -> "GridIndex":
        index = cls(cell_km)
        for generic_type, path in files.items():
            if not path.exists():
                _log.warning("Feature file not found, skipping: %s", path)
                continue
            index.build(iter_records(path, generic_type))
        return index

    def save(self, directory: Path) -> int:
        """Write one JSON file per non-empty cell; returns the number of files."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        for (row, col), features in self._cells.items():
            with open(directory / f"{row}_{col}.json", "w", encoding="utf-8") as fh:
                json.dump([f.to_dict() for f in features], fh)
        return len(self._cells)

    def features_in(self, cell: Cell) -> list[Feature]:
        if cell in self._cells:
            return self._cells[cell]
        if self.directory is None:
            return []

        path = self.directory / f"{cell[0]}_{cell[1]}.json"
        features: list[Feature] = []
        if path.exists():
            try:
                with open(path, encoding="utf-8") as fh:
                    features = [Feature.from_dict(d) for d in json.load(fh)]
            except (OSError, ValueError, KeyError) as exc:
                _log.warning("Failed to load grid cell %s: %s", path.name, exc)
        self._cells[cell] = features
        return features

    def query(self, point: Coordinate, radius_km: float) -> list[Feature]:
        """Features with a vertex within ``radius_km``; one hit per record."""
        hits: dict[str, Feature] = {}
        for cell in self.cells_near(point, radius_km):
            for feature in self.features_in(cell):
                key = f"{feature.generic_type.value}:{feature.id}"
                if key in hits:
                    continue
                if distance_km(point, feature.location) <= radius_km:
                    hits[key] = feature
        return list(hits.values())

    def __len__(self) -> int:
        return sum(len(v) for v in self._cells.values())


class GridBackend(FeatureBackend):
    """Answer radius queries from a ``GridIndex``."""

    name = "grid"

    def __init__(self, index: GridIndex):
        self.index = index

    async def find_near(self, point: Coordinate, radius_km: float) -> list[Feature]:
        self.check_radius(radius_km)
        return await asyncio.to_thread(self.index.query, point, radius_km)
