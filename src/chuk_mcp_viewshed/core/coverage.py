"""
Coverage grid: accumulation of visible points into 100 m cells.

Coordinates are projected onto a local planar grid (111 320 m per degree of
latitude, scaled by cos(lat) for longitude) and floored to cell indices.
Cell sets only grow through union, so folding the same viewshed in twice
changes nothing.
"""

import json
import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from ..constants import DEFAULT_GRID_CELL_SIZE_M, METERS_PER_DEGREE_LAT
from ..models.geojson import Feature, FeatureCollection, PolygonGeometry
from .geodesy import BoundingBox, Coordinate
from .tile_cache import ByteStore
from .viewshed_engine import ViewshedResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class GridCell:
    """Integer cell index on the local metre grid."""

    grid_x: int
    grid_y: int

    @classmethod
    def from_coordinate(
        cls, coord: Coordinate, cell_size_m: float = DEFAULT_GRID_CELL_SIZE_M
    ) -> "GridCell":
        m_per_deg_lon = METERS_PER_DEGREE_LAT * math.cos(math.radians(coord.latitude))
        return cls(
            grid_x=int(math.floor(coord.longitude * m_per_deg_lon / cell_size_m)),
            grid_y=int(math.floor(coord.latitude * METERS_PER_DEGREE_LAT / cell_size_m)),
        )

    def _lat_span(self, cell_size_m: float) -> tuple[float, float]:
        return (
            self.grid_y * cell_size_m / METERS_PER_DEGREE_LAT,
            (self.grid_y + 1) * cell_size_m / METERS_PER_DEGREE_LAT,
        )

    def _lon_span(self, cell_size_m: float) -> tuple[float, float]:
        min_lat, max_lat = self._lat_span(cell_size_m)
        m_per_deg_lon = METERS_PER_DEGREE_LAT * math.cos(math.radians((min_lat + max_lat) / 2))
        return (
            self.grid_x * cell_size_m / m_per_deg_lon,
            (self.grid_x + 1) * cell_size_m / m_per_deg_lon,
        )

    def corners(self, cell_size_m: float = DEFAULT_GRID_CELL_SIZE_M) -> list[Coordinate]:
        """SW, SE, NE, NW corners."""
        min_lat, max_lat = self._lat_span(cell_size_m)
        min_lon, max_lon = self._lon_span(cell_size_m)
        return [
            Coordinate(min_lat, min_lon),
            Coordinate(min_lat, max_lon),
            Coordinate(max_lat, max_lon),
            Coordinate(max_lat, min_lon),
        ]

    def center(self, cell_size_m: float = DEFAULT_GRID_CELL_SIZE_M) -> Coordinate:
        min_lat, max_lat = self._lat_span(cell_size_m)
        min_lon, max_lon = self._lon_span(cell_size_m)
        return Coordinate((min_lat + max_lat) / 2, (min_lon + max_lon) / 2)


# ---------------------------------------------------------------------------
# Set operations and export
# ---------------------------------------------------------------------------


def to_grid(result: ViewshedResult, cell_size_m: float | None = None) -> set[GridCell]:
    """Distinct cells containing the visible points of a result."""
    size = cell_size_m or result.config.grid_cell_size_m
    return {GridCell.from_coordinate(p.coordinate, size) for p in result.visible_points}


def merge(existing: Iterable[GridCell], incoming: Iterable[GridCell]) -> set[GridCell]:
    return set(existing) | set(incoming)


def to_feature_collection(
    cells: Iterable[GridCell], cell_size_m: float = DEFAULT_GRID_CELL_SIZE_M
) -> FeatureCollection:
    features = []
    for cell in sorted(cells):
        ring = [[c.longitude, c.latitude] for c in cell.corners(cell_size_m)]
        ring.append(ring[0])
        features.append(
            Feature(
                geometry=PolygonGeometry(coordinates=[ring]),
                properties={"grid_x": cell.grid_x, "grid_y": cell.grid_y},
            )
        )
    return FeatureCollection(features=features)


def to_geojson(cells: Iterable[GridCell], cell_size_m: float = DEFAULT_GRID_CELL_SIZE_M) -> str:
    """FeatureCollection string with one closed polygon per cell."""
    return to_feature_collection(cells, cell_size_m).model_dump_json()


# ---------------------------------------------------------------------------
# Cumulative coverage
# ---------------------------------------------------------------------------


@dataclass
class CoverageStatistics:
    total_area_km2: float
    total_cells: int
    first_viewed: datetime | None
    last_viewed: datetime | None
    total_viewsheds: int


class CoverageArea:
    """Session-wide set of viewed cells.

    Mutated by a single owner at a time; callers serialise
    calculate -> merge steps.
    """

    def __init__(
        self,
        cells: Iterable[GridCell] | None = None,
        cell_size_m: float = DEFAULT_GRID_CELL_SIZE_M,
        last_updated: datetime | None = None,
        first_viewed: datetime | None = None,
        total_viewsheds: int = 0,
    ) -> None:
        self.cells: set[GridCell] = set(cells or ())
        self.cell_size_m = cell_size_m
        self.last_updated = last_updated
        self.first_viewed = first_viewed
        self.total_viewsheds = total_viewsheds

    def __len__(self) -> int:
        return len(self.cells)

    def __contains__(self, cell: GridCell) -> bool:
        return cell in self.cells

    @property
    def cell_area_km2(self) -> float:
        return (self.cell_size_m / 1000.0) ** 2

    @property
    def total_area_km2(self) -> float:
        return len(self.cells) * self.cell_area_km2

    # In-place growth

    def add_cells(self, cells: Iterable[GridCell], when: datetime | None = None) -> int:
        """Union cells in; returns how many were new."""
        before = len(self.cells)
        self.cells |= set(cells)
        when = when or datetime.now(timezone.utc)
        self.last_updated = when
        if self.first_viewed is None:
            self.first_viewed = when
        return len(self.cells) - before

    def add_result(self, result: ViewshedResult) -> int:
        added = self.add_cells(to_grid(result, self.cell_size_m), when=result.timestamp)
        self.total_viewsheds += 1
        return added

    # Functional growth

    def _copy(self) -> "CoverageArea":
        return CoverageArea(
            cells=self.cells,
            cell_size_m=self.cell_size_m,
            last_updated=self.last_updated,
            first_viewed=self.first_viewed,
            total_viewsheds=self.total_viewsheds,
        )

    def adding(self, result: ViewshedResult) -> "CoverageArea":
        area = self._copy()
        area.add_result(result)
        return area

    def merging(self, other: "CoverageArea") -> "CoverageArea":
        area = self._copy()
        area.cells = merge(self.cells, other.cells)
        stamps = [t for t in (self.last_updated, other.last_updated) if t is not None]
        firsts = [t for t in (self.first_viewed, other.first_viewed) if t is not None]
        area.last_updated = max(stamps) if stamps else None
        area.first_viewed = min(firsts) if firsts else None
        area.total_viewsheds = self.total_viewsheds + other.total_viewsheds
        return area

    def clear(self) -> int:
        removed = len(self.cells)
        self.cells.clear()
        self.last_updated = datetime.now(timezone.utc)
        self.first_viewed = None
        self.total_viewsheds = 0
        return removed

    # Queries

    def is_viewed(self, coord: Coordinate) -> bool:
        return GridCell.from_coordinate(coord, self.cell_size_m) in self.cells

    def cells_in(self, bbox: BoundingBox) -> set[GridCell]:
        """Cells whose centre lies inside bbox."""
        return {c for c in self.cells if bbox.contains(c.center(self.cell_size_m))}

    def statistics(self) -> CoverageStatistics:
        return CoverageStatistics(
            total_area_km2=self.total_area_km2,
            total_cells=len(self.cells),
            first_viewed=self.first_viewed,
            last_viewed=self.last_updated,
            total_viewsheds=self.total_viewsheds,
        )

    def to_geojson(self) -> str:
        return to_geojson(self.cells, self.cell_size_m)

    # Persistence

    def to_json(self) -> str:
        return json.dumps(
            {
                "cell_size_m": self.cell_size_m,
                "cells": [[c.grid_x, c.grid_y] for c in sorted(self.cells)],
                "last_updated": self.last_updated.isoformat() if self.last_updated else None,
                "first_viewed": self.first_viewed.isoformat() if self.first_viewed else None,
                "total_viewsheds": self.total_viewsheds,
            }
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> "CoverageArea":
        data = json.loads(text)

        def _ts(value: str | None) -> datetime | None:
            return datetime.fromisoformat(value) if value else None

        return cls(
            cells=(GridCell(int(x), int(y)) for x, y in data.get("cells", [])),
            cell_size_m=float(data.get("cell_size_m", DEFAULT_GRID_CELL_SIZE_M)),
            last_updated=_ts(data.get("last_updated")),
            first_viewed=_ts(data.get("first_viewed")),
            total_viewsheds=int(data.get("total_viewsheds", 0)),
        )

    def save(self, store: ByteStore, key: str) -> None:
        store.put(key, self.to_json().encode("utf-8"))

    @classmethod
    def load(
        cls, store: ByteStore, key: str, cell_size_m: float = DEFAULT_GRID_CELL_SIZE_M
    ) -> "CoverageArea":
        """Load persisted coverage, or an empty area if none was saved."""
        data = store.get(key)
        if data is None:
            return cls(cell_size_m=cell_size_m)
        area = cls.from_json(data)
        logger.info(f"Loaded coverage '{key}': {len(area)} cells")
        return area
