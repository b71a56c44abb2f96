"""
Route simulation: cumulative viewsheds along a path.

Each position is calculated and folded into a CoverageArea in order; the
tracker skips positions closer than min_move_m to the last calculated one.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ..constants import DEFAULT_ROUTE_STEPS, DEFAULT_STEP_DELAY_S, MIN_RECALCULATION_DISTANCE_M
from .coverage import CoverageArea
from .elevation_source import ProgressChannel, report_progress
from .geodesy import Coordinate
from .viewshed_engine import ViewshedEngine, ViewshedResult

logger = logging.getLogger(__name__)

# US Highway 2: Scenic -> Stevens Pass -> Berne
HIGHWAY_2_ROUTE: list[Coordinate] = [
    Coordinate(47.7126, -121.1477),  # Scenic
    Coordinate(47.7150, -121.1400),
    Coordinate(47.7180, -121.1300),
    Coordinate(47.7220, -121.1200),
    Coordinate(47.7280, -121.1100),
    Coordinate(47.7350, -121.1000),
    Coordinate(47.7400, -121.0950),
    Coordinate(47.7465, -121.0890),  # Stevens Pass
    Coordinate(47.7500, -121.0800),
    Coordinate(47.7550, -121.0700),
    Coordinate(47.7600, -121.0600),
    Coordinate(47.7650, -121.0500),
    Coordinate(47.7700, -121.0300),
    Coordinate(47.7750, -121.0100),
    Coordinate(47.7780, -120.9900),
    Coordinate(47.7787, -120.9750),  # Berne
]


def interpolate_path(
    waypoints: Sequence[Coordinate], steps: int = DEFAULT_ROUTE_STEPS
) -> list[Coordinate]:
    """Linearly densify a waypoint list to roughly `steps` positions."""
    if len(waypoints) < 2:
        return list(waypoints)

    segments = len(waypoints) - 1
    per_segment = max(1, steps // segments)
    path: list[Coordinate] = []
    for start, end in zip(waypoints[:-1], waypoints[1:]):
        for j in range(per_segment):
            f = j / per_segment
            path.append(
                Coordinate(
                    start.latitude + (end.latitude - start.latitude) * f,
                    start.longitude + (end.longitude - start.longitude) * f,
                )
            )
    path.append(waypoints[-1])
    return path


@dataclass
class TrackerStep:
    position: Coordinate
    calculated: bool
    new_cells: int
    result: ViewshedResult | None = None


class CoverageTracker:
    """Folds viewsheds into one CoverageArea as an observer moves."""

    def __init__(
        self,
        engine: ViewshedEngine,
        area: CoverageArea | None = None,
        min_move_m: float = MIN_RECALCULATION_DISTANCE_M,
    ) -> None:
        self.engine = engine
        self.area = area or CoverageArea(cell_size_m=engine.config.grid_cell_size_m)
        self.min_move_m = min_move_m
        self.last_position: Coordinate | None = None

    def needs_update(self, position: Coordinate) -> bool:
        if self.last_position is None:
            return True
        return self.last_position.distance_to(position) >= self.min_move_m

    async def observe(
        self,
        position: Coordinate,
        force: bool = False,
        progress: ProgressChannel | None = None,
        cancel: asyncio.Event | None = None,
    ) -> TrackerStep:
        if not force and not self.needs_update(position):
            return TrackerStep(position=position, calculated=False, new_cells=0)

        result = await self.engine.calculate(position, progress=progress, cancel=cancel)
        if result.cancelled:
            return TrackerStep(position=position, calculated=False, new_cells=0, result=result)

        added = self.area.add_result(result)
        self.last_position = position
        return TrackerStep(position=position, calculated=True, new_cells=added, result=result)

    def reset(self) -> None:
        self.area.clear()
        self.last_position = None


async def simulate_route(
    path: Sequence[Coordinate],
    tracker: CoverageTracker,
    cancel: asyncio.Event | None = None,
    step_delay_s: float = DEFAULT_STEP_DELAY_S,
    on_step: ProgressChannel | None = None,
) -> int:
    """Walk a path through the tracker; returns the number of positions processed."""
    processed = 0
    for position in path:
        if cancel is not None and cancel.is_set():
            logger.info(f"Route simulation cancelled after {processed}/{len(path)} positions")
            break
        step = await tracker.observe(position, cancel=cancel)
        processed += 1
        await report_progress(on_step, step)
        if step_delay_s > 0:
            await asyncio.sleep(step_delay_s)
    return processed
