"""
Occupancy Grid
==============
Uniform 2D grid used to rasterize a mesh footprint, flood-fill its exterior
and trace its outer border.

Cells are stored in a uint8 array indexed as ``cells[iy, ix]`` so that a
row-major scan walks x first, then y.
"""

from __future__ import annotations
from collections import deque
from typing import Iterator, List, NamedTuple, Optional, Tuple

import numpy as np

from .types import CellState
from .errors import GridStateError


# 8-neighbourhood, counter-clockwise starting East
NEIGHBORS_8 = (
    (1, 0), (1, 1), (0, 1), (-1, 1),
    (-1, 0), (-1, -1), (0, -1), (1, -1),
)
NEIGHBORS_4 = ((1, 0), (0, 1), (-1, 0), (0, -1))


class OccupancyGrid:
    """
    Fixed-size grid over [x_min, x_max] x [y_min, y_max].

    Dimensions and resolution never change after construction.
    """

    def __init__(self, x_min: float, x_max: float, y_min: float, y_max: float,
                 resolution: float, fill: CellState = CellState.UNDEFINED):
        if not resolution > 0.0:
            raise GridStateError(f"Grid resolution must be > 0, got {resolution}")

        self.x_min = float(x_min)
        self.y_min = float(y_min)
        self.resolution = float(resolution)
        self.size_x = max(1, int(np.ceil((x_max - x_min) / resolution)))
        self.size_y = max(1, int(np.ceil((y_max - y_min) / resolution)))
        self.x_max = self.x_min + self.size_x * self.resolution
        self.y_max = self.y_min + self.size_y * self.resolution

        self.cells = np.full((self.size_y, self.size_x), int(fill), dtype=np.uint8)

    # -------------------------------------------------------------------------
    # Coordinates
    # -------------------------------------------------------------------------

    def x2idx(self, x: float) -> int:
        return int(np.floor((x - self.x_min) / self.resolution))

    def y2idx(self, y: float) -> int:
        return int(np.floor((y - self.y_min) / self.resolution))

    def idx2x(self, ix: int) -> float:
        """Center of column ``ix``."""
        return self.x_min + (ix + 0.5) * self.resolution

    def idx2y(self, iy: int) -> float:
        """Center of row ``iy``."""
        return self.y_min + (iy + 0.5) * self.resolution

    def inside(self, ix: int, iy: int) -> bool:
        return 0 <= ix < self.size_x and 0 <= iy < self.size_y

    def index_of(self, x: float, y: float) -> Optional[Tuple[int, int]]:
        """Cell index (ix, iy) containing a point, or None if outside."""
        ix, iy = self.x2idx(x), self.y2idx(y)
        if not self.inside(ix, iy):
            return None
        return ix, iy

    # -------------------------------------------------------------------------
    # Cell access
    # -------------------------------------------------------------------------

    def get(self, ix: int, iy: int) -> Optional[CellState]:
        if not self.inside(ix, iy):
            return None
        return CellState(int(self.cells[iy, ix]))

    def set(self, ix: int, iy: int, state: CellState) -> None:
        if self.inside(ix, iy):
            self.cells[iy, ix] = int(state)

    def fill(self, state: CellState) -> None:
        self.cells.fill(int(state))

    def count(self, state: CellState) -> int:
        return int(np.count_nonzero(self.cells == int(state)))

    def first_cell(self, state: CellState) -> Optional[Tuple[int, int]]:
        """First cell with ``state`` in row-major order, or None."""
        mask = (self.cells == int(state)).ravel()
        if not mask.any():
            return None
        flat = int(np.argmax(mask))
        iy, ix = divmod(flat, self.size_x)
        return ix, iy

    def is_border(self, ix: int, iy: int) -> bool:
        """Occupied cell with at least one Free 4-neighbour."""
        if self.get(ix, iy) != CellState.OCCUPIED:
            return False
        return any(self.get(ix + dx, iy + dy) == CellState.FREE for dx, dy in NEIGHBORS_4)

    def border_cells(self) -> Iterator[Tuple[int, int]]:
        """All current border cells in row-major order."""
        occupied = np.argwhere(self.cells == int(CellState.OCCUPIED))
        for iy, ix in occupied:
            if self.is_border(int(ix), int(iy)):
                yield int(ix), int(iy)


# =============================================================================
# FLOOD FILL
# =============================================================================


def flood_fill_exterior(grid: OccupancyGrid, seed: Tuple[int, int] = (0, 0)) -> int:
    """
    Mark every Undefined cell reachable from ``seed`` as Free.

    Scan-line seed fill with an explicit work queue:
    Heckbert, P. S. (1990). "A Seed Fill Algorithm". Graphics Gems, 275-277.

    Running it again on a filled grid is a no-op (the seed is already Free).

    Args:
        grid: Grid to fill in place
        seed: Starting cell (ix, iy); a corner cell is always empty thanks to
            the padding margin

    Returns:
        Number of cells marked Free by this call

    Raises:
        GridStateError: Seed cell is Occupied/Visited or outside the grid.
    """
    x0, y0 = seed
    seed_state = grid.get(x0, y0)
    if seed_state == CellState.FREE:
        return 0
    if seed_state != CellState.UNDEFINED:
        raise GridStateError(
            f"Flood fill seed {seed} must be an Undefined cell, found {seed_state!r}"
        )

    cells = grid.cells
    undefined = int(CellState.UNDEFINED)
    free = int(CellState.FREE)
    nx, ny = grid.size_x, grid.size_y

    def is_open(x: int, y: int) -> bool:
        return 0 <= x < nx and 0 <= y < ny and cells[y, x] == undefined

    def scan(lx: int, rx: int, y: int, queue: deque) -> None:
        span_added = False
        for x in range(lx, rx + 1):
            if not is_open(x, y):
                span_added = False
            elif not span_added:
                queue.append((x, y))
                span_added = True

    filled = 0
    queue = deque([(x0, y0)])
    while queue:
        x, y = queue.popleft()
        lx = x
        while is_open(lx - 1, y):
            cells[y, lx - 1] = free
            lx -= 1
            filled += 1
        while is_open(x, y):
            cells[y, x] = free
            x += 1
            filled += 1
        scan(lx, x - 1, y + 1, queue)
        scan(lx, x - 1, y - 1, queue)

    return filled


# =============================================================================
# CONTOUR TRACING
# =============================================================================


class TraceState(NamedTuple):
    """Current cell of the border walk and the direction it was entered from."""
    ix: int
    iy: int
    heading: int    # index into NEIGHBORS_8


def trace_contour(grid: OccupancyGrid) -> List[Tuple[int, int]]:
    """
    Walk the outer border of the occupied region.

    Starts at the first Occupied cell in row-major order. At every step the
    current cell is recorded and marked Visited, then the 8-neighbourhood is
    searched for an Occupied border cell, beginning just behind the current
    heading and sweeping counter-clockwise. Visited cells are no longer
    Occupied, so the walk never steps back onto itself. It stops when no
    border neighbour is left.

    Args:
        grid: Flood-filled grid, modified in place (walked cells -> Visited)

    Returns:
        Ordered list of cell indices (ix, iy); empty if nothing is occupied
    """
    start = grid.first_cell(CellState.OCCUPIED)
    if start is None:
        return []

    path: List[Tuple[int, int]] = []
    # Entering the first cell of a row-major scan means moving East
    state: Optional[TraceState] = TraceState(start[0], start[1], heading=0)

    while state is not None:
        grid.set(state.ix, state.iy, CellState.VISITED)
        path.append((state.ix, state.iy))
        state = _next_trace_state(grid, state)

    return path


def _next_trace_state(grid: OccupancyGrid, state: TraceState) -> Optional[TraceState]:
    # Back up 90 degrees from the heading so the sweep hugs the free side
    first = (state.heading + 6) % 8
    for k in range(8):
        heading = (first + k) % 8
        dx, dy = NEIGHBORS_8[heading]
        nx, ny = state.ix + dx, state.iy + dy
        if grid.is_border(nx, ny):
            return TraceState(nx, ny, heading)
    return None
