"""
2.5D Collision Shapes
=====================
Reduces an arbitrary 3D mesh to a planar convex contour plus a vertical
extent [z_min, z_max], ready to become a polygon shape in a 2D rigid-body
engine.

Pipeline (run once per body, at model-load time):
    1. build_init / build_add_point / build_add_triangle: rasterize onto an
       occupancy grid, tracking z_min / z_max.
    2. Flood fill the exterior of the footprint.
    3. Trace the outer border at full grid resolution.
    4. Convex hull of the border cells.
    5. Prune the hull down to the engine's polygon vertex limit.

The grid only lives between build_init and the first get_contour call.
"""

from __future__ import annotations
from typing import Iterable, Optional, Sequence

import numpy as np

from .constants import (
    DEFAULT_GRID_CELLS, GRID_MARGIN_CELLS, EDGE_STEP_FRACTION,
    MAX_POLYGON_VERTICES, MIN_POLYGON_VERTICES,
)
from .types import CellState
from .errors import EmptyShapeError, InvalidShapeError, GridBoundsError, GridStateError
from .grid import OccupancyGrid, flood_fill_exterior, trace_contour
from .math_utils import signed_area, cell_corners, convex_hull, prune_convex_polygon


class Shape2p5:
    """
    A planar contour extruded between z_min and z_max.

    The contour is computed lazily from the rasterization grid on first
    access and cached; set_shape_manual() bypasses the grid altogether.
    """

    def __init__(self, max_vertices: int = MAX_POLYGON_VERTICES):
        if max_vertices < MIN_POLYGON_VERTICES:
            raise ValueError(
                f"max_vertices must be >= {MIN_POLYGON_VERTICES}, got {max_vertices}"
            )
        self.max_vertices = int(max_vertices)
        self._grid: Optional[OccupancyGrid] = None
        self._contour: Optional[np.ndarray] = None
        self._raw_contour: Optional[np.ndarray] = None
        self._z_min = np.inf
        self._z_max = -np.inf

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def z_min(self) -> float:
        return float(self._z_min)

    @property
    def z_max(self) -> float:
        return float(self._z_max)

    @property
    def raw_contour(self) -> Optional[np.ndarray]:
        """Full-resolution traced border (cell centers) of the last build."""
        return self._raw_contour

    def has_contour(self) -> bool:
        return self._contour is not None and len(self._contour) > 0

    # -------------------------------------------------------------------------
    # Building from geometry
    # -------------------------------------------------------------------------

    def build_init(self, bb_min: Sequence[float], bb_max: Sequence[float],
                   num_cells: int = DEFAULT_GRID_CELLS) -> None:
        """
        Start a new rasterization over the 2D bounding box [bb_min, bb_max].

        Resolution is the bounding box diagonal over ``num_cells``; the grid is
        padded by GRID_MARGIN_CELLS cells so its outer ring is always empty.
        """
        if num_cells <= 0:
            raise ValueError(f"num_cells must be > 0, got {num_cells}")

        self._contour = None
        self._raw_contour = None

        bb_min = np.asarray(bb_min, dtype=np.float64)[:2]
        bb_max = np.asarray(bb_max, dtype=np.float64)[:2]

        r = float(np.linalg.norm(bb_max - bb_min)) / num_cells
        if r <= 0.0:
            raise GridStateError("Bounding box has zero size, cannot build a grid")

        b = r * GRID_MARGIN_CELLS
        self._grid = OccupancyGrid(
            bb_min[0] - b, bb_max[0] + b, bb_min[1] - b, bb_max[1] + b, r,
            fill=CellState.UNDEFINED,
        )
        self._z_min = np.inf
        self._z_max = -np.inf

    def build_add_point(self, pt: Sequence[float]) -> None:
        """Mark the cell containing a 3D point as occupied."""
        grid = self._require_grid()
        x, y, z = float(pt[0]), float(pt[1]), float(pt[2])
        idx = grid.index_of(x, y)
        if idx is None:
            raise GridBoundsError(f"Point ({x}, {y}) lies outside the shape grid")
        grid.set(idx[0], idx[1], CellState.OCCUPIED)
        self._z_min = min(self._z_min, z)
        self._z_max = max(self._z_max, z)

    def build_add_triangle(self, tri: Sequence[Sequence[float]]) -> None:
        """
        Rasterize the three edges of a 3D triangle.

        Edges are sampled every EDGE_STEP_FRACTION cells so no cell along an
        edge is skipped. Samples falling outside the grid are ignored.
        """
        grid = self._require_grid()
        verts = np.asarray(tri, dtype=np.float64).reshape(3, 3)
        step = grid.resolution * EDGE_STEP_FRACTION

        for i0 in range(3):
            v0 = verts[i0]
            v1 = verts[(i0 + 1) % 3]
            n_steps = max(1, int(np.ceil(np.linalg.norm(v1 - v0) / step)))

            # Endpoint excluded: it starts the next edge
            samples = v0[None, :] + (v1 - v0)[None, :] * (np.arange(n_steps) / n_steps)[:, None]
            for x, y, z in samples:
                idx = grid.index_of(x, y)
                if idx is None:
                    continue
                grid.set(idx[0], idx[1], CellState.OCCUPIED)
                self._z_min = min(self._z_min, z)
                self._z_max = max(self._z_max, z)

    def _require_grid(self) -> OccupancyGrid:
        if self._grid is None:
            raise GridStateError("build_init() must be called before adding geometry")
        return self._grid

    # -------------------------------------------------------------------------
    # Contour
    # -------------------------------------------------------------------------

    def get_contour(self) -> np.ndarray:
        """
        Simplified convex contour (N, 2), counter-clockwise.

        Raises:
            InvalidShapeError: Shape was never built nor set, or was set to an
                empty contour.
            EmptyShapeError: The rasterization has no occupied cell.
        """
        if self._contour is None:
            if self._grid is None:
                raise InvalidShapeError("Shape has no contour: nothing was built or set")
            self._compute_shape()
        if len(self._contour) == 0:
            raise InvalidShapeError("Shape has an empty contour")
        return self._contour

    def _compute_shape(self) -> None:
        grid = self._grid

        if grid.count(CellState.OCCUPIED) == 0:
            raise EmptyShapeError("Shape grid has no occupied cells")

        # 1) Flood fill the outside with FREE to expose the outer shape:
        flood_fill_exterior(grid)

        # 2) Outer contour at full grid resolution:
        path = trace_contour(grid)
        centers = np.array([(grid.idx2x(ix), grid.idx2y(iy)) for ix, iy in path])

        # Border cells a dead-ended walk did not reach still bound the shape
        leftover = [(grid.idx2x(ix), grid.idx2y(iy)) for ix, iy in grid.border_cells()]
        hull_cells = np.vstack([centers, np.array(leftover).reshape(-1, 2)])

        # 3) Convex hull over the cell corners, so it encloses whole cells and a
        #    single cell still gives a quad:
        hull = convex_hull(cell_corners(hull_cells, 0.5 * grid.resolution))

        # 4) Pruning until vertex count <= max_vertices:
        self._contour = prune_convex_polygon(hull, self.max_vertices)
        self._raw_contour = centers

        self._grid = None

    def set_shape_manual(self, contour: Sequence[Sequence[float]],
                         z_min: float, z_max: float) -> None:
        """Set the contour and vertical extent directly, dropping any grid."""
        self._grid = None
        self._raw_contour = None
        self._contour = np.asarray(contour, dtype=np.float64).reshape(-1, 2)
        self._z_min = float(min(z_min, z_max))
        self._z_max = float(max(z_min, z_max))

    # -------------------------------------------------------------------------
    # Derived quantities
    # -------------------------------------------------------------------------

    def volume(self) -> float:
        """Signed contour area times the vertical extent."""
        return signed_area(self.get_contour()) * (self._z_max - self._z_min)

    # -------------------------------------------------------------------------
    # Merging
    # -------------------------------------------------------------------------

    def _extruded_points(self) -> np.ndarray:
        if self._contour is None and self._grid is not None:
            self._compute_shape()
        if not self.has_contour():
            raise InvalidShapeError("Cannot merge a shape that has no contour")

        contour = self._contour
        n = len(contour)
        bottom = np.column_stack([contour, np.full(n, self._z_min)])
        top = np.column_stack([contour, np.full(n, self._z_max)])
        return np.vstack([bottom, top])

    def merge_with(self, other: "Shape2p5") -> None:
        """
        Replace this shape by the convex hull of itself and ``other``.

        Raises:
            InvalidShapeError: Either shape has an empty contour.
        """
        own = self._extruded_points()
        merged = Shape2p5.create_convex_hull_from_points(
            np.vstack([own, other._extruded_points()]), self.max_vertices
        )
        self.set_shape_manual(merged.get_contour(), merged.z_min, merged.z_max)

    def merge_with_points(self, pts: Iterable[Sequence[float]]) -> None:
        """
        Replace this shape by the convex hull of itself and a 3D point set.

        Raises:
            InvalidShapeError: This shape has an empty contour.
        """
        own = self._extruded_points()
        extra = np.asarray(list(pts), dtype=np.float64).reshape(-1, 3)
        all_pts = np.vstack([own, extra])
        merged = Shape2p5.create_convex_hull_from_points(all_pts, self.max_vertices)

        self.set_shape_manual(merged.get_contour(), merged.z_min, merged.z_max)

    @staticmethod
    def create_convex_hull_from_points(pts: Iterable[Sequence[float]],
                                       max_vertices: int = MAX_POLYGON_VERTICES) -> "Shape2p5":
        """
        Shape whose contour is the (pruned) convex hull of 3D points.

        Raises:
            EmptyShapeError: No points, or points with no planar extent.
        """
        arr = np.asarray(list(pts), dtype=np.float64).reshape(-1, 3)
        if len(arr) == 0:
            raise EmptyShapeError("Cannot create a shape from an empty point set")

        shape = Shape2p5(max_vertices)
        hull = prune_convex_polygon(convex_hull(arr[:, :2]), shape.max_vertices)
        shape.set_shape_manual(hull, float(arr[:, 2].min()), float(arr[:, 2].max()))
        return shape


# =============================================================================
# MESH HELPERS
# =============================================================================


def shape_from_mesh(vertices: np.ndarray, triangles: np.ndarray,
                    num_cells: int = DEFAULT_GRID_CELLS,
                    max_vertices: int = MAX_POLYGON_VERTICES) -> Shape2p5:
    """
    Reduce an indexed triangle mesh to a 2.5D shape.

    Args:
        vertices: Vertex positions (V, 3)
        triangles: Vertex indices per triangle (T, 3)
        num_cells: Grid cells along the footprint diagonal
        max_vertices: Polygon vertex limit of the output contour

    Returns:
        Shape2p5 with its contour already computed
    """
    vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    triangles = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
    if len(vertices) == 0:
        raise EmptyShapeError("Mesh has no vertices")

    shape = Shape2p5(max_vertices)
    bb_min = vertices[:, :2].min(axis=0)
    bb_max = vertices[:, :2].max(axis=0)
    if np.allclose(bb_min, bb_max):
        # Point-like footprint: give the grid a nominal extent
        bb_min = bb_min - 0.5
        bb_max = bb_max + 0.5
    shape.build_init(bb_min, bb_max, num_cells)

    if len(triangles) == 0:
        for v in vertices:
            shape.build_add_point(v)
    else:
        for tri in vertices[triangles]:
            shape.build_add_triangle(tri)

    shape.get_contour()
    return shape


def shape_from_points(points: np.ndarray,
                      num_cells: int = DEFAULT_GRID_CELLS,
                      max_vertices: int = MAX_POLYGON_VERTICES) -> Shape2p5:
    """Reduce a 3D point cloud to a 2.5D shape via the occupancy grid."""
    return shape_from_mesh(points, np.empty((0, 3), dtype=np.int64), num_cells, max_vertices)
