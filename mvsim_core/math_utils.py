"""
Planar Math Helpers
===================
2D rotations, saturation curves and polygon utilities shared by the shape
reducer and the friction model.

Scalar/array helpers used inside jitted kernels are written with jax.numpy;
polygon helpers run once at model-load time and use numpy/scipy.
Polygons are (N, 2) arrays, counter-clockwise unless stated otherwise.
"""

from __future__ import annotations
import math

import numpy as np
import jax.numpy as jnp
from scipy.spatial import ConvexHull

from .errors import EmptyShapeError


# =============================================================================
# ROTATIONS AND ANGLES
# =============================================================================


def rotate_2d(v: jnp.ndarray, angle: jnp.ndarray) -> jnp.ndarray:
    """
    Rotate a 2D vector counter-clockwise by ``angle``.

    Equivalent to composing a point with the pose (0, 0, angle).

    Args:
        v: Vector [..., 2]
        angle: Rotation angle in radians [...]

    Returns:
        Rotated vector [..., 2]
    """
    c = jnp.cos(angle)
    s = jnp.sin(angle)
    x, y = v[..., 0], v[..., 1]
    return jnp.stack([c * x - s * y, s * x + c * y], axis=-1)


def inverse_rotate_2d(v: jnp.ndarray, angle: jnp.ndarray) -> jnp.ndarray:
    """Rotate a 2D vector clockwise by ``angle`` (inverse of rotate_2d)."""
    return rotate_2d(v, -angle)


def wrap_to_pi(angle: float) -> float:
    """Wrap an angle to the interval (-pi, pi]."""
    wrapped = math.fmod(angle + math.pi, 2.0 * math.pi)
    if wrapped <= 0.0:
        wrapped += 2.0 * math.pi
    return wrapped - math.pi


# =============================================================================
# SATURATION CURVES
# =============================================================================


def heaviside(x: jnp.ndarray, x0: jnp.ndarray) -> jnp.ndarray:
    """Step selector: 1.0 where x > x0, else 0.0."""
    return jnp.where(x > x0, 1.0, 0.0)


def saturate(x: jnp.ndarray, x0: jnp.ndarray) -> jnp.ndarray:
    """
    Symmetric saturation.

    sat(x, x0) = x            if |x| <= x0
               = x0 * sign(x) otherwise

    Args:
        x: Input value(s)
        x0: Saturation level (> 0)

    Returns:
        Saturated value(s), same shape as x
    """
    return jnp.where(jnp.abs(x) <= x0, x, x0 * jnp.sign(x))


def finite_or_zero(x: jnp.ndarray) -> jnp.ndarray:
    """Replace NaN/inf entries by zero."""
    return jnp.where(jnp.isfinite(x), x, 0.0)


# =============================================================================
# POLYGONS
# =============================================================================


def signed_area(poly: np.ndarray) -> float:
    """
    Shoelace area of a closed polygon.

    Positive for counter-clockwise winding, negative for clockwise.
    """
    poly = np.asarray(poly, dtype=np.float64)
    if len(poly) < 3:
        return 0.0
    x, y = poly[:, 0], poly[:, 1]
    return 0.5 * float(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


def cell_corners(centers: np.ndarray, half_size: float) -> np.ndarray:
    """
    Expand grid cell centers into their four corners.

    Args:
        centers: Cell centers (N, 2)
        half_size: Half of the cell edge length

    Returns:
        Corners (4N, 2)
    """
    centers = np.asarray(centers, dtype=np.float64).reshape(-1, 2)
    offsets = np.array([
        [-half_size, -half_size],
        [half_size, -half_size],
        [half_size, half_size],
        [-half_size, half_size],
    ])
    return (centers[:, None, :] + offsets[None, :, :]).reshape(-1, 2)


def convex_hull(points: np.ndarray) -> np.ndarray:
    """
    Counter-clockwise convex hull of a 2D point set.

    Raises:
        EmptyShapeError: No points, or the points have no planar extent
            (all coincident or collinear).
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(pts) == 0:
        raise EmptyShapeError("Cannot build a convex hull from an empty point set")

    pts = np.unique(pts, axis=0)
    if len(pts) < 3 or np.linalg.matrix_rank(pts - pts.mean(axis=0)) < 2:
        raise EmptyShapeError("Point set has no planar extent (coincident or collinear)")

    hull = ConvexHull(pts)
    # For 2D input qhull lists hull vertices in counter-clockwise order
    return pts[hull.vertices]


def prune_convex_polygon(poly: np.ndarray, max_vertices: int) -> np.ndarray:
    """
    Reduce a convex polygon to at most ``max_vertices`` vertices while still
    enclosing the original.

    Each iteration removes the edge whose removal adds the least area: the two
    neighbouring edges are extended until they meet, and the edge's two
    endpoints are replaced by that intersection. The result stays convex and
    contains the input polygon.

    Args:
        poly: Convex polygon (N, 2), either winding
        max_vertices: Target vertex count (>= 4)

    Returns:
        Counter-clockwise convex polygon (M, 2) with M <= max(max_vertices, 3)
    """
    p = np.asarray(poly, dtype=np.float64).reshape(-1, 2)
    if signed_area(p) < 0.0:
        p = p[::-1]

    while len(p) > max_vertices:
        prev_pt = np.roll(p, 1, axis=0)      # p[i-1]
        next_pt = np.roll(p, -1, axis=0)     # p[i+1]
        next2_pt = np.roll(p, -2, axis=0)    # p[i+2]

        d0 = p - prev_pt                     # edge arriving at p[i]
        e = next_pt - p                      # edge being removed
        d2 = next2_pt - next_pt              # edge leaving p[i+1]

        denom = d0[:, 0] * d2[:, 1] - d0[:, 1] * d2[:, 0]
        cross_e_d2 = e[:, 0] * d2[:, 1] - e[:, 1] * d2[:, 0]
        cross_d0_e = d0[:, 0] * e[:, 1] - d0[:, 1] * e[:, 0]

        # Neighbouring edges only meet ahead of the polygon if they turn left
        scale = np.linalg.norm(d0, axis=1) * np.linalg.norm(d2, axis=1)
        feasible = denom > 1e-12 * np.maximum(scale, 1e-300)

        if not np.any(feasible):
            # Only reachable through numerical noise: fall back to dropping
            # the vertex spanning the smallest triangle.
            tri_area = 0.5 * np.abs(cross_d0_e)
            i = int(np.argmin(tri_area))
            p = np.delete(p, i, axis=0)
            continue

        with np.errstate(divide="ignore", invalid="ignore"):
            t = np.where(feasible, cross_e_d2 / denom, np.inf)
        added_area = np.where(feasible, 0.5 * t * cross_d0_e, np.inf)

        i = int(np.argmin(added_area))
        apex = p[i] + t[i] * d0[i]

        # Replace p[i] and p[i+1] by the apex
        q = np.roll(p, -i, axis=0)
        p = np.vstack([apex[None, :], q[2:]])

    return p
