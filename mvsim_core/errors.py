"""
Error Taxonomy
==============
Structural errors raised by the shape reducer and the friction model.

Numeric degeneracies (NaN slip, zero-speed division) are never raised:
the kernels clamp them to zero and carry on.
"""

from __future__ import annotations


class MvsimCoreError(Exception):
    """Base class for every error raised by mvsim_core."""


# =============================================================================
# Shape Reduction
# =============================================================================


class EmptyShapeError(MvsimCoreError):
    """No occupied geometry to build a contour or hull from."""


class InvalidShapeError(MvsimCoreError):
    """Operation on a shape that has no contour (never built, or empty)."""


class GridBoundsError(MvsimCoreError):
    """A point was added outside the occupancy grid."""


class GridStateError(MvsimCoreError):
    """Grid used before build_init, or flood fill seeded on a non-empty cell."""


# =============================================================================
# Tire Friction
# =============================================================================


class InvalidWheelIndexError(MvsimCoreError, ValueError):
    """Wheel index outside the four known wheel roles."""


class InvalidVehicleGeometryError(MvsimCoreError, ValueError):
    """Vehicle geometry cannot support load transfer (zero wheelbase, ...)."""
