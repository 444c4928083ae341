"""
mvsim_core - 2.5D Collision Shapes and Tire Friction
=====================================================

Numerical core of a 2D multi-vehicle simulator:

- Shape reduction: an arbitrary 3D mesh becomes a convex planar contour
  plus a vertical extent, sized for a 2D rigid-body engine.
- Tire friction: a decoupled ellipse-curve model turning per-wheel
  kinematics and load into contact forces, jitted with JAX.

Quick Start:
    >>> from mvsim_core import Shape2p5
    >>>
    >>> shape = Shape2p5()
    >>> shape.build_init((-1.0, -1.0), (1.0, 1.0), num_cells=10)
    >>> shape.build_add_point((0.0, 0.0, 0.0))
    >>> contour = shape.get_contour()

    >>> from mvsim_core import Wheel, VehicleBody, EllipseCurveMethod, FrictionInput
    >>>
    >>> wheels = [Wheel(x=-1.0, y=0.8), Wheel(x=-1.0, y=-0.8),
    ...           Wheel(x=1.2, y=0.8), Wheel(x=1.2, y=-0.8)]
    >>> car = VehicleBody(mass=800.0, wheels=wheels, velocity=(5.0, 0.0, 0.0))
    >>> model = EllipseCurveMethod(car)
    >>> force = model.evaluate_friction(FrictionInput(wheel_index=0, motor_torque=10.0))
"""

from __future__ import annotations

# Type definitions
from .types import (
    CellState,
    WheelRole,
    EllipseFrictionParams,
    AxleGeometry,
    VehicleKinematics,
    Wheel,
    VehicleBody,
    FrictionInput,
)

# Errors
from .errors import (
    MvsimCoreError,
    EmptyShapeError,
    InvalidShapeError,
    GridBoundsError,
    GridStateError,
    InvalidWheelIndexError,
    InvalidVehicleGeometryError,
)

# Constants (for advanced users)
from .constants import (
    GRAVITY,
    DT,
    DEFAULT_GRID_CELLS,
    MAX_POLYGON_VERTICES,
)

# Math utilities
from .math_utils import (
    rotate_2d,
    inverse_rotate_2d,
    wrap_to_pi,
    heaviside,
    saturate,
    signed_area,
    convex_hull,
    prune_convex_polygon,
)

# Shape reduction
from .grid import (
    OccupancyGrid,
    flood_fill_exterior,
    trace_contour,
)
from .shape import (
    Shape2p5,
    shape_from_mesh,
    shape_from_points,
)

# Tire kernels (for customization)
from .physics import (
    TireForces,
    LOAD_TRANSFER_SIGNS,
    compute_axle_geometry,
    build_load_transfer_table,
    compute_vertical_load,
    compute_contact_long_velocity,
    compute_slip_ratio,
    compute_sideslip_angle,
    compute_ellipse_forces,
    ellipse_curve_tire,
)

# Friction models
from .friction import (
    FrictionBase,
    EllipseCurveMethod,
    FRICTION_MODELS,
    create_friction_model,
    integrate_wheel_spin,
)

__version__ = "0.1.0"
__all__ = [
    # Types
    "CellState",
    "WheelRole",
    "EllipseFrictionParams",
    "AxleGeometry",
    "VehicleKinematics",
    "Wheel",
    "VehicleBody",
    "FrictionInput",
    # Errors
    "MvsimCoreError",
    "EmptyShapeError",
    "InvalidShapeError",
    "GridBoundsError",
    "GridStateError",
    "InvalidWheelIndexError",
    "InvalidVehicleGeometryError",
    # Constants
    "GRAVITY",
    "DT",
    "DEFAULT_GRID_CELLS",
    "MAX_POLYGON_VERTICES",
    # Math
    "rotate_2d",
    "inverse_rotate_2d",
    "wrap_to_pi",
    "heaviside",
    "saturate",
    "signed_area",
    "convex_hull",
    "prune_convex_polygon",
    # Shape reduction
    "OccupancyGrid",
    "flood_fill_exterior",
    "trace_contour",
    "Shape2p5",
    "shape_from_mesh",
    "shape_from_points",
    # Tire kernels
    "TireForces",
    "LOAD_TRANSFER_SIGNS",
    "compute_axle_geometry",
    "build_load_transfer_table",
    "compute_vertical_load",
    "compute_contact_long_velocity",
    "compute_slip_ratio",
    "compute_sideslip_angle",
    "compute_ellipse_forces",
    "ellipse_curve_tire",
    # Friction models
    "FrictionBase",
    "EllipseCurveMethod",
    "FRICTION_MODELS",
    "create_friction_model",
    "integrate_wheel_spin",
]
