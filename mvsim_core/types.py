"""
State and Configuration Structures
==================================
Immutable configuration is stored in Flax struct dataclasses so it can be
passed straight into jitted kernels. Wheel spin state and vehicle kinematics
are owned by the (external) simulation loop and stay mutable.

Vehicle local frame: +X forward, +Y left, yaw counter-clockwise.
Wheel order follows the vehicle definition files:
    [0] rear-left, [1] rear-right, [2] front-left, [3] front-right
"""

from __future__ import annotations
import enum
from dataclasses import dataclass, fields
from typing import Any, List, Mapping, Optional, Tuple

import jax.numpy as jnp
import flax.struct as struct

from .constants import (
    GRAVITY, DT, CG_HEIGHT, NUM_WHEELS,
    FRICTION_C_S, FRICTION_C_ALPHA, FRICTION_SLIP_SAT, FRICTION_SIDESLIP_SAT,
    FRICTION_C_S_ALPHA, FRICTION_C_ALPHA_S,
    WHEEL_DEFAULT_X, WHEEL_DEFAULT_Y, WHEEL_DEFAULT_YAW,
    WHEEL_DEFAULT_DIAMETER, WHEEL_DEFAULT_WIDTH, WHEEL_DEFAULT_MASS,
)
from .errors import InvalidWheelIndexError


# =============================================================================
# Enumerations
# =============================================================================


class CellState(enum.IntEnum):
    """
    Occupancy grid cell state.

    Values double as 8-bit gray levels so a grid can be dumped as an image.
    """
    UNDEFINED = 0x80
    OCCUPIED = 0x00
    FREE = 0xFF
    VISITED = 0x40


class WheelRole(enum.IntEnum):
    """Wheel index of a four-wheeled vehicle."""
    REAR_LEFT = 0
    REAR_RIGHT = 1
    FRONT_LEFT = 2
    FRONT_RIGHT = 3

    @classmethod
    def from_index(cls, index: int) -> "WheelRole":
        try:
            return cls(index)
        except ValueError:
            raise InvalidWheelIndexError(
                f"Invalid wheel index {index!r}: expected one of 0..{NUM_WHEELS - 1}"
            ) from None

    @property
    def is_front(self) -> bool:
        return self in (WheelRole.FRONT_LEFT, WheelRole.FRONT_RIGHT)


# =============================================================================
# Immutable Configuration (PyTrees)
# =============================================================================


@struct.dataclass
class EllipseFrictionParams:
    """
    Coefficients of the ellipse-curve tire friction model.

    Attributes:
        c_s: Longitudinal force coefficient (per unit load and slip)
        c_alpha: Lateral force coefficient (per unit load and radian)
        slip_sat: Slip ratio beyond which longitudinal force saturates
        sideslip_sat: Sideslip angle (rad) beyond which lateral force saturates
        c_s_alpha: Coupling of sideslip into the longitudinal force
        c_alpha_s: Coupling of slip ratio into the lateral force
        cg_height: Height of the center of gravity over the ground (m)
    """
    c_s: float = FRICTION_C_S
    c_alpha: float = FRICTION_C_ALPHA
    slip_sat: float = FRICTION_SLIP_SAT
    sideslip_sat: float = FRICTION_SIDESLIP_SAT
    c_s_alpha: float = FRICTION_C_S_ALPHA
    c_alpha_s: float = FRICTION_C_ALPHA_S
    cg_height: float = CG_HEIGHT

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "EllipseFrictionParams":
        """
        Build parameters from a flat mapping (e.g. parsed from a config file).

        Missing keys keep their defaults; unknown keys are rejected.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise ValueError(f"Unknown friction parameter(s): {', '.join(unknown)}")
        params = cls(**{k: float(v) for k, v in mapping.items()})
        params.validate()
        return params

    def validate(self) -> None:
        if not self.slip_sat > 0.0:
            raise ValueError(f"slip_sat must be > 0, got {self.slip_sat}")
        if not self.sideslip_sat > 0.0:
            raise ValueError(f"sideslip_sat must be > 0, got {self.sideslip_sat}")
        if self.cg_height < 0.0:
            raise ValueError(f"cg_height must be >= 0, got {self.cg_height}")


@struct.dataclass
class AxleGeometry:
    """
    Wheel layout relative to the center of mass.

    Attributes:
        offsets: Wheel positions minus the center of mass. Shape: (4, 2)
        front_dist: Distance from the CoM to the front axle (a1)
        rear_dist: Distance from the CoM to the rear axle (a2)
        wheelbase: front_dist + rear_dist (l)
        front_track: Front axle width (Axf)
        rear_track: Rear axle width (Axr)
    """
    offsets: jnp.ndarray    # (4, 2)
    front_dist: float
    rear_dist: float
    wheelbase: float
    front_track: float
    rear_track: float


@struct.dataclass
class VehicleKinematics:
    """
    Snapshot of the chassis state for one friction evaluation.

    Attributes:
        mass: Chassis mass (kg)
        gravity: Gravity magnitude (m/s^2)
        vx, vy: Local linear velocity (m/s)
        omega: Yaw rate (rad/s)
        ax, ay: Local linear acceleration (m/s^2)
    """
    mass: float
    gravity: float
    vx: float
    vy: float
    omega: float
    ax: float
    ay: float


# =============================================================================
# Mutable State (owned by the simulation loop)
# =============================================================================


@dataclass
class Wheel:
    """
    A wheel: fixed geometry plus spin state.

    Geometry is configuration; only ``phi`` (spin angle, rad) and ``w``
    (spin rate, rad/s) change during simulation.
    """
    x: float = WHEEL_DEFAULT_X
    y: float = WHEEL_DEFAULT_Y
    yaw: float = WHEEL_DEFAULT_YAW
    diameter: float = WHEEL_DEFAULT_DIAMETER
    width: float = WHEEL_DEFAULT_WIDTH
    mass: float = WHEEL_DEFAULT_MASS
    Iyy: Optional[float] = None
    phi: float = 0.0
    w: float = 0.0

    def __post_init__(self):
        if self.Iyy is None:
            self.recalc_inertia()

    @property
    def radius(self) -> float:
        return 0.5 * self.diameter

    def recalc_inertia(self) -> None:
        # Solid disc spinning about its axle
        self.Iyy = self.mass * self.diameter * self.diameter / 8.0


@dataclass
class VehicleBody:
    """
    Chassis properties the friction model reads each step.

    ``velocity`` is (vx, vy, omega) and ``acceleration`` is (ax, ay), both in
    the vehicle local frame. The simulation loop updates them in place.
    """
    mass: float
    wheels: List[Wheel]
    center_of_mass: Tuple[float, float] = (0.0, 0.0)
    gravity: float = GRAVITY
    velocity: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    acceleration: Tuple[float, float] = (0.0, 0.0)

    def kinematics(self) -> VehicleKinematics:
        vx, vy, omega = self.velocity
        ax, ay = self.acceleration
        return VehicleKinematics(
            mass=float(self.mass), gravity=float(self.gravity),
            vx=float(vx), vy=float(vy), omega=float(omega),
            ax=float(ax), ay=float(ay),
        )


@dataclass
class FrictionInput:
    """Per-wheel input of one friction evaluation."""
    wheel_index: int
    motor_torque: float = 0.0
    dt: float = DT
