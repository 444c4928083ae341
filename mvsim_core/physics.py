"""
Tire Friction Kernels
=====================
Pure jax.numpy implementation of the ellipse-curve tire model.

The model is split in decoupled sub-problems, each feeding the next:
    1. Vertical load per wheel (static + dynamic load transfer)
    2. Longitudinal velocity of the tire contact point
    3. Longitudinal slip ratio
    4. Sideslip angle
    5. Longitudinal friction (reduced by sideslip)
    6. Lateral friction (reduced by slip)
    7. Rotation from the wheel frame to the vehicle frame

The spin-state update lives with the stateful model in friction.py; every
function here is side-effect free and can be jitted / vmapped over wheels.
"""

from __future__ import annotations
from typing import Dict, NamedTuple

import numpy as np
import jax
import jax.numpy as jnp
import flax.struct as struct

from .constants import NUM_WHEELS, SIDESLIP_MIN_SPEED
from .types import AxleGeometry, EllipseFrictionParams, VehicleKinematics, WheelRole
from .errors import InvalidVehicleGeometryError
from .math_utils import heaviside, saturate, finite_or_zero, rotate_2d


# =============================================================================
# VEHICLE GEOMETRY
# =============================================================================


def compute_axle_geometry(wheel_xy: np.ndarray, center_of_mass) -> AxleGeometry:
    """
    Derive wheelbase and track widths from the four wheel positions.

    Args:
        wheel_xy: Wheel positions in the vehicle frame, WheelRole order (4, 2)
        center_of_mass: Chassis center of mass (x, y)

    Returns:
        AxleGeometry

    Raises:
        InvalidVehicleGeometryError: Not four wheels, zero wheelbase or a
            zero-width axle.
    """
    wheel_xy = np.asarray(wheel_xy, dtype=np.float64)
    if wheel_xy.shape != (NUM_WHEELS, 2):
        raise InvalidVehicleGeometryError(
            f"Load transfer needs exactly {NUM_WHEELS} wheels, got {len(wheel_xy)}"
        )

    pos = wheel_xy - np.asarray(center_of_mass, dtype=np.float64)[None, :2]

    a1 = abs(pos[WheelRole.FRONT_RIGHT, 0])     # CoM to front axle
    a2 = abs(pos[WheelRole.REAR_LEFT, 0])       # CoM to rear axle
    l = a1 + a2
    axf = abs(pos[WheelRole.FRONT_LEFT, 1]) + abs(pos[WheelRole.FRONT_RIGHT, 1])
    axr = abs(pos[WheelRole.REAR_LEFT, 1]) + abs(pos[WheelRole.REAR_RIGHT, 1])

    if not l > 0.0:
        raise InvalidVehicleGeometryError("Wheelbase must be > 0")
    if not axf > 0.0:
        raise InvalidVehicleGeometryError("Front axle width must be > 0")
    if not axr > 0.0:
        raise InvalidVehicleGeometryError("Rear axle width must be > 0")

    return AxleGeometry(
        offsets=jnp.asarray(pos),
        front_dist=float(a1),
        rear_dist=float(a2),
        wheelbase=float(l),
        front_track=float(axf),
        rear_track=float(axr),
    )


# =============================================================================
# LOAD TRANSFER SIGN TABLE
# =============================================================================


class LoadTransferSigns(NamedTuple):
    """
    Sign convention of one wheel in the vertical load formula.

    Fz = m / (l * track * g)
         * (axle_dist * g + long_sign * h * (ax - w * vy))
         * (|y_lever| * g + lat_sign * h * (ay + w * vx))
    """
    front: bool             # front axle: uses front track, rear axle distance
    long_sign: float        # accelerating forward unloads the front axle
    lat_lever: WheelRole    # wheel whose |y| is the lateral lever arm
    lat_sign: float         # left wheels +, right wheels -


LOAD_TRANSFER_SIGNS: Dict[WheelRole, LoadTransferSigns] = {
    WheelRole.REAR_LEFT: LoadTransferSigns(False, +1.0, WheelRole.FRONT_LEFT, +1.0),
    WheelRole.REAR_RIGHT: LoadTransferSigns(False, +1.0, WheelRole.FRONT_RIGHT, -1.0),
    WheelRole.FRONT_LEFT: LoadTransferSigns(True, -1.0, WheelRole.REAR_LEFT, +1.0),
    WheelRole.FRONT_RIGHT: LoadTransferSigns(True, -1.0, WheelRole.REAR_RIGHT, -1.0),
}


@struct.dataclass
class LoadTransferTable:
    """
    Per-wheel coefficients of the vertical load formula, indexed by WheelRole.

    Attributes:
        wheelbase: l (scalar)
        axle_dist: Distance from CoM to the opposite axle. Shape: (4,)
        track: Width of the wheel's own axle. Shape: (4,)
        long_sign: Longitudinal transfer sign. Shape: (4,)
        lat_lever: Lateral lever arm |y|. Shape: (4,)
        lat_sign: Lateral transfer sign. Shape: (4,)
    """
    wheelbase: float
    axle_dist: jnp.ndarray
    track: jnp.ndarray
    long_sign: jnp.ndarray
    lat_lever: jnp.ndarray
    lat_sign: jnp.ndarray


def build_load_transfer_table(geom: AxleGeometry) -> LoadTransferTable:
    roles = sorted(LOAD_TRANSFER_SIGNS)
    offsets = np.asarray(geom.offsets)

    axle_dist, track, long_sign, lat_lever, lat_sign = [], [], [], [], []
    for role in roles:
        signs = LOAD_TRANSFER_SIGNS[role]
        axle_dist.append(geom.rear_dist if signs.front else geom.front_dist)
        track.append(geom.front_track if signs.front else geom.rear_track)
        long_sign.append(signs.long_sign)
        lat_lever.append(abs(offsets[signs.lat_lever, 1]))
        lat_sign.append(signs.lat_sign)

    return LoadTransferTable(
        wheelbase=geom.wheelbase,
        axle_dist=jnp.array(axle_dist),
        track=jnp.array(track),
        long_sign=jnp.array(long_sign),
        lat_lever=jnp.array(lat_lever),
        lat_sign=jnp.array(lat_sign),
    )


# =============================================================================
# DECOUPLED SUB-PROBLEMS
# =============================================================================


def compute_vertical_load(
    table: LoadTransferTable,
    wheel_index: jnp.ndarray,
    kin: VehicleKinematics,
    cg_height: float,
) -> jnp.ndarray:
    """
    Vertical load on one wheel, in Newtons.

    Each factor of the formula is clamped at zero: a negative factor means
    the wheel lifts off and has no grip left.

    Args:
        table: Load transfer coefficients
        wheel_index: WheelRole index (already validated)
        kin: Chassis kinematics
        cg_height: Center of gravity height

    Returns:
        Fz >= 0
    """
    g = kin.gravity
    h = cg_height
    ax_eff = kin.ax - kin.omega * kin.vy
    ay_eff = kin.ay + kin.omega * kin.vx

    long_term = table.axle_dist[wheel_index] * g + table.long_sign[wheel_index] * h * ax_eff
    lat_term = table.lat_lever[wheel_index] * g + table.lat_sign[wheel_index] * h * ay_eff

    scale = kin.mass / (table.wheelbase * table.track[wheel_index] * g)
    fz = scale * jnp.maximum(long_term, 0.0) * jnp.maximum(lat_term, 0.0)
    return finite_or_zero(fz)


def compute_contact_long_velocity(
    offset: jnp.ndarray,
    steer: jnp.ndarray,
    kin: VehicleKinematics,
) -> jnp.ndarray:
    """
    Longitudinal velocity of the tire contact point, in the wheel frame.

    vxT = (vx - w * y) * cos(delta) + (vy + w * x) * sin(delta)
    """
    x, y = offset[..., 0], offset[..., 1]
    return (kin.vx - kin.omega * y) * jnp.cos(steer) + (kin.vy + kin.omega * x) * jnp.sin(steer)


def compute_slip_ratio(wheel_speed: jnp.ndarray, vxT: jnp.ndarray) -> jnp.ndarray:
    """
    Longitudinal slip ratio.

    s = (R*w - vxT) / (|R*w| * H(|R*w|, |vxT|) + |vxT| * (1 - H(|R*w|, |vxT|)))

    The Heaviside selector normalizes by whichever speed magnitude is larger,
    so the sign of the slip follows the numerator when reversing too. Both
    speeds zero gives 0/0, which is clamped to zero slip.

    Args:
        wheel_speed: Wheel surface speed R * w
        vxT: Contact point longitudinal velocity

    Returns:
        Finite slip ratio
    """
    num = wheel_speed - vxT
    ws_abs = jnp.abs(wheel_speed)
    vx_abs = jnp.abs(vxT)
    wheel_faster = heaviside(ws_abs, vx_abs)
    den = ws_abs * wheel_faster + vx_abs * (1.0 - wheel_faster)
    return finite_or_zero(num / den)


def compute_sideslip_angle(
    offset: jnp.ndarray,
    steer: jnp.ndarray,
    kin: VehicleKinematics,
) -> jnp.ndarray:
    """
    Angle between the contact point velocity and the wheel heading.

    A contact point at rest has no direction of motion: sideslip is zero.
    """
    x, y = offset[..., 0], offset[..., 1]
    v_lat = kin.vy + x * kin.omega
    v_long = kin.vx - y * kin.omega
    af = jnp.arctan2(v_lat, v_long) - steer
    moving = jnp.hypot(v_lat, v_long) > SIDESLIP_MIN_SPEED
    return finite_or_zero(jnp.where(moving, af, 0.0))


def compute_ellipse_forces(
    fz: jnp.ndarray,
    slip: jnp.ndarray,
    sideslip: jnp.ndarray,
    params: EllipseFrictionParams,
) -> tuple[jnp.ndarray, jnp.ndarray]:
    """
    Friction-ellipse coupled forces in the wheel frame.

    Fx =  Fz * Cs * sat(s, ss) * sqrt(1 - Csa * (sat(af, afs) / afs)^2)
    Fy = -Fz * Ca * sat(af, afs) * sqrt(1 - Cas * (sat(s, ss) / ss)^2)

    Returns:
        (Fx, Fy) longitudinal and lateral friction
    """
    s_sat = saturate(slip, params.slip_sat)
    af_sat = saturate(sideslip, params.sideslip_sat)

    long_reduction = jnp.sqrt(jnp.maximum(
        1.0 - params.c_s_alpha * (af_sat / params.sideslip_sat) ** 2, 0.0))
    lat_reduction = jnp.sqrt(jnp.maximum(
        1.0 - params.c_alpha_s * (s_sat / params.slip_sat) ** 2, 0.0))

    fx = fz * params.c_s * s_sat * long_reduction
    fy = -fz * params.c_alpha * af_sat * lat_reduction
    return finite_or_zero(fx), finite_or_zero(fy)


# =============================================================================
# FULL PIPELINE
# =============================================================================


@struct.dataclass
class TireForces:
    """
    Result of one tire evaluation.

    Attributes:
        force: Friction force in the vehicle frame [..., 2]
        force_wheel: (Fx, Fy) in the wheel frame [..., 2]
        fz: Vertical load [...]
        slip: Longitudinal slip ratio [...]
        sideslip: Sideslip angle [...]
    """
    force: jnp.ndarray
    force_wheel: jnp.ndarray
    fz: jnp.ndarray
    slip: jnp.ndarray
    sideslip: jnp.ndarray


def ellipse_curve_tire(
    wheel_index: jnp.ndarray,
    steer: jnp.ndarray,
    radius: jnp.ndarray,
    spin_rate: jnp.ndarray,
    table: LoadTransferTable,
    offsets: jnp.ndarray,
    kin: VehicleKinematics,
    params: EllipseFrictionParams,
) -> TireForces:
    """
    Evaluate the ellipse-curve model for one wheel.

    Args:
        wheel_index: WheelRole index (already validated)
        steer: Wheel yaw relative to the chassis (rad)
        radius: Wheel radius (m)
        spin_rate: Wheel angular velocity (rad/s)
        table: Load transfer coefficients
        offsets: Wheel positions relative to the CoM (4, 2)
        kin: Chassis kinematics
        params: Friction coefficients

    Returns:
        TireForces
    """
    offset = offsets[wheel_index]

    # 1) Vertical load
    fz = compute_vertical_load(table, wheel_index, kin, params.cg_height)

    # 2) Contact point velocity
    vxT = compute_contact_long_velocity(offset, steer, kin)

    # 3) Longitudinal slip
    slip = compute_slip_ratio(radius * spin_rate, vxT)

    # 4) Sideslip angle
    sideslip = compute_sideslip_angle(offset, steer, kin)

    # 5-6) Coupled friction forces
    fx, fy = compute_ellipse_forces(fz, slip, sideslip, params)

    # 7) Wheel frame => vehicle local frame
    force_wheel = jnp.stack([fx, fy], axis=-1)
    force = rotate_2d(force_wheel, steer)

    return TireForces(
        force=force,
        force_wheel=force_wheel,
        fz=fz,
        slip=slip,
        sideslip=sideslip,
    )


ellipse_curve_tire_jit = jax.jit(ellipse_curve_tire)

# Batched over wheels: index/steer/radius/spin vary, chassis data is shared
ellipse_curve_tires = jax.jit(
    jax.vmap(ellipse_curve_tire, in_axes=(0, 0, 0, 0, None, None, None, None))
)
