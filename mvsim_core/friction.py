"""
Friction Models
===============
Stateful wrappers around the tire kernels in physics.py.

A friction model is bound to one vehicle. Each evaluation reads the
chassis state, computes the tire force of one wheel, integrates that
wheel's spin state forward by dt (explicit Euler) and returns the force in
the vehicle local frame.
"""

from __future__ import annotations
import abc
from typing import Callable, Dict, Optional, Sequence

import numpy as np
import jax.numpy as jnp

from .constants import NUM_WHEELS
from .types import EllipseFrictionParams, FrictionInput, VehicleBody, Wheel, WheelRole
from .errors import InvalidVehicleGeometryError
from .math_utils import wrap_to_pi
from .physics import (
    TireForces,
    compute_axle_geometry,
    build_load_transfer_table,
    ellipse_curve_tire_jit,
    ellipse_curve_tires,
)


def integrate_wheel_spin(wheel: Wheel, motor_torque: float, long_friction: float,
                         dt: float) -> float:
    """
    Advance a wheel's spin state by one step, in place.

    alpha = (T - R * Fx) / Iyy
    w    <- w + alpha * dt
    phi  <- wrap(phi + w * dt)

    Returns:
        The angular acceleration applied
    """
    alpha = (motor_torque - wheel.radius * long_friction) / wheel.Iyy
    wheel.w = wheel.w + alpha * dt
    wheel.phi = wrap_to_pi(wheel.phi + wheel.w * dt)
    return alpha


class FrictionBase(abc.ABC):
    """Common interface of the tire friction models."""

    def __init__(self, vehicle: VehicleBody):
        self.vehicle = vehicle

    @abc.abstractmethod
    def evaluate_friction(self, inp: FrictionInput) -> np.ndarray:
        """
        Friction force of one wheel, in the vehicle local frame (N).

        Side effect: updates the spin state of ``vehicle.wheels[inp.wheel_index]``.
        """


class EllipseCurveMethod(FrictionBase):
    """
    Decoupled ellipse-curve tire model with load transfer.

    Coefficients are owned by the instance; the vehicle geometry is
    validated once, here.
    """

    def __init__(self, vehicle: VehicleBody, params: Optional[EllipseFrictionParams] = None):
        super().__init__(vehicle)
        self.params = params if params is not None else EllipseFrictionParams()
        self.params.validate()

        if not vehicle.mass > 0.0:
            raise InvalidVehicleGeometryError(f"Vehicle mass must be > 0, got {vehicle.mass}")
        if not vehicle.gravity > 0.0:
            raise InvalidVehicleGeometryError(f"Gravity must be > 0, got {vehicle.gravity}")
        for i, wheel in enumerate(vehicle.wheels):
            if wheel.Iyy is None or not wheel.Iyy > 0.0:
                raise InvalidVehicleGeometryError(
                    f"Wheel {i} inertia Iyy must be > 0, got {wheel.Iyy}"
                )

        wheel_xy = np.array([(w.x, w.y) for w in vehicle.wheels], dtype=np.float64).reshape(-1, 2)
        self.geometry = compute_axle_geometry(wheel_xy, vehicle.center_of_mass)
        self.load_table = build_load_transfer_table(self.geometry)

    def tire_forces(self, inp: FrictionInput) -> TireForces:
        """Run the kernel for one wheel without touching its spin state."""
        role = WheelRole.from_index(inp.wheel_index)
        wheel = self.vehicle.wheels[role]
        return ellipse_curve_tire_jit(
            jnp.asarray(int(role)),
            jnp.asarray(wheel.yaw),
            jnp.asarray(wheel.radius),
            jnp.asarray(wheel.w),
            self.load_table,
            self.geometry.offsets,
            self.vehicle.kinematics(),
            self.params,
        )

    def evaluate_friction(self, inp: FrictionInput) -> np.ndarray:
        role = WheelRole.from_index(inp.wheel_index)
        result = self.tire_forces(inp)

        # Recalc wheel angular velocity with the actual longitudinal friction
        wheel = self.vehicle.wheels[role]
        integrate_wheel_spin(wheel, float(inp.motor_torque), float(result.force_wheel[0]), inp.dt)

        return np.asarray(result.force, dtype=np.float64)

    def evaluate_vehicle(self, motor_torques: Sequence[float], dt: float) -> np.ndarray:
        """
        Evaluate all four wheels in one batched kernel call.

        Args:
            motor_torques: Drive torque per wheel, WheelRole order (4,)
            dt: Timestep

        Returns:
            Per-wheel friction forces in the vehicle frame (4, 2)
        """
        torques = np.asarray(motor_torques, dtype=np.float64).reshape(-1)
        if torques.shape != (NUM_WHEELS,):
            raise ValueError(f"Expected {NUM_WHEELS} motor torques, got {torques.shape[0]}")

        wheels = self.vehicle.wheels
        result = ellipse_curve_tires(
            jnp.arange(NUM_WHEELS),
            jnp.array([w.yaw for w in wheels]),
            jnp.array([w.radius for w in wheels]),
            jnp.array([w.w for w in wheels]),
            self.load_table,
            self.geometry.offsets,
            self.vehicle.kinematics(),
            self.params,
        )

        long_friction = np.asarray(result.force_wheel[:, 0], dtype=np.float64)
        for wheel, torque, fx in zip(wheels, torques, long_friction):
            integrate_wheel_spin(wheel, float(torque), float(fx), dt)

        return np.asarray(result.force, dtype=np.float64)


# =============================================================================
# REGISTRY
# =============================================================================


FRICTION_MODELS: Dict[str, Callable[..., FrictionBase]] = {
    "ellipse": EllipseCurveMethod,
    "EllipseCurveMethod": EllipseCurveMethod,
}


def create_friction_model(name: str, vehicle: VehicleBody,
                          params: Optional[EllipseFrictionParams] = None) -> FrictionBase:
    """Instantiate a registered friction model by name."""
    try:
        factory = FRICTION_MODELS[name]
    except KeyError:
        raise ValueError(
            f"Unknown friction model {name!r}; available: {', '.join(sorted(FRICTION_MODELS))}"
        ) from None
    return factory(vehicle, params)
