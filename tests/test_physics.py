"""
Test Suite for the Tire Friction Model
======================================
Unit tests for the saturation helpers, load transfer, slip kernels and the
stateful ellipse-curve friction model.
"""

from __future__ import annotations
import math

import numpy as np
import pytest
import jax.numpy as jnp

from mvsim_core import (
    Wheel,
    VehicleBody,
    FrictionInput,
    EllipseFrictionParams,
    WheelRole,
    EllipseCurveMethod,
    FRICTION_MODELS,
    create_friction_model,
    LOAD_TRANSFER_SIGNS,
    compute_slip_ratio,
    heaviside,
    saturate,
    rotate_2d,
    wrap_to_pi,
    InvalidWheelIndexError,
    InvalidVehicleGeometryError,
    MvsimCoreError,
    GRAVITY,
)


MASS = 1000.0
STATIC_REAR_LOAD = MASS * 1.5 * 0.8 * GRAVITY / (2.5 * 1.6)     # 2943 N
STATIC_FRONT_LOAD = MASS * 1.0 * 0.8 * GRAVITY / (2.5 * 1.6)    # 1962 N


def make_vehicle(velocity=(0.0, 0.0, 0.0), acceleration=(0.0, 0.0), mass=MASS) -> VehicleBody:
    """Car with 1.5 m from CoM to front axle, 1.0 m to rear axle and 1.6 m tracks."""
    wheels = [
        Wheel(x=-1.0, y=0.8),   # rear-left
        Wheel(x=-1.0, y=-0.8),  # rear-right
        Wheel(x=1.5, y=0.8),    # front-left
        Wheel(x=1.5, y=-0.8),   # front-right
    ]
    return VehicleBody(mass=mass, wheels=wheels, velocity=velocity, acceleration=acceleration)


def loads(model: EllipseCurveMethod) -> np.ndarray:
    return np.array([float(model.tire_forces(FrictionInput(i)).fz) for i in range(4)])


# =============================================================================
# Saturation helpers
# =============================================================================


def test_saturate():
    assert float(saturate(0.05, 0.1)) == pytest.approx(0.05)
    assert float(saturate(0.3, 0.1)) == pytest.approx(0.1)
    assert float(saturate(-0.3, 0.1)) == pytest.approx(-0.1)
    # Boundary belongs to the linear region
    assert float(saturate(0.1, 0.1)) == pytest.approx(0.1)
    assert float(saturate(-0.1, 0.1)) == pytest.approx(-0.1)


def test_heaviside():
    assert float(heaviside(1.0, 0.0)) == 1.0
    assert float(heaviside(0.0, 0.0)) == 0.0
    assert float(heaviside(-1.0, 0.0)) == 0.0


def test_slip_ratio():
    assert float(compute_slip_ratio(12.0, 10.0)) == pytest.approx(2.0 / 12.0, rel=1e-5)
    assert float(compute_slip_ratio(10.0, 12.0)) == pytest.approx(-2.0 / 12.0, rel=1e-5)
    assert float(compute_slip_ratio(2.0, 1.0)) == pytest.approx(0.5)
    assert float(compute_slip_ratio(1.0, 2.0)) == pytest.approx(-0.5)
    # Equal speeds, including standstill, give zero slip rather than NaN
    assert float(compute_slip_ratio(5.0, 5.0)) == 0.0
    assert float(compute_slip_ratio(0.0, 0.0)) == 0.0


def test_slip_ratio_when_reversing():
    # Wheel spinning backwards faster than the car reverses: negative slip
    assert float(compute_slip_ratio(-5.0, -3.0)) == pytest.approx(-0.4)
    # Wheel spinning backwards slower than the car reverses: positive slip
    assert float(compute_slip_ratio(-3.0, -5.0)) == pytest.approx(0.4)
    # Locked wheel while reversing brakes against the motion
    assert float(compute_slip_ratio(0.0, -5.0)) == pytest.approx(1.0)
    # Locked wheel while driving forward
    assert float(compute_slip_ratio(0.0, 5.0)) == pytest.approx(-1.0)


def test_locked_wheel_brakes_a_reversing_car():
    car = make_vehicle(velocity=(-5.0, 0.0, 0.0))
    model = EllipseCurveMethod(car)

    result = model.tire_forces(FrictionInput(wheel_index=0))

    assert float(result.slip) == pytest.approx(1.0)
    assert float(result.force[0]) > 0.0


def test_rotate_2d():
    v = rotate_2d(jnp.array([1.0, 0.0]), jnp.asarray(math.pi / 2))
    np.testing.assert_allclose(np.asarray(v), [0.0, 1.0], atol=1e-6)


def test_wrap_to_pi():
    assert wrap_to_pi(0.5) == pytest.approx(0.5)
    assert wrap_to_pi(1.5 * math.pi) == pytest.approx(-0.5 * math.pi)
    assert wrap_to_pi(-1.5 * math.pi) == pytest.approx(0.5 * math.pi)
    assert wrap_to_pi(math.pi) == pytest.approx(math.pi)
    assert wrap_to_pi(-math.pi) == pytest.approx(math.pi)


# =============================================================================
# Configuration
# =============================================================================


def test_default_wheel_inertia():
    wheel = Wheel()
    assert wheel.radius == pytest.approx(0.2)
    assert wheel.Iyy == pytest.approx(2.0 * 0.4 * 0.4 / 8.0)
    assert Wheel(Iyy=0.5).Iyy == 0.5


def test_params_from_mapping():
    params = EllipseFrictionParams.from_mapping({"c_s": 5, "cg_height": "0.3"})
    assert params.c_s == 5.0
    assert params.cg_height == pytest.approx(0.3)
    assert params.c_alpha == EllipseFrictionParams().c_alpha

    with pytest.raises(ValueError):
        EllipseFrictionParams.from_mapping({"grip": 1.0})
    with pytest.raises(ValueError):
        EllipseFrictionParams.from_mapping({"slip_sat": 0.0})


def test_wheel_role_lookup():
    assert WheelRole.from_index(0) is WheelRole.REAR_LEFT
    assert WheelRole.from_index(3).is_front
    assert not WheelRole.from_index(1).is_front
    with pytest.raises(InvalidWheelIndexError):
        WheelRole.from_index(4)


def test_invalid_wheel_index_rejected():
    model = EllipseCurveMethod(make_vehicle())
    for bad in (4, -1):
        with pytest.raises(InvalidWheelIndexError):
            model.evaluate_friction(FrictionInput(wheel_index=bad))
    # Still catchable as a plain ValueError / package error
    with pytest.raises(ValueError):
        model.evaluate_friction(FrictionInput(wheel_index=7))
    with pytest.raises(MvsimCoreError):
        model.tire_forces(FrictionInput(wheel_index=7))


def test_degenerate_geometry_rejected():
    flat = make_vehicle()
    for w in flat.wheels:
        w.x = 0.0
    with pytest.raises(InvalidVehicleGeometryError):
        EllipseCurveMethod(flat)

    narrow = make_vehicle()
    narrow.wheels[2].y = 0.0
    narrow.wheels[3].y = 0.0
    with pytest.raises(InvalidVehicleGeometryError):
        EllipseCurveMethod(narrow)

    three_wheels = make_vehicle()
    three_wheels.wheels.pop()
    with pytest.raises(InvalidVehicleGeometryError):
        EllipseCurveMethod(three_wheels)

    with pytest.raises(InvalidVehicleGeometryError):
        EllipseCurveMethod(make_vehicle(mass=0.0))

    no_gravity = make_vehicle()
    no_gravity.gravity = 0.0
    with pytest.raises(InvalidVehicleGeometryError):
        EllipseCurveMethod(no_gravity)


def test_massless_wheel_rejected():
    car = make_vehicle()
    car.wheels[1] = Wheel(x=-1.0, y=-0.8, mass=0.0)
    assert car.wheels[1].Iyy == 0.0

    with pytest.raises(InvalidVehicleGeometryError):
        EllipseCurveMethod(car)


def test_friction_model_factory():
    car = make_vehicle()
    assert isinstance(create_friction_model("ellipse", car), EllipseCurveMethod)
    assert "EllipseCurveMethod" in FRICTION_MODELS

    params = EllipseFrictionParams(c_s=3.0)
    assert create_friction_model("EllipseCurveMethod", car, params).params.c_s == 3.0

    with pytest.raises(ValueError):
        create_friction_model("pacejka", car)


# =============================================================================
# Vertical load
# =============================================================================


def test_geometry_from_wheels():
    geom = EllipseCurveMethod(make_vehicle()).geometry
    assert geom.front_dist == pytest.approx(1.5)
    assert geom.rear_dist == pytest.approx(1.0)
    assert geom.wheelbase == pytest.approx(2.5)
    assert geom.front_track == pytest.approx(1.6)
    assert geom.rear_track == pytest.approx(1.6)


def test_static_load_distribution():
    fz = loads(EllipseCurveMethod(make_vehicle()))

    np.testing.assert_allclose(fz, [STATIC_REAR_LOAD, STATIC_REAR_LOAD,
                                    STATIC_FRONT_LOAD, STATIC_FRONT_LOAD], rtol=1e-5)
    assert fz.sum() == pytest.approx(MASS * GRAVITY, rel=1e-5)


def test_longitudinal_load_transfer():
    fz = loads(EllipseCurveMethod(make_vehicle(acceleration=(2.0, 0.0))))

    # Accelerating forward moves load onto the rear axle
    assert fz[WheelRole.REAR_LEFT] > STATIC_REAR_LOAD
    assert fz[WheelRole.FRONT_LEFT] < STATIC_FRONT_LOAD
    assert fz.sum() == pytest.approx(MASS * GRAVITY, rel=1e-4)


def test_lateral_load_transfer_follows_sign_table():
    fz = loads(EllipseCurveMethod(make_vehicle(acceleration=(0.0, 2.0))))

    for role, signs in LOAD_TRANSFER_SIGNS.items():
        static = STATIC_FRONT_LOAD if role.is_front else STATIC_REAR_LOAD
        if signs.lat_sign > 0:
            assert fz[role] > static
        else:
            assert fz[role] < static
    assert fz.sum() == pytest.approx(MASS * GRAVITY, rel=1e-4)


def test_sign_table_layout():
    assert set(LOAD_TRANSFER_SIGNS) == set(WheelRole)
    for role, signs in LOAD_TRANSFER_SIGNS.items():
        assert signs.front == role.is_front
        assert signs.long_sign == (-1.0 if role.is_front else 1.0)
        # Lateral lever is taken from the wheel on the same side, other axle
        assert signs.lat_lever.is_front != role.is_front
        assert signs.lat_sign == LOAD_TRANSFER_SIGNS[signs.lat_lever].lat_sign


def test_wheel_lift_off_has_no_load():
    # Braking hard enough to unload the rear axle completely
    fz = loads(EllipseCurveMethod(make_vehicle(acceleration=(-100.0, 0.0))))

    assert fz[WheelRole.REAR_LEFT] == 0.0
    assert fz[WheelRole.REAR_RIGHT] == 0.0
    assert np.all(fz >= 0.0)


# =============================================================================
# Friction forces
# =============================================================================


def test_stationary_vehicle_has_no_friction():
    model = EllipseCurveMethod(make_vehicle())
    for i in range(4):
        force = model.evaluate_friction(FrictionInput(wheel_index=i))
        assert force.shape == (2,)
        assert np.all(np.isfinite(force))
        np.testing.assert_allclose(force, [0.0, 0.0], atol=1e-6)


def test_stationary_vehicle_with_steered_wheels_has_no_friction():
    car = make_vehicle()
    car.wheels[2].yaw = 0.3
    car.wheels[3].yaw = -0.3
    model = EllipseCurveMethod(car)

    for i in (2, 3):
        result = model.tire_forces(FrictionInput(wheel_index=i))
        assert float(result.sideslip) == 0.0
        force = model.evaluate_friction(FrictionInput(wheel_index=i))
        np.testing.assert_allclose(force, [0.0, 0.0], atol=1e-6)


def test_free_rolling_wheel_has_no_friction():
    car = make_vehicle(velocity=(10.0, 0.0, 0.0))
    car.wheels[0].w = 10.0 / car.wheels[0].radius
    model = EllipseCurveMethod(car)

    result = model.tire_forces(FrictionInput(wheel_index=0))

    assert abs(float(result.slip)) < 1e-5
    assert np.all(np.abs(np.asarray(result.force)) < 1.0)


def test_drive_slip_saturates_longitudinal_force():
    car = make_vehicle(velocity=(10.0, 0.0, 0.0))
    car.wheels[0].w = 60.0  # surface speed 12 m/s
    model = EllipseCurveMethod(car)

    result = model.tire_forces(FrictionInput(wheel_index=0))
    fz = float(result.fz)

    assert float(result.slip) == pytest.approx(2.0 / 12.0, rel=1e-4)
    assert float(result.force[0]) == pytest.approx(0.75 * fz, rel=1e-4)
    assert float(result.force[1]) == pytest.approx(0.0, abs=1e-3)


def test_braking_slip_is_negative():
    car = make_vehicle(velocity=(10.0, 0.0, 0.0))
    car.wheels[1].w = 40.0  # surface speed 8 m/s
    model = EllipseCurveMethod(car)

    result = model.tire_forces(FrictionInput(wheel_index=1))

    assert float(result.slip) == pytest.approx(-0.2, rel=1e-4)
    assert float(result.force[0]) < 0.0


def test_sideslip_produces_opposing_lateral_force():
    car = make_vehicle(velocity=(10.0, 0.5, 0.0))
    car.wheels[0].w = 10.0 / car.wheels[0].radius
    model = EllipseCurveMethod(car)

    result = model.tire_forces(FrictionInput(wheel_index=0))
    af = math.atan2(0.5, 10.0)

    assert float(result.sideslip) == pytest.approx(af, rel=1e-4)
    assert float(result.force[1]) == pytest.approx(-STATIC_REAR_LOAD * 8.5 * af, rel=1e-3)


def test_steered_wheel_force_is_rotated_into_vehicle_frame():
    car = make_vehicle(velocity=(10.0, 0.0, 0.0))
    car.wheels[2].yaw = 0.3
    car.wheels[2].w = 55.0
    model = EllipseCurveMethod(car)

    result = model.tire_forces(FrictionInput(wheel_index=2))

    # Velocity along the chassis, wheel turned left: negative sideslip
    assert float(result.sideslip) == pytest.approx(-0.3, rel=1e-4)
    assert float(result.force_wheel[1]) > 0.0

    expected = rotate_2d(result.force_wheel, jnp.asarray(0.3))
    np.testing.assert_allclose(np.asarray(result.force), np.asarray(expected), rtol=1e-5, atol=1e-3)


def test_yaw_rate_changes_contact_sideslip():
    car = make_vehicle(velocity=(10.0, 0.0, 1.0))
    for w in car.wheels:
        w.w = 10.0 / w.radius
    model = EllipseCurveMethod(car)

    # Turning left: rear contacts slide right, front contacts slide left
    rear = model.tire_forces(FrictionInput(wheel_index=WheelRole.REAR_LEFT))
    front = model.tire_forces(FrictionInput(wheel_index=WheelRole.FRONT_LEFT))

    assert float(rear.sideslip) == pytest.approx(math.atan2(-1.0, 10.0 - 0.8), rel=1e-4)
    assert float(front.sideslip) == pytest.approx(math.atan2(1.5, 10.0 - 0.8), rel=1e-4)
    assert float(rear.force[1]) > 0.0
    assert float(front.force[1]) < 0.0


# =============================================================================
# Spin integration
# =============================================================================


def test_spin_update_is_explicit_euler():
    car = make_vehicle()
    wheel = car.wheels[0]
    wheel.w = 1.5
    model = EllipseCurveMethod(car, EllipseFrictionParams(c_s=0.0))

    model.evaluate_friction(FrictionInput(wheel_index=0, motor_torque=20.0, dt=0.01))

    assert wheel.w == pytest.approx(1.5 + 20.0 / wheel.Iyy * 0.01)
    assert wheel.phi == pytest.approx(wrap_to_pi(wheel.w * 0.01))


def test_friction_slows_a_spinning_wheel():
    car = make_vehicle(velocity=(10.0, 0.0, 0.0))
    car.wheels[0].w = 60.0
    model = EllipseCurveMethod(car)

    model.evaluate_friction(FrictionInput(wheel_index=0, dt=0.001))

    assert car.wheels[0].w < 60.0


def test_spin_angle_stays_wrapped():
    car = make_vehicle(velocity=(10.0, 0.0, 0.0))
    car.wheels[3].w = 50.0
    model = EllipseCurveMethod(car)

    for _ in range(200):
        model.evaluate_friction(FrictionInput(wheel_index=3, dt=0.01))
        assert -math.pi < car.wheels[3].phi <= math.pi


def test_batched_vehicle_matches_single_wheels():
    torques = [15.0, 15.0, -5.0, 0.0]

    car_a = make_vehicle(velocity=(8.0, 0.3, 0.2), acceleration=(1.0, -0.5))
    car_b = make_vehicle(velocity=(8.0, 0.3, 0.2), acceleration=(1.0, -0.5))
    for car in (car_a, car_b):
        car.wheels[2].yaw = 0.1
        car.wheels[3].yaw = 0.1
        for i, w in enumerate(car.wheels):
            w.w = 38.0 + i

    batched = EllipseCurveMethod(car_a).evaluate_vehicle(torques, dt=0.005)
    single_model = EllipseCurveMethod(car_b)
    single = np.stack([
        single_model.evaluate_friction(FrictionInput(i, torques[i], 0.005)) for i in range(4)
    ])

    assert batched.shape == (4, 2)
    np.testing.assert_allclose(batched, single, rtol=1e-4, atol=1e-2)
    for wa, wb in zip(car_a.wheels, car_b.wheels):
        assert wa.w == pytest.approx(wb.w, rel=1e-5)


def test_batched_vehicle_needs_four_torques():
    model = EllipseCurveMethod(make_vehicle())
    with pytest.raises(ValueError):
        model.evaluate_vehicle([1.0, 2.0], dt=0.005)


# =============================================================================
# Manual runner
# =============================================================================


def run_all_tests():
    """Drive a car for one second and print the per-wheel state."""
    print("=" * 70)
    print("Ellipse-Curve Tire Friction")
    print("=" * 70)

    car = make_vehicle(velocity=(5.0, 0.0, 0.0))
    for w in car.wheels:
        w.w = 5.0 / w.radius
    model = EllipseCurveMethod(car)

    print(f"  Axles: a1={model.geometry.front_dist:.3f} a2={model.geometry.rear_dist:.3f} "
          f"l={model.geometry.wheelbase:.3f}")
    print(f"  Static loads: {loads(model)}")

    torques = [30.0, 30.0, 0.0, 0.0]
    dt = 0.005
    for step in range(200):
        forces = model.evaluate_vehicle(torques, dt)
        if step % 50 == 0:
            spins = ", ".join(f"{w.w:7.2f}" for w in car.wheels)
            print(f"  step {step:3d}: Fx_total={forces[:, 0].sum():9.2f} N  w=[{spins}]")

    print("\n" + "=" * 70)
    print("Done")
    print("=" * 70)


if __name__ == "__main__":
    run_all_tests()
