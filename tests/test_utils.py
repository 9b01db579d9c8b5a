import math

import numpy as np
import pytest
import jax.numpy as jnp

from gradplant.transforms import (
    RigidTransform,
    rotation_from_axis_angle,
    shift_spatial_force,
    shift_spatial_velocity,
    skew,
)
from gradplant.utils import quaternion
from gradplant.utils.asserts import as_matrix3, as_vector3, assert_array


def test_normalize():
    rng = np.random.default_rng(0)
    quat = jnp.array(rng.standard_normal(4))
    norm = float(jnp.linalg.norm(quaternion.normalize(quat)))
    assert abs(norm - 1.0) < 1e-10


def test_quaternion_to_rotmat():
    # Rotation of pi radians about Y-axis.
    quat = quaternion.from_axis_angle(jnp.array([0.0, 1.0, 0.0]), math.pi)
    rotmat = jnp.array([[-1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, -1.0]])
    assert jnp.allclose(quaternion.quaternion_to_rotmat(quat), rotmat, atol=1e-12)


def test_quaternion_matches_axis_angle():
    rng = np.random.default_rng(3)
    axis = jnp.array(rng.standard_normal(3))
    axis = axis / jnp.linalg.norm(axis)
    angle = 0.7
    assert jnp.allclose(
        quaternion.quaternion_to_rotmat(quaternion.from_axis_angle(axis, angle)),
        rotation_from_axis_angle(axis, angle),
    )


def test_quaternion_multiply():
    # pi about Y + (-pi) about Y → identity.
    axis = jnp.array([0.0, 1.0, 0.0])
    q1 = quaternion.from_axis_angle(axis, math.pi)
    q2 = quaternion.from_axis_angle(axis, -math.pi)
    assert jnp.allclose(quaternion.multiply(q1, q2), quaternion.identity(), atol=1e-12)


def test_quaternion_rate_round_trip():
    rng = np.random.default_rng(1)
    q = quaternion.normalize(jnp.array(rng.standard_normal(4)))
    w = jnp.array([0.3, -1.2, 2.0])
    qdot = quaternion.angular_velocity_to_quaternion_rate(q, w)
    # A unit quaternion stays unit.
    assert abs(float(jnp.dot(q, qdot))) < 1e-12
    assert jnp.allclose(quaternion.quaternion_rate_to_angular_velocity(q, qdot), w)


def test_skew():
    a = jnp.array([1.0, 2.0, 3.0])
    b = jnp.array([-0.5, 0.25, 4.0])
    assert jnp.allclose(skew(a) @ b, jnp.cross(a, b))


def test_rigid_transform():
    X_AB = RigidTransform(
        rotation_from_axis_angle(jnp.array([0.0, 0.0, 1.0]), math.pi / 2),
        jnp.array([1.0, 0.0, 0.0]),
    )
    assert jnp.allclose(X_AB.transform_point(jnp.array([1.0, 0.0, 0.0])),
                        jnp.array([1.0, 1.0, 0.0]))
    X = X_AB @ X_AB.inverse()
    assert jnp.allclose(X.rotation, jnp.eye(3))
    assert jnp.allclose(X.translation, jnp.zeros(3))
    assert jnp.allclose(X_AB.matrix()[:3, 3], X_AB.translation)


def test_spatial_shifts():
    V = jnp.array([0.0, 0.0, 1.0, 1.0, 0.0, 0.0])
    # Spinning about z: a point at +x moves along +y.
    V_Q = shift_spatial_velocity(V, jnp.array([1.0, 0.0, 0.0]))
    assert jnp.allclose(V_Q, jnp.array([0.0, 0.0, 1.0, 1.0, 1.0, 0.0]))
    # A force along +y applied at +x has a +z moment about the origin.
    F = jnp.array([0.0, 0.0, 0.0, 0.0, 1.0, 0.0])
    F_o = shift_spatial_force(F, jnp.array([-1.0, 0.0, 0.0]))
    assert jnp.allclose(F_o, jnp.array([0.0, 0.0, 1.0, 0.0, 1.0, 0.0]))


def test_asserts():
    with pytest.raises(TypeError):
        assert_array([1.0, 2.0], "var")
    with pytest.raises(ValueError):
        as_vector3(jnp.zeros(4), "var")
    with pytest.raises(ValueError):
        as_matrix3(jnp.zeros(3), "var")
    assert as_vector3([1, 2, 3], "var").dtype == jnp.float64
