import jax.numpy as jnp


def normalize(quaternion):
    r"""Normalizes a quaternion to unit norm.

    Args:
        quaternion (jnp.ndarray): Quaternion to normalize (shape: :math:`(4)`)
            (Assumes (r, i, j, k) convention, with :math:`r` being the scalar).

    Returns:
        (jnp.ndarray): Normalized quaternion (shape: :math:`(4)`).
    """
    return quaternion / jnp.linalg.norm(quaternion)


def identity(dtype=float):
    r"""Returns the identity quaternion (1, 0, 0, 0). """
    return jnp.array([1.0, 0.0, 0.0, 0.0], dtype=dtype)


def conjugate(quaternion):
    r"""Returns the conjugate (the inverse, for unit quaternions). """
    return quaternion * jnp.array([1.0, -1.0, -1.0, -1.0])


def quaternion_to_rotmat(quaternion):
    r"""Converts a quaternion to a :math:`3 \times 3` rotation matrix.

    Args:
        quaternion (jnp.ndarray): Quaternion to convert (shape: :math:`(4)`)
            (Assumes (r, i, j, k) convention, with :math:`r` being the scalar).

    Returns:
        (jnp.ndarray): rotation matrix (shape: :math:`(3, 3)`).
    """
    r = quaternion[0]
    i = quaternion[1]
    j = quaternion[2]
    k = quaternion[3]
    twoisq = 2 * i * i
    twojsq = 2 * j * j
    twoksq = 2 * k * k
    twoij = 2 * i * j
    twoik = 2 * i * k
    twojk = 2 * j * k
    twori = 2 * r * i
    tworj = 2 * r * j
    twork = 2 * r * k
    rotmat = jnp.array([
        [1 - twojsq - twoksq, twoij - twork,        twoik + tworj],
        [twoij + twork,        1 - twoisq - twoksq,  twojk - twori],
        [twoik - tworj,        twojk + twori,         1 - twoisq - twojsq],
    ])
    return rotmat


def multiply(q1, q2):
    r"""Multiply two quaternions `q1`, `q2`.

    Args:
        q1 (jnp.ndarray): First quaternion (shape: :math:`(4)`)
            (Assumes (r, i, j, k) convention, with :math:`r` being the scalar).
        q2 (jnp.ndarray): Second quaternion (shape: :math:`(4)`)
            (Assumes (r, i, j, k) convention, with :math:`r` being the scalar).

    Returns:
        (jnp.ndarray): Quaternion product (shape: :math:`(4)`)
            (Assumes (r, i, j, k) convention, with :math:`r` being the scalar).
    """
    r1 = q1[0]
    v1 = q1[1:]
    r2 = q2[0]
    v2 = q2[1:]
    return jnp.concatenate(
        [
            (r1 * r2 - jnp.dot(v1, v2)).reshape(1),
            r1 * v2 + r2 * v1 + jnp.cross(v1, v2),
        ],
        axis=0,
    )


def from_axis_angle(axis, angle):
    r"""Quaternion for a rotation of `angle` radians about the unit `axis`. """
    halfangle = 0.5 * angle
    return jnp.concatenate([jnp.cos(halfangle).reshape(1), jnp.sin(halfangle) * axis])


def angular_velocity_to_quaternion_rate(quaternion, angular_velocity):
    r"""Time-derivative of `quaternion` given an angular velocity expressed in
    the fixed (space) frame.

    :math:`\dot{q}(t) = 0.5 \omega(t) \circ q(t)`, where :math:`\circ` denotes
    quaternion multiplication and :math:`\omega(t)` is the angular velocity
    converted to a quaternion (with `0` as the scalar component).
    """
    omega_quat = jnp.concatenate(
        [jnp.zeros(1, dtype=angular_velocity.dtype), angular_velocity]
    )
    return 0.5 * multiply(omega_quat, quaternion)


def quaternion_rate_to_angular_velocity(quaternion, quaternion_rate):
    r"""Inverse of :func:`angular_velocity_to_quaternion_rate` (for unit
    quaternions): :math:`\omega = 2 (\dot{q} \circ q^*)_{ijk}`.
    """
    return 2.0 * multiply(quaternion_rate, conjugate(quaternion))[1:]
