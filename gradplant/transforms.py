r"""Rigid transforms and spatial vector algebra.

Spatial vectors are 6-vectors stacked as ``[angular; translational]``:
spatial velocities ``V = [w; v]`` and spatial forces ``F = [tau; f]``. Unless
stated otherwise, they are expressed in the world frame and taken about a body
frame origin. All functions are pure `jax.numpy` and may be traced by
`jax.jvp`/`jax.vmap`.
"""

from typing import Any, NamedTuple

import jax.numpy as jnp



def skew(v):
    r"""Returns the :math:`3 \times 3` skew-symmetric (cross-product) matrix
    :math:`[v]_\times` of a 3-vector `v`.
    """
    z = jnp.zeros_like(v[0])
    return jnp.array([
        [z, -v[2], v[1]],
        [v[2], z, -v[0]],
        [-v[1], v[0], z],
    ])


def rotation_from_axis_angle(axis, angle):
    r"""Rotation matrix for a rotation of `angle` about the unit `axis`
    (Rodrigues' formula :math:`I + \sin\theta K + (1 - \cos\theta) K^2`).
    """
    K = skew(axis)
    return jnp.eye(3) + jnp.sin(angle) * K + (1.0 - jnp.cos(angle)) * (K @ K)


class RigidTransform(NamedTuple):
    r"""Pose :math:`X_{AB}` of a frame B in a frame A.

    `rotation` is :math:`R_{AB}` (shape: :math:`(..., 3, 3)`) and `translation`
    is :math:`p_{AoBo,A}` (shape: :math:`(..., 3)`). Leading batch dimensions
    are allowed, e.g. the per-body poses of a kinematics cache.
    """

    rotation: Any
    translation: Any

    @staticmethod
    def identity():
        return RigidTransform(jnp.eye(3), jnp.zeros(3))

    @staticmethod
    def from_translation(translation):
        return RigidTransform(jnp.eye(3), jnp.asarray(translation, dtype=float))

    def multiply(self, other):
        r"""Composition :math:`X_{AC} = X_{AB} X_{BC}`. """
        return RigidTransform(
            self.rotation @ other.rotation,
            self.transform_point(other.translation),
        )

    def __matmul__(self, other):
        return self.multiply(other)

    def inverse(self):
        r_inv = jnp.swapaxes(self.rotation, -1, -2)
        return RigidTransform(
            r_inv, -jnp.einsum("...ij,...j->...i", r_inv, self.translation)
        )

    def transform_point(self, p_B):
        r"""Maps a point measured in B to its position in A. """
        return jnp.einsum("...ij,...j->...i", self.rotation, p_B) + self.translation

    def select(self, index):
        r"""Returns the transform at `index` along the batch dimension. """
        return RigidTransform(self.rotation[index], self.translation[index])

    def matrix(self):
        r"""Homogeneous :math:`4 \times 4` matrix (unbatched transforms only). """
        top = jnp.concatenate([self.rotation, self.translation.reshape(3, 1)], axis=1)
        return jnp.concatenate([top, jnp.array([[0.0, 0.0, 0.0, 1.0]])], axis=0)


def spatial_vector(angular, translational):
    return jnp.concatenate([angular, translational], axis=-1)


def shift_spatial_velocity(V_WP, p_PoQo_W):
    r"""Shifts the spatial velocity of frame P from Po to a point Q rigidly
    attached to P: :math:`v_Q = v_P + \omega \times p_{PoQo}`. Batched over
    leading dimensions.
    """
    w = V_WP[..., :3]
    return spatial_vector(w, V_WP[..., 3:] + jnp.cross(w, p_PoQo_W))


def shift_spatial_force(F_Bp, p_BpBq_W):
    r"""Shifts a spatial force applied at point Bp to point Bq:
    :math:`\tau_{Bq} = \tau_{Bp} - p_{BpBq} \times f`.
    """
    f = F_Bp[..., 3:]
    return spatial_vector(F_Bp[..., :3] - jnp.cross(p_BpBq_W, f), f)
