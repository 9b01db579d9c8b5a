r"""Joint models.

A joint connects a parent body P to a child body B. The joint frame F is
fixed in P at pose `X_PF`; the moving frame M coincides with the child body
frame B. A joint with `nq` positions and `nv` velocities provides:

* `calc_X_FM(q)`: pose of M in F,
* `calc_H_FM(q)`: the motion subspace :math:`H` (shape: :math:`(6, nv)`) such
  that the spatial velocity of M in F, expressed in F and taken about Mo, is
  :math:`H v`. All joints here have a constant :math:`H`, so the spatial
  acceleration of M in F is simply :math:`H \dot{v}`,
* the kinematic maps between :math:`v` and :math:`\dot{q}`.
"""

import jax.numpy as jnp

from .transforms import RigidTransform, rotation_from_axis_angle
from .utils import quaternion as quat
from .utils.asserts import as_vector3


class Joint(object):
    r"""Base class of all joints. """

    num_positions = 0
    num_velocities = 0

    def __init__(self, name, parent_body, child_body, X_PF=None):
        if X_PF is None:
            X_PF = RigidTransform.identity()
        if not isinstance(X_PF, RigidTransform):
            raise TypeError(
                f"Expected X_PF of type RigidTransform. Got {type(X_PF)} instead."
            )
        self.name = name
        self.parent_body = parent_body
        self.child_body = child_body
        self.X_PF = X_PF
        self.index = None
        # Offsets into q and v, assigned when the tree is finalized.
        self.position_start = None
        self.velocity_start = None

    def positions(self, q):
        return q[self.position_start:self.position_start + self.num_positions]

    def velocities(self, v):
        return v[self.velocity_start:self.velocity_start + self.num_velocities]

    def calc_X_FM(self, q):
        raise NotImplementedError

    def calc_H_FM(self, q):
        raise NotImplementedError

    def map_velocity_to_qdot(self, q, v):
        return v

    def map_qdot_to_velocity(self, q, qdot):
        return qdot

    def default_positions(self):
        return jnp.zeros(self.num_positions)

    def __repr__(self):
        return (
            f"{type(self).__name__}(name={self.name!r},"
            f" parent={self.parent_body.name!r}, child={self.child_body.name!r})"
        )


class RevoluteJoint(Joint):
    r"""Rotation by angle :math:`q` about a unit `axis` fixed in F. """

    num_positions = 1
    num_velocities = 1

    def __init__(self, name, parent_body, child_body, axis=None, X_PF=None):
        super().__init__(name, parent_body, child_body, X_PF)
        if axis is None:
            axis = jnp.array([0.0, 0.0, 1.0])
        axis = as_vector3(axis, "axis")
        self.axis = axis / jnp.linalg.norm(axis)

    def calc_X_FM(self, q):
        return RigidTransform(rotation_from_axis_angle(self.axis, q[0]), jnp.zeros(3))

    def calc_H_FM(self, q):
        return jnp.concatenate([self.axis, jnp.zeros(3)]).reshape(6, 1)


class PrismaticJoint(Joint):
    r"""Translation by :math:`q` along a unit `axis` fixed in F. """

    num_positions = 1
    num_velocities = 1

    def __init__(self, name, parent_body, child_body, axis=None, X_PF=None):
        super().__init__(name, parent_body, child_body, X_PF)
        if axis is None:
            axis = jnp.array([1.0, 0.0, 0.0])
        axis = as_vector3(axis, "axis")
        self.axis = axis / jnp.linalg.norm(axis)

    def calc_X_FM(self, q):
        return RigidTransform(jnp.eye(3), self.axis * q[0])

    def calc_H_FM(self, q):
        return jnp.concatenate([jnp.zeros(3), self.axis]).reshape(6, 1)


class WeldJoint(Joint):
    r"""Rigidly attaches the child to the parent (no degrees of freedom). """

    def calc_X_FM(self, q):
        return RigidTransform.identity()

    def calc_H_FM(self, q):
        return jnp.zeros((6, 0))


class QuaternionFloatingJoint(Joint):
    r"""Six degree-of-freedom joint.

    Positions are :math:`q = [q_w, q_x, q_y, q_z, p_x, p_y, p_z]`, the
    orientation quaternion of M in F followed by the position of Mo in F.
    Velocities are :math:`v = [\omega_{FM}; v_{FM}]`, both expressed in F. The
    quaternion is not required to stay normalized; :math:`\dot{q}` is not
    simply :math:`v` for this joint.
    """

    num_positions = 7
    num_velocities = 6

    def calc_X_FM(self, q):
        return RigidTransform(quat.quaternion_to_rotmat(q[:4]), q[4:])

    def calc_H_FM(self, q):
        return jnp.eye(6)

    def map_velocity_to_qdot(self, q, v):
        qdot = quat.angular_velocity_to_quaternion_rate(q[:4], v[:3])
        return jnp.concatenate([qdot, v[3:]])

    def map_qdot_to_velocity(self, q, qdot):
        w = quat.quaternion_rate_to_angular_velocity(q[:4], qdot[:4])
        return jnp.concatenate([w, qdot[4:]])

    def default_positions(self):
        return jnp.concatenate([quat.identity(), jnp.zeros(3)])


class JointActuator(object):
    r"""An actuator applying a generalized force on a single degree of
    freedom joint. The actuation value is read from the plant's actuation
    input port, one entry per actuator in index order.
    """

    def __init__(self, name, joint):
        self.name = name
        self.joint = joint
        self.index = None

    def __repr__(self):
        return f"JointActuator(name={self.name!r}, joint={self.joint.name!r})"
