r"""Topology of a multibody system and its tree recursions.

Bodies, joints, actuators and force elements live in flat, index-addressed
lists. Finalizing the tree computes a breadth-first traversal order rooted at
the world body; the position of a body in that order is its *node index*, and
generalized positions and velocities are laid out joint by joint in node
order.

All recursions are pure `jax.numpy` functions of their array arguments, so they
can be differentiated with `jax.jvp` and batched with `jax.vmap`.
"""

import logging
from collections import deque

import jax
import jax.numpy as jnp

from .bodies import RigidBody
from .errors import (
    InvalidArgument,
    PreconditionNotMet,
    post_finalize_error,
    pre_finalize_error,
)
from .forces import MultibodyForces
from .transforms import RigidTransform

logger = logging.getLogger(__name__)


def _in_world(R_WF, H_F):
    # Re-expresses both halves of every column of a motion subspace.
    return jnp.concatenate([R_WF @ H_F[:3], R_WF @ H_F[3:]], axis=0)


class MultibodyTree(object):
    """Owns the bodies, joints, actuators and force elements of a model. """

    def __init__(self):
        self.bodies = []
        self.joints = []
        self.actuators = []
        self.force_elements = []
        self._inbound_joints = {}
        self._finalized = False
        # Filled in by finalize().
        self._node_bodies = []
        self._node_parents = []
        self._node_joints = []
        self._num_positions = 0
        self._num_velocities = 0
        self.add_rigid_body(RigidBody("WorldBody", 0.0))

    # Construction.

    def _throw_if_finalized(self, method_name):
        if self._finalized:
            raise post_finalize_error(method_name)

    def _throw_if_not_finalized(self, method_name):
        if not self._finalized:
            raise pre_finalize_error(method_name)

    def is_finalized(self):
        return self._finalized

    @property
    def world_body(self):
        return self.bodies[0]

    def _owns_body(self, body):
        return (
            isinstance(body, RigidBody)
            and body.index is not None
            and body.index < len(self.bodies)
            and self.bodies[body.index] is body
        )

    def add_rigid_body(self, body):
        self._throw_if_finalized("add_rigid_body")
        if body.index is not None:
            raise InvalidArgument(f"Body '{body.name}' was already added to a model.")
        if any(b.name == body.name for b in self.bodies):
            raise InvalidArgument(f"A body named '{body.name}' already exists.")
        body.index = len(self.bodies)
        self.bodies.append(body)
        return body

    def add_joint(self, joint):
        self._throw_if_finalized("add_joint")
        for body in (joint.parent_body, joint.child_body):
            if not self._owns_body(body):
                raise InvalidArgument(
                    f"Joint '{joint.name}' refers to body '{body.name}', which is"
                    " not part of this model."
                )
        child = joint.child_body
        if child.index == 0:
            raise InvalidArgument(
                f"Joint '{joint.name}' cannot have the world body as its child."
            )
        if joint.parent_body is child:
            raise InvalidArgument(
                f"Joint '{joint.name}' connects body '{child.name}' to itself."
            )
        if child.index in self._inbound_joints:
            raise InvalidArgument(
                f"Body '{child.name}' already is the child of joint"
                f" '{self._inbound_joints[child.index].name}'."
            )
        joint.index = len(self.joints)
        self.joints.append(joint)
        self._inbound_joints[child.index] = joint
        return joint

    def add_joint_actuator(self, actuator):
        self._throw_if_finalized("add_joint_actuator")
        if actuator.joint.index is None or self.joints[actuator.joint.index] is not actuator.joint:
            raise InvalidArgument(
                f"Actuator '{actuator.name}' acts on a joint that is not part of"
                " this model."
            )
        actuator.index = len(self.actuators)
        self.actuators.append(actuator)
        return actuator

    def add_force_element(self, element):
        self._throw_if_finalized("add_force_element")
        element.index = len(self.force_elements)
        self.force_elements.append(element)
        return element

    def finalize(self):
        r"""Computes the traversal order and the layout of :math:`q` and
        :math:`v`.

        Raises:
            PreconditionNotMet: If a body is not connected to the world.
        """
        self._throw_if_finalized("finalize")
        children = {body.index: [] for body in self.bodies}
        for joint in self.joints:
            children[joint.parent_body.index].append(joint)

        parents = {0: None}
        order = []
        queue = deque([self.world_body])
        while queue:
            body = queue.popleft()
            body.node_index = len(order)
            order.append(body)
            for joint in children[body.index]:
                parents[joint.child_body.index] = body.node_index
                queue.append(joint.child_body)

        if len(order) != len(self.bodies):
            unreachable = [b.name for b in self.bodies if b.node_index is None]
            raise PreconditionNotMet(
                f"Bodies {unreachable} are not connected to the world body by a"
                " chain of joints."
            )

        self._node_bodies = order
        self._node_parents = [parents[body.index] for body in order]
        self._node_joints = [None] + [self._inbound_joints[b.index] for b in order[1:]]

        position_start, velocity_start = 0, 0
        for joint in self._node_joints[1:]:
            joint.position_start = position_start
            joint.velocity_start = velocity_start
            position_start += joint.num_positions
            velocity_start += joint.num_velocities
        self._num_positions = position_start
        self._num_velocities = velocity_start
        self._finalized = True
        logger.debug(
            "Finalized tree with %d bodies, %d positions and %d velocities.",
            self.num_bodies, self._num_positions, self._num_velocities,
        )

    # Sizes.

    @property
    def num_bodies(self):
        return len(self.bodies)

    @property
    def num_joints(self):
        return len(self.joints)

    @property
    def num_actuators(self):
        return len(self.actuators)

    @property
    def num_actuated_dofs(self):
        return sum(a.joint.num_velocities for a in self.actuators)

    @property
    def num_positions(self):
        self._throw_if_not_finalized("num_positions")
        return self._num_positions

    @property
    def num_velocities(self):
        self._throw_if_not_finalized("num_velocities")
        return self._num_velocities

    @property
    def num_states(self):
        return self.num_positions + self.num_velocities

    def get_body_by_name(self, name):
        for body in self.bodies:
            if body.name == name:
                return body
        raise InvalidArgument(f"There is no body named '{name}'.")

    # Recursions.

    def default_positions(self):
        self._throw_if_not_finalized("default_positions")
        return jnp.concatenate(
            [jnp.zeros(0)] + [j.default_positions() for j in self._node_joints[1:]]
        )

    def calc_position_kinematics(self, q):
        r"""Poses :math:`X_{WB} = X_{WP} X_{PF} X_{FM}(q)` of all bodies.

        Returns:
            (RigidTransform): Poses batched by node index.
        """
        rotations = [jnp.eye(3)]
        translations = [jnp.zeros(3)]
        for node in range(1, self.num_bodies):
            joint = self._node_joints[node]
            parent = self._node_parents[node]
            X_WP = RigidTransform(rotations[parent], translations[parent])
            X_WB = X_WP @ joint.X_PF @ joint.calc_X_FM(joint.positions(q))
            rotations.append(X_WB.rotation)
            translations.append(X_WB.translation)
        return RigidTransform(jnp.stack(rotations), jnp.stack(translations))

    def _joint_subspace_in_world(self, node, q, X_WB):
        joint = self._node_joints[node]
        R_WF = X_WB.rotation[self._node_parents[node]] @ joint.X_PF.rotation
        return _in_world(R_WF, joint.calc_H_FM(joint.positions(q)))

    def calc_velocity_kinematics(self, q, v, X_WB):
        r"""Spatial velocities of all body origins, in world.

        :math:`\omega_B = \omega_P + \omega_{FM}` and
        :math:`v_B = v_P + \omega_P \times p_{PoBo} + v_{FM}`.

        Returns:
            (jnp.ndarray): Shape :math:`(num\_bodies, 6)`, by node index.
        """
        V_WB = [jnp.zeros(6)]
        for node in range(1, self.num_bodies):
            joint = self._node_joints[node]
            parent = self._node_parents[node]
            V_FM = self._joint_subspace_in_world(node, q, X_WB) @ joint.velocities(v)
            w_P, v_P = V_WB[parent][:3], V_WB[parent][3:]
            p_PoBo = X_WB.translation[node] - X_WB.translation[parent]
            V_WB.append(jnp.concatenate([
                w_P + V_FM[:3],
                v_P + jnp.cross(w_P, p_PoBo) + V_FM[3:],
            ]))
        return jnp.stack(V_WB)

    def calc_inverse_dynamics(self, q, v, vdot, body_forces=None, generalized_forces=None):
        r"""Recursive Newton-Euler inverse dynamics.

        Computes :math:`\tau = M(q) \dot{v} + C(q, v) v - \tau_{app} -
        \sum_B J_B^T F_{app,B}`, i.e. the generalized forces that must be added
        to the applied ones to produce the accelerations `vdot`.

        Args:
            q (jnp.ndarray): Generalized positions.
            v (jnp.ndarray): Generalized velocities.
            vdot (jnp.ndarray): Generalized accelerations.
            body_forces (jnp.ndarray): Applied spatial forces, by node index
                (shape: :math:`(num\_bodies, 6)`).
            generalized_forces (jnp.ndarray): Applied generalized forces.

        Returns:
            (jnp.ndarray): Generalized forces (shape: :math:`(num\_velocities)`).
        """
        n = self.num_bodies
        if body_forces is None:
            body_forces = jnp.zeros((n, 6))
        X_WB = self.calc_position_kinematics(q)
        V_WB = self.calc_velocity_kinematics(q, v, X_WB)

        # Base to tip: spatial accelerations.
        H_W = [None]
        A_WB = [jnp.zeros(6)]
        for node in range(1, n):
            joint = self._node_joints[node]
            parent = self._node_parents[node]
            H = self._joint_subspace_in_world(node, q, X_WB)
            H_W.append(H)
            V_FM = H @ joint.velocities(v)
            A_FM = H @ joint.velocities(vdot)
            w_P = V_WB[parent, :3]
            alpha_P, a_P = A_WB[parent][:3], A_WB[parent][3:]
            p_PoBo = X_WB.translation[node] - X_WB.translation[parent]
            alpha = alpha_P + jnp.cross(w_P, V_FM[:3]) + A_FM[:3]
            a = (
                a_P
                + jnp.cross(alpha_P, p_PoBo)
                + jnp.cross(w_P, jnp.cross(w_P, p_PoBo))
                + 2.0 * jnp.cross(w_P, V_FM[3:])
                + A_FM[3:]
            )
            A_WB.append(jnp.concatenate([alpha, a]))

        # Tip to base: joint reaction forces.
        F_children = [jnp.zeros(6) for _ in range(n)]
        tau = [None] * n
        for node in range(n - 1, 0, -1):
            body = self._node_bodies[node]
            parent = self._node_parents[node]
            R_WB = X_WB.rotation[node]
            w = V_WB[node, :3]
            alpha, a = A_WB[node][:3], A_WB[node][3:]
            p_BoBcm = R_WB @ body.com
            I_W = RigidBody.rotational_inertia_in_world(body.rotational_inertia, R_WB)
            a_cm = a + jnp.cross(alpha, p_BoBcm) + jnp.cross(w, jnp.cross(w, p_BoBcm))
            f = body.default_mass * a_cm
            t = I_W @ alpha + jnp.cross(w, I_W @ w) + jnp.cross(p_BoBcm, f)
            F_B = jnp.concatenate([t, f]) - body_forces[node] + F_children[node]
            tau[node] = H_W[node].T @ F_B
            p_PoBo = X_WB.translation[node] - X_WB.translation[parent]
            F_children[parent] = F_children[parent] + jnp.concatenate(
                [F_B[:3] + jnp.cross(p_PoBo, F_B[3:]), F_B[3:]]
            )

        tau = jnp.concatenate([jnp.zeros(0)] + tau[1:])
        if generalized_forces is not None:
            tau = tau - generalized_forces
        return tau

    def calc_mass_matrix_via_inverse_dynamics(self, q):
        r"""Mass matrix :math:`M(q)`, one inverse dynamics call (with zero
        velocities and no applied forces) per column.
        """
        nv = self.num_velocities
        if nv == 0:
            return jnp.zeros((0, 0))
        v = jnp.zeros(nv)
        columns = jax.vmap(lambda vdot: self.calc_inverse_dynamics(q, v, vdot))(
            jnp.eye(nv)
        )
        return columns.T

    def calc_force_elements_contribution(self, q, v, X_WB=None, V_WB=None):
        r"""Sums the forces of all force elements.

        Returns:
            (MultibodyForces): The accumulated forces.
        """
        if X_WB is None:
            X_WB = self.calc_position_kinematics(q)
        if V_WB is None:
            V_WB = self.calc_velocity_kinematics(q, v, X_WB)
        forces = MultibodyForces.zeros(self.num_bodies, self.num_velocities)
        for element in self.force_elements:
            forces = element.add_forces(self, X_WB, V_WB, forces)
        return forces

    def map_velocity_to_qdot(self, q, v):
        return jnp.concatenate([jnp.zeros(0)] + [
            joint.map_velocity_to_qdot(joint.positions(q), joint.velocities(v))
            for joint in self._node_joints[1:]
        ])

    def map_qdot_to_velocity(self, q, qdot):
        return jnp.concatenate([jnp.zeros(0)] + [
            joint.map_qdot_to_velocity(joint.positions(q), joint.positions(qdot))
            for joint in self._node_joints[1:]
        ])
