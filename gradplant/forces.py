from abc import abstractmethod
from typing import Any, NamedTuple

import jax.numpy as jnp

from .utils.asserts import as_vector3
from .utils.defaults import Defaults


class MultibodyForces(NamedTuple):
    r"""Applied forces on a multibody tree.

    Attributes:
        body_forces: Spatial force :math:`[\tau; f]` applied on each body,
            expressed in the world frame and taken about the body frame origin,
            indexed by body node index (shape: :math:`(num\_bodies, 6)`).
        generalized_forces: Generalized forces applied on each degree of
            freedom (shape: :math:`(num\_velocities)`).
    """

    body_forces: Any
    generalized_forces: Any

    @staticmethod
    def zeros(num_bodies, num_velocities, dtype=float):
        return MultibodyForces(
            jnp.zeros((num_bodies, 6), dtype=dtype),
            jnp.zeros(num_velocities, dtype=dtype),
        )

    def add_body_force(self, node_index, F_Bo_W):
        return self._replace(body_forces=self.body_forces.at[node_index].add(F_Bo_W))

    def add_generalized_force(self, velocity_index, tau):
        return self._replace(
            generalized_forces=self.generalized_forces.at[velocity_index].add(tau)
        )


class ForceElement(object):
    """A force law that depends on the state of the tree only (e.g., gravity).

    Subclasses implement `add_forces()`, which must be written in `jax.numpy`
    so that it can be evaluated on autodiff inputs.
    """

    def __init__(self):
        self.index = None

    @abstractmethod
    def add_forces(self, tree, X_WB, V_WB, forces):
        r"""Returns `forces` plus the contribution of this element.

        Args:
            tree (gradplant.tree.MultibodyTree): The (finalized) tree.
            X_WB (gradplant.transforms.RigidTransform): Body poses, batched by
                node index.
            V_WB (jnp.ndarray): Body spatial velocities, by node index
                (shape: :math:`(num\_bodies, 6)`).
            forces (MultibodyForces): Accumulated forces.
        """
        raise NotImplementedError


class UniformGravityFieldElement(ForceElement):
    """A constant gravity field, acting on the center of mass of every body. """

    def __init__(self, direction=None, magnitude=Defaults.GRAVITY):
        super().__init__()
        if direction is None:
            direction = jnp.array(Defaults.GRAVITY_DIRECTION)
        direction = as_vector3(direction, "direction")
        self.direction = direction / jnp.linalg.norm(direction)
        self.magnitude = magnitude

    @property
    def gravity_vector(self):
        return self.direction * self.magnitude

    def add_forces(self, tree, X_WB, V_WB, forces):
        g = self.gravity_vector
        for body in tree.bodies[1:]:
            i = body.node_index
            f = body.default_mass * g
            p_BoBcm_W = X_WB.rotation[i] @ body.com
            forces = forces.add_body_force(
                i, jnp.concatenate([jnp.cross(p_BoBcm_W, f), f])
            )
        return forces
