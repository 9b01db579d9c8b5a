import numpy as np
import jax.numpy as jnp

from gradplant.forces import MultibodyForces, UniformGravityFieldElement
from gradplant.joints import QuaternionFloatingJoint, RevoluteJoint
from gradplant.bodies import RigidBody
from gradplant.tree import MultibodyTree


def test_gravity_defaults():
    gravity = UniformGravityFieldElement()
    assert jnp.allclose(gravity.gravity_vector, jnp.array([0.0, 0.0, -9.81]))
    gravity = UniformGravityFieldElement(direction=jnp.array([0.0, 2.0, 0.0]), magnitude=1.0)
    assert jnp.allclose(gravity.gravity_vector, jnp.array([0.0, 1.0, 0.0]))


def test_multibody_forces():
    forces = MultibodyForces.zeros(3, 2)
    forces = forces.add_body_force(1, jnp.arange(6.0)).add_generalized_force(1, 2.5)
    forces = forces.add_body_force(1, jnp.arange(6.0)).add_generalized_force(1, 2.5)
    assert jnp.allclose(forces.body_forces[1], 2.0 * jnp.arange(6.0))
    assert jnp.allclose(forces.body_forces[0], jnp.zeros(6))
    assert jnp.allclose(forces.generalized_forces, jnp.array([0.0, 5.0]))


def test_gravity_on_bodies():
    tree = MultibodyTree()
    ball = tree.add_rigid_body(RigidBody("ball", 2.0))
    arm = tree.add_rigid_body(RigidBody("arm", 1.0, com=jnp.array([1.0, 0.0, 0.0])))
    tree.add_joint(QuaternionFloatingJoint("free", tree.world_body, ball))
    tree.add_joint(RevoluteJoint("pin", tree.world_body, arm, axis=jnp.array([0.0, 1.0, 0.0])))
    tree.add_force_element(UniformGravityFieldElement())
    tree.finalize()

    q = tree.default_positions()
    v = jnp.zeros(tree.num_velocities)
    forces = tree.calc_force_elements_contribution(q, v)
    F_ball = forces.body_forces[ball.node_index]
    F_arm = forces.body_forces[arm.node_index]
    assert jnp.allclose(F_ball, jnp.array([0.0, 0.0, 0.0, 0.0, 0.0, -2.0 * 9.81]))
    # Weight at x = 1 produces a moment about +y.
    assert jnp.allclose(F_arm, jnp.array([0.0, 9.81, 0.0, 0.0, 0.0, -9.81]))
    assert np.count_nonzero(np.asarray(forces.body_forces[0])) == 0
    assert jnp.allclose(forces.generalized_forces, jnp.zeros(tree.num_velocities))
