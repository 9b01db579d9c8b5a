import math

import numpy as np
import pytest
import jax
import jax.numpy as jnp

from gradplant.bodies import RigidBody
from gradplant.errors import InvalidArgument, LifecycleViolation, PreconditionNotMet
from gradplant.forces import UniformGravityFieldElement
from gradplant.joints import (
    PrismaticJoint,
    QuaternionFloatingJoint,
    RevoluteJoint,
    WeldJoint,
)
from gradplant.transforms import RigidTransform, skew
from gradplant.tree import MultibodyTree
from gradplant.utils import quaternion

Y_AXIS = jnp.array([0.0, 1.0, 0.0])


def make_double_pendulum(m1=1.0, m2=2.0, l1=0.7, l2=1.3, gravity=True):
    tree = MultibodyTree()
    link1 = tree.add_rigid_body(RigidBody("link1", m1, com=jnp.array([0.0, 0.0, -l1])))
    link2 = tree.add_rigid_body(RigidBody("link2", m2, com=jnp.array([0.0, 0.0, -l2])))
    tree.add_joint(RevoluteJoint("shoulder", tree.world_body, link1, axis=Y_AXIS))
    tree.add_joint(RevoluteJoint(
        "elbow", link1, link2, axis=Y_AXIS,
        X_PF=RigidTransform.from_translation(jnp.array([0.0, 0.0, -l1])),
    ))
    if gravity:
        tree.add_force_element(UniformGravityFieldElement())
    tree.finalize()
    return tree


def make_floating_arm():
    rng = np.random.default_rng(7)

    def random_inertia():
        A = jnp.array(rng.standard_normal((3, 3)))
        return A @ A.T + 0.1 * jnp.eye(3)

    tree = MultibodyTree()
    base = tree.add_rigid_body(RigidBody(
        "base", 3.0, com=jnp.array([0.1, -0.2, 0.05]), rotational_inertia=random_inertia()
    ))
    arm = tree.add_rigid_body(RigidBody(
        "arm", 1.5, com=jnp.array([0.0, 0.3, -0.4]), rotational_inertia=random_inertia()
    ))
    slider = tree.add_rigid_body(RigidBody(
        "slider", 0.5, com=jnp.array([0.2, 0.0, 0.0]), rotational_inertia=random_inertia()
    ))
    tree.add_joint(QuaternionFloatingJoint("free", tree.world_body, base))
    tree.add_joint(RevoluteJoint(
        "hinge", base, arm, axis=jnp.array([1.0, 1.0, 0.0]),
        X_PF=RigidTransform.from_translation(jnp.array([0.5, 0.0, 0.0])),
    ))
    tree.add_joint(PrismaticJoint("rail", arm, slider, axis=jnp.array([0.0, 0.0, 1.0])))
    tree.finalize()
    return tree


def random_state(tree, seed=0):
    rng = np.random.default_rng(seed)
    q = jnp.array(rng.standard_normal(tree.num_positions))
    q = q.at[:4].set(quaternion.normalize(q[:4]))
    v = jnp.array(rng.standard_normal(tree.num_velocities))
    return q, v


def test_layout():
    tree = make_floating_arm()
    assert tree.num_bodies == 4
    assert tree.num_positions == 9
    assert tree.num_velocities == 8
    assert [j.position_start for j in tree.joints] == [0, 7, 8]
    assert [j.velocity_start for j in tree.joints] == [0, 6, 7]
    assert [b.node_index for b in tree.bodies] == [0, 1, 2, 3]
    q = tree.default_positions()
    assert jnp.allclose(q[:4], quaternion.identity())


def test_breadth_first_order():
    tree = MultibodyTree()
    a = tree.add_rigid_body(RigidBody("a", 1.0))
    b = tree.add_rigid_body(RigidBody("b", 1.0))
    c = tree.add_rigid_body(RigidBody("c", 1.0))
    # Joints are added tip first.
    tree.add_joint(RevoluteJoint("bc", b, c))
    tree.add_joint(PrismaticJoint("ab", a, b))
    tree.add_joint(RevoluteJoint("wa", tree.world_body, a))
    tree.finalize()
    assert (a.node_index, b.node_index, c.node_index) == (1, 2, 3)
    assert tree.joints[2].velocity_start == 0
    assert tree.joints[0].velocity_start == 2


def test_topology_errors():
    tree = MultibodyTree()
    a = tree.add_rigid_body(RigidBody("a", 1.0))
    with pytest.raises(InvalidArgument):
        tree.add_rigid_body(RigidBody("a", 1.0))
    with pytest.raises(InvalidArgument):
        tree.add_joint(RevoluteJoint("bad", a, tree.world_body))
    with pytest.raises(InvalidArgument):
        tree.add_joint(RevoluteJoint("bad", a, a))
    with pytest.raises(InvalidArgument):
        tree.add_joint(RevoluteJoint("bad", tree.world_body, RigidBody("stranger", 1.0)))
    tree.add_joint(RevoluteJoint("ok", tree.world_body, a))
    with pytest.raises(InvalidArgument):
        tree.add_joint(PrismaticJoint("again", tree.world_body, a))


def test_unconnected_body():
    tree = MultibodyTree()
    tree.add_rigid_body(RigidBody("floating", 1.0))
    with pytest.raises(PreconditionNotMet):
        tree.finalize()


def test_no_changes_after_finalize():
    tree = make_double_pendulum()
    with pytest.raises(LifecycleViolation):
        tree.add_rigid_body(RigidBody("late", 1.0))
    with pytest.raises(LifecycleViolation):
        tree.finalize()


def test_double_pendulum_matches_analytic_dynamics():
    m1, m2, l1, l2, g = 1.0, 2.0, 0.7, 1.3, 9.81
    tree = make_double_pendulum(m1, m2, l1, l2)
    q = jnp.array([0.4, -1.1])
    v = jnp.array([0.8, 1.7])
    vdot = jnp.array([-0.3, 2.2])

    t1, t2 = float(q[0]), float(q[1])
    c2 = math.cos(t2)
    M = jnp.array([
        [m1 * l1 ** 2 + m2 * (l1 ** 2 + l2 ** 2 + 2 * l1 * l2 * c2),
         m2 * (l2 ** 2 + l1 * l2 * c2)],
        [m2 * (l2 ** 2 + l1 * l2 * c2), m2 * l2 ** 2],
    ])
    h = m2 * l1 * l2 * math.sin(t2)
    Cv = jnp.array([-h * (2 * v[0] * v[1] + v[1] ** 2), h * v[0] ** 2])
    tau_g = jnp.array([
        (m1 + m2) * g * l1 * math.sin(t1) + m2 * g * l2 * math.sin(t1 + t2),
        m2 * g * l2 * math.sin(t1 + t2),
    ])

    assert jnp.allclose(tree.calc_mass_matrix_via_inverse_dynamics(q), M)
    forces = tree.calc_force_elements_contribution(q, v)
    tau = tree.calc_inverse_dynamics(
        q, v, vdot, forces.body_forces, forces.generalized_forces
    )
    assert jnp.allclose(tau, M @ vdot + Cv + tau_g)


def test_position_kinematics_of_pendulum():
    tree = make_double_pendulum(l1=1.0, l2=1.0)
    X_WB = tree.calc_position_kinematics(jnp.array([math.pi / 2, 0.0]))
    # A quarter turn about +y swings the elbow from -z to -x.
    assert jnp.allclose(X_WB.translation[2], jnp.array([-1.0, 0.0, 0.0]), atol=1e-12)


def test_mass_matrix_symmetric_positive_definite():
    tree = make_floating_arm()
    for seed in range(3):
        q, _ = random_state(tree, seed)
        M = tree.calc_mass_matrix_via_inverse_dynamics(q)
        assert M.shape == (8, 8)
        assert jnp.allclose(M, M.T)
        assert float(jnp.linalg.eigvalsh(M).min()) > 0.0


def test_inverse_dynamics_is_affine_in_accelerations():
    tree = make_floating_arm()
    q, v = random_state(tree)
    vdot = jnp.linspace(-1.0, 1.0, tree.num_velocities)
    M = tree.calc_mass_matrix_via_inverse_dynamics(q)
    bias = tree.calc_inverse_dynamics(q, v, jnp.zeros_like(v))
    assert jnp.allclose(tree.calc_inverse_dynamics(q, v, vdot), M @ vdot + bias)


def test_bias_matches_lagrangian():
    # For qdot = v, C(q, v) v = Mdot v - d/dq (v^T M v / 2).
    tree = MultibodyTree()
    a = tree.add_rigid_body(RigidBody(
        "a", 2.0, com=jnp.array([0.3, 0.0, -0.2]), rotational_inertia=jnp.diag(jnp.array([0.1, 0.2, 0.3]))
    ))
    b = tree.add_rigid_body(RigidBody(
        "b", 1.0, com=jnp.array([0.0, 0.4, 0.1]), rotational_inertia=jnp.diag(jnp.array([0.3, 0.1, 0.2]))
    ))
    c = tree.add_rigid_body(RigidBody("c", 0.5, com=jnp.array([0.1, 0.1, 0.1])))
    tree.add_joint(RevoluteJoint("j1", tree.world_body, a, axis=jnp.array([0.0, 0.0, 1.0])))
    tree.add_joint(PrismaticJoint(
        "j2", a, b, axis=jnp.array([1.0, 0.0, 1.0]),
        X_PF=RigidTransform.from_translation(jnp.array([0.5, 0.0, 0.0])),
    ))
    tree.add_joint(RevoluteJoint("j3", b, c, axis=jnp.array([0.0, 1.0, 0.0])))
    tree.finalize()

    q = jnp.array([0.3, -0.4, 1.2])
    v = jnp.array([1.1, 0.5, -0.7])
    mass_matrix = tree.calc_mass_matrix_via_inverse_dynamics
    _, Mdot = jax.jvp(mass_matrix, (q,), (v,))
    dTdq = jax.grad(lambda q: 0.5 * v @ mass_matrix(q) @ v)(q)
    bias = tree.calc_inverse_dynamics(q, v, jnp.zeros(3))
    assert jnp.allclose(bias, Mdot @ v - dTdq)


def test_velocity_kinematics_is_time_derivative_of_poses():
    tree = make_floating_arm()
    q, v = random_state(tree, seed=4)
    qdot = tree.map_velocity_to_qdot(q, v)
    X_WB, dX_WB = jax.jvp(tree.calc_position_kinematics, (q,), (qdot,))
    V_WB = tree.calc_velocity_kinematics(q, v, X_WB)
    assert jnp.allclose(dX_WB.translation, V_WB[:, 3:])
    for node in range(tree.num_bodies):
        w_skew = dX_WB.rotation[node] @ X_WB.rotation[node].T
        assert jnp.allclose(w_skew, skew(V_WB[node, :3]))


def test_quaternion_velocity_mapping():
    tree = make_floating_arm()
    q, v = random_state(tree, seed=5)
    qdot = tree.map_velocity_to_qdot(q, v)
    assert qdot.shape == (tree.num_positions,)
    assert jnp.allclose(qdot[4:], v[3:])
    assert jnp.allclose(tree.map_qdot_to_velocity(q, qdot), v)


def test_welded_body_adds_to_parent_mass():
    tree = MultibodyTree()
    cart = tree.add_rigid_body(RigidBody("cart", 2.0))
    payload = tree.add_rigid_body(RigidBody("payload", 0.5))
    tree.add_joint(PrismaticJoint("rail", tree.world_body, cart))
    tree.add_joint(WeldJoint(
        "weld", cart, payload,
        X_PF=RigidTransform.from_translation(jnp.array([0.0, 0.0, 1.0])),
    ))
    tree.finalize()
    assert tree.num_velocities == 1
    M = tree.calc_mass_matrix_via_inverse_dynamics(tree.default_positions())
    assert jnp.allclose(M, jnp.array([[2.5]]))


def test_empty_tree():
    tree = MultibodyTree()
    tree.finalize()
    assert tree.calc_mass_matrix_via_inverse_dynamics(jnp.zeros(0)).shape == (0, 0)
    assert tree.calc_inverse_dynamics(jnp.zeros(0), jnp.zeros(0), jnp.zeros(0)).shape == (0,)
