"""
Simulate a (passive or actuated) double pendulum.
"""

import argparse
import logging
import math

import jax.numpy as jnp
from tqdm import trange

from gradplant import MultibodyPlant, RevoluteJoint, RigidTransform, UniformGravityFieldElement


def make_double_pendulum(args):
    plant = MultibodyPlant()
    link1 = plant.add_rigid_body("link1", args.mass1, com=jnp.array([0.0, 0.0, -args.length1]))
    link2 = plant.add_rigid_body("link2", args.mass2, com=jnp.array([0.0, 0.0, -args.length2]))
    axis = jnp.array([0.0, 1.0, 0.0])
    plant.add_joint(RevoluteJoint("shoulder", plant.world_body(), link1, axis=axis))
    elbow = plant.add_joint(RevoluteJoint(
        "elbow", link1, link2, axis=axis,
        X_PF=RigidTransform.from_translation(jnp.array([0.0, 0.0, -args.length1])),
    ))
    plant.add_joint_actuator("elbow_motor", elbow)
    plant.add_force_element(UniformGravityFieldElement(magnitude=args.gravity))
    plant.finalize()
    return plant


def compute_energy(plant, context):
    v = context.get_velocities()
    kinetic = 0.5 * v @ plant.calc_mass_matrix(context) @ v
    X_WB = plant.eval_position_kinematics(context).X_WB
    potential = 0.0
    g = plant.gravity_field().gravity_vector
    for body in plant.tree.bodies[1:]:
        p_WBcm = X_WB.transform_point(body.com)[body.node_index]
        potential = potential - body.default_mass * jnp.dot(g, p_WBcm)
    return float(kinetic + potential)


if __name__ == "__main__":

    parser = argparse.ArgumentParser()
    parser.add_argument("--simsteps", type=int, default=2000)
    parser.add_argument("--dtime", type=float, default=1e-3)
    parser.add_argument("--gravity", type=float, default=9.81)
    parser.add_argument("--length1", type=float, default=1.0)
    parser.add_argument("--length2", type=float, default=1.0)
    parser.add_argument("--mass1", type=float, default=1.0)
    parser.add_argument("--mass2", type=float, default=1.0)
    parser.add_argument("--torque", type=float, default=0.0)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    plant = make_double_pendulum(args)
    context = plant.create_default_context()
    context.set_positions_and_velocities(
        jnp.array([3 * math.pi / 7, math.pi / 3]), jnp.zeros(2)
    )
    plant.get_actuation_input_port().fix_value(context, jnp.array([args.torque]))

    einit = compute_energy(plant, context)
    nq = plant.num_positions()
    for i in trange(args.simsteps):
        xdot = plant.calc_time_derivatives(context)
        # Semi-implicit Euler.
        v = context.get_velocities() + args.dtime * xdot[nq:]
        q = context.get_positions() + args.dtime * plant.map_velocity_to_qdot(context, v)
        context.set_positions_and_velocities(q, v)

    print("final state:", context.get_continuous_state())
    edrift = 0.1
    efinal = compute_energy(plant, context)
    if args.torque == 0.0 and abs(efinal - einit) > edrift:
        print(f"[WARNING] Maximum energy drift of {edrift} exceeded!")
