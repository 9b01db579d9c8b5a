"""
Drop a ball on the ground; contact forces come from the penalty method.
"""

import argparse

import jax.numpy as jnp
from tqdm import trange

from gradplant import (
    GeometrySystem,
    HalfSpace,
    MultibodyPlant,
    QuaternionFloatingJoint,
    RigidTransform,
    Sphere,
    UniformGravityFieldElement,
)
from gradplant.utils import quaternion


if __name__ == "__main__":

    parser = argparse.ArgumentParser()
    parser.add_argument("--simsteps", type=int, default=3000)
    parser.add_argument("--dtime", type=float, default=2e-4)
    parser.add_argument("--mass", type=float, default=1.0)
    parser.add_argument("--radius", type=float, default=0.1)
    parser.add_argument("--height", type=float, default=0.3)
    parser.add_argument("--penetration-allowance", type=float, default=1e-3)
    parser.add_argument("--print-every", type=int, default=250)
    args = parser.parse_args()

    engine = GeometrySystem()
    plant = MultibodyPlant()
    plant.register_as_source_for_geometry_system(engine)
    ball = plant.add_rigid_body(
        "ball", args.mass, rotational_inertia=0.4 * args.mass * args.radius ** 2 * jnp.eye(3)
    )
    plant.add_joint(QuaternionFloatingJoint("ball_free", plant.world_body(), ball))
    plant.add_force_element(UniformGravityFieldElement())
    plant.register_collision_geometry(ball, RigidTransform.identity(), Sphere(args.radius), engine)
    plant.register_collision_geometry(
        plant.world_body(), RigidTransform.identity(), HalfSpace(), engine
    )
    plant.set_penetration_allowance(args.penetration_allowance)
    plant.finalize()
    print("contact parameters:", plant.penalty_method_contact_parameters())

    context = plant.create_default_context()
    q = jnp.concatenate([quaternion.identity(), jnp.array([0.0, 0.0, args.height])])
    # Some spin, to exercise the quaternion rate.
    v = jnp.array([0.0, 0.0, 3.0, 0.5, 0.0, 0.0])
    context.set_positions_and_velocities(q, v)

    nq = plant.num_positions()
    for i in trange(args.simsteps):
        query = engine.make_query_object(
            plant.get_frame_ids(), plant.calc_frame_pose_output(context)
        )
        plant.get_geometry_query_input_port().fix_value(context, query)
        xdot = plant.calc_time_derivatives(context)
        v = context.get_velocities() + args.dtime * xdot[nq:]
        q = context.get_positions() + args.dtime * plant.map_velocity_to_qdot(context, v)
        q = q.at[:4].set(quaternion.normalize(q[:4]))
        context.set_positions_and_velocities(q, v)
        if i % args.print_every == 0:
            print(f"t = {i * args.dtime:.4f}  height = {float(q[6]):.4f}")
