"""
Linearize the dynamics of an actuated double pendulum: exact Jacobians of
xdot with respect to the state and the actuation, computed in one pass.
"""

import argparse

import jax.numpy as jnp
import numpy as np

from gradplant import (
    MultibodyPlant,
    RevoluteJoint,
    RigidTransform,
    UniformGravityFieldElement,
    autodiff_to_gradient_matrix,
    autodiff_to_value_matrix,
    initialize_autodiff,
)


if __name__ == "__main__":

    parser = argparse.ArgumentParser()
    parser.add_argument("--theta1", type=float, default=np.pi)
    parser.add_argument("--theta2", type=float, default=0.0)
    parser.add_argument("--torque", type=float, default=0.0)
    args = parser.parse_args()

    plant = MultibodyPlant()
    link1 = plant.add_rigid_body("link1", 1.0, com=jnp.array([0.0, 0.0, -1.0]))
    link2 = plant.add_rigid_body("link2", 1.0, com=jnp.array([0.0, 0.0, -1.0]))
    axis = jnp.array([0.0, 1.0, 0.0])
    plant.add_joint(RevoluteJoint("shoulder", plant.world_body(), link1, axis=axis))
    elbow = plant.add_joint(RevoluteJoint(
        "elbow", link1, link2, axis=axis,
        X_PF=RigidTransform.from_translation(jnp.array([0.0, 0.0, -1.0])),
    ))
    plant.add_joint_actuator("elbow_motor", elbow)
    plant.add_force_element(UniformGravityFieldElement())
    plant.finalize()

    plant_ad = plant.to_autodiff()
    nx = plant_ad.num_multibody_states()
    nu = plant_ad.num_actuated_dofs()

    context = plant_ad.create_default_context()
    x0 = jnp.array([args.theta1, args.theta2, 0.0, 0.0])
    context.set_continuous_state(initialize_autodiff(x0, num_derivatives=nx + nu))
    plant_ad.get_actuation_input_port().fix_value(
        context,
        initialize_autodiff(jnp.array([args.torque]), num_derivatives=nx + nu, deriv_num_start=nx),
    )

    xdot = plant_ad.calc_time_derivatives(context)
    jacobian = autodiff_to_gradient_matrix(xdot)
    np.set_printoptions(precision=4, suppress=True)
    print("xdot:", np.asarray(autodiff_to_value_matrix(xdot)))
    print("A = dxdot/dx:\n", np.asarray(jacobian[:, :nx]))
    print("B = dxdot/du:\n", np.asarray(jacobian[:, nx:]))
