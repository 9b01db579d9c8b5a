r"""The multibody plant: model assembly, geometry coupling and equations of
motion.

A :class:`MultibodyPlant` goes through two stages. While *building*, bodies,
joints, actuators, force elements and geometries are added. :meth:`finalize`
freezes the topology, lays out the state :math:`x = [q; v]`, declares the
ports and derives the contact parameters. After that only evaluation is
allowed; every evaluation reads its state from a :class:`Context` and stores
its cache entries there, never in the plant.

Example::

    plant = MultibodyPlant()
    link = plant.add_rigid_body("link", 1.0, com=jnp.array([0.0, 0.0, -0.5]))
    plant.add_joint(RevoluteJoint("pin", plant.world_body(), link,
                                  axis=jnp.array([0.0, 1.0, 0.0])))
    plant.add_force_element(UniformGravityFieldElement())
    plant.finalize()
    context = plant.create_default_context()
    xdot = plant.calc_time_derivatives(context)
"""

import copy
import functools
import logging

import jax.numpy as jnp
import jax.scipy.linalg

from .autodiff import ScalarType, autodiff_apply, concatenate, to_autodiff
from .bodies import RigidBody
from .contacts import (
    PenaltyMethodContactParameters,
    calc_contact_forces_by_penalty_method,
    estimate_penalty_method_parameters,
)
from .errors import (
    InvalidArgument,
    PreconditionNotMet,
    UnsupportedOperation,
    post_finalize_error,
    pre_finalize_error,
)
from .forces import UniformGravityFieldElement
from .framework import Context, InputPort, OutputPort
from .geometry import GeometryFrame, make_geometry_instance
from .joints import JointActuator
from .kinematics import PositionKinematicsCache, VelocityKinematicsCache
from .tree import MultibodyTree
from .utils.defaults import Defaults

logger = logging.getLogger(__name__)


def _pre_finalize(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        self._throw_if_finalized(method.__name__)
        return method(self, *args, **kwargs)

    return wrapper


def _post_finalize(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        self._throw_if_not_finalized(method.__name__)
        return method(self, *args, **kwargs)

    return wrapper


def _call(fun, *args):
    return fun(*args)


def _solve_for_accelerations(M, tau):
    # M is symmetric positive definite for any physical model.
    if M.shape[0] == 0:
        return -tau
    return jax.scipy.linalg.cho_solve(jax.scipy.linalg.cho_factor(M), -tau)


class MultibodyPlant(object):
    r"""A tree of rigid bodies, optionally coupled to a geometry engine for
    penalty-method contact.
    """

    def __init__(self, scalar_type=ScalarType.FLOAT):
        self._scalar_type = None
        self._apply = None
        self._set_scalar_type(scalar_type)
        self._tree = MultibodyTree()
        self._finalized = False

        self._gravity_field = None
        self._penetration_allowance = Defaults.PENETRATION_ALLOWANCE
        self._penalty_parameters = PenaltyMethodContactParameters()

        # Geometry registration. The engine reference is only held while
        # building.
        self._geometry_system = None
        self._source_id = None
        self._body_index_to_frame_id = {}
        self._geometry_id_to_body_index = {}
        self._geometry_id_to_visual_index = {}
        self._geometry_id_to_collision_index = {}

        # Declared at finalize().
        self._input_ports = []
        self._output_ports = []
        self._actuation_port = None
        self._geometry_query_port = None
        self._continuous_state_port = None
        self._frame_ids_port = None
        self._frame_poses_port = None
        self._frame_ids = []
        self._frame_node_indices = []
        self._collision_node_index = {}

    def _set_scalar_type(self, scalar_type):
        if not isinstance(scalar_type, ScalarType):
            raise InvalidArgument(f"Unknown scalar type {scalar_type!r}.")
        self._scalar_type = scalar_type
        self._apply = autodiff_apply if scalar_type is ScalarType.AUTODIFF else _call

    @property
    def scalar_type(self):
        return self._scalar_type

    # Lifecycle.

    def is_finalized(self):
        return self._finalized

    def _throw_if_finalized(self, method_name):
        if self._finalized:
            raise post_finalize_error(method_name)

    def _throw_if_not_finalized(self, method_name):
        if not self._finalized:
            raise pre_finalize_error(method_name)

    # Model assembly.

    @_pre_finalize
    def add_rigid_body(self, name, mass, com=None, rotational_inertia=None):
        r"""Adds a rigid body.

        Args:
            name (str): Unique name of the body.
            mass (float): Mass of the body.
            com (jnp.ndarray): Center of mass, in the body frame
                (shape: :math:`(3)`).
            rotational_inertia (jnp.ndarray): Rotational inertia about the
                center of mass, in the body frame (shape: :math:`(3, 3)`).

        Returns:
            (RigidBody): The new body.
        """
        return self._tree.add_rigid_body(RigidBody(name, mass, com, rotational_inertia))

    @_pre_finalize
    def add_body(self, body):
        return self._tree.add_rigid_body(body)

    @_pre_finalize
    def add_joint(self, joint):
        return self._tree.add_joint(joint)

    @_pre_finalize
    def add_joint_actuator(self, name, joint):
        return self._tree.add_joint_actuator(JointActuator(name, joint))

    @_pre_finalize
    def add_force_element(self, element):
        r"""Adds a force element. At most one gravity field is allowed. """
        if isinstance(element, UniformGravityFieldElement):
            if self._gravity_field is not None:
                raise InvalidArgument(
                    "This model already contains a gravity field element."
                    " Only one gravity field element is allowed per model."
                )
            self._gravity_field = element
        return self._tree.add_force_element(element)

    @_pre_finalize
    def set_penetration_allowance(self, penetration_allowance=Defaults.PENETRATION_ALLOWANCE):
        r"""Sets the penetration allowance used to derive the penalty contact
        parameters at finalize.
        """
        if penetration_allowance <= 0:
            raise InvalidArgument(
                f"penetration_allowance must be positive! Got: {penetration_allowance}"
            )
        self._penetration_allowance = penetration_allowance

    @_pre_finalize
    def set_penalty_method_contact_parameters(self, stiffness, damping, time_scale=0.0):
        r"""Sets the penalty parameters explicitly; they are then not derived
        at finalize.
        """
        if stiffness < 0 or damping < 0 or time_scale < 0:
            raise InvalidArgument(
                "Penalty parameters cannot be negative! Got stiffness="
                f"{stiffness}, damping={damping}, time_scale={time_scale}."
            )
        self._penalty_parameters = PenaltyMethodContactParameters(
            float(stiffness), float(damping), float(time_scale)
        )

    # Geometry registration.

    @_pre_finalize
    def register_as_source_for_geometry_system(self, geometry_system):
        r"""Registers this plant as a source of `geometry_system`.

        Returns:
            The source id assigned by the engine.
        """
        if geometry_system is None:
            raise InvalidArgument("geometry_system cannot be None.")
        if self._source_id is not None:
            raise InvalidArgument(
                "This plant is already registered as a source for a"
                " GeometrySystem."
            )
        self._source_id = geometry_system.register_source("MultibodyPlant")
        self._geometry_system = geometry_system
        logger.debug("Registered as geometry source %d.", self._source_id)
        return self._source_id

    def _check_geometry_system(self, geometry_system, method_name):
        if geometry_system is None:
            raise InvalidArgument(f"{method_name}(): geometry_system cannot be None.")
        if self._source_id is None:
            raise InvalidArgument(
                f"{method_name}(): register_as_source_for_geometry_system() must"
                " be called first."
            )
        if geometry_system is not self._geometry_system:
            raise InvalidArgument(
                "Geometry registration calls must be performed on the SAME"
                " instance of GeometrySystem used on the first call to"
                " register_as_source_for_geometry_system()"
            )

    def _register_geometry(self, body, X_BG, shape, geometry_system, method_name):
        self._check_geometry_system(geometry_system, method_name)
        if not self._tree._owns_body(body):
            raise InvalidArgument(f"{method_name}(): body '{body.name}' is not part of this plant.")
        instance = make_geometry_instance(X_BG, shape, body.name)
        if body.index == self.world_index():
            geometry_id = geometry_system.register_anchored_geometry(self._source_id, instance)
        else:
            frame_id = self._body_index_to_frame_id.get(body.index)
            if frame_id is None:
                frame_id = geometry_system.register_frame(
                    self._source_id, GeometryFrame(body.name)
                )
                self._body_index_to_frame_id[body.index] = frame_id
            geometry_id = geometry_system.register_geometry(self._source_id, frame_id, instance)
        self._geometry_id_to_body_index[geometry_id] = body.index
        return geometry_id

    @_pre_finalize
    def register_visual_geometry(self, body, X_BG, shape, geometry_system):
        r"""Registers a visual geometry for `body`, posed at `X_BG` in the body
        frame. Geometry on the world body is anchored.

        Returns:
            The geometry id.
        """
        geometry_id = self._register_geometry(
            body, X_BG, shape, geometry_system, "register_visual_geometry"
        )
        self._geometry_id_to_visual_index[geometry_id] = len(self._geometry_id_to_visual_index)
        logger.debug("Registered visual geometry %d on '%s'.", geometry_id, body.name)
        return geometry_id

    @_pre_finalize
    def register_collision_geometry(self, body, X_BG, shape, geometry_system):
        r"""Registers a collision geometry for `body`. Same as
        :meth:`register_visual_geometry`, but the geometry takes part in
        contact.
        """
        geometry_id = self._register_geometry(
            body, X_BG, shape, geometry_system, "register_collision_geometry"
        )
        self._geometry_id_to_collision_index[geometry_id] = len(
            self._geometry_id_to_collision_index
        )
        logger.debug("Registered collision geometry %d on '%s'.", geometry_id, body.name)
        return geometry_id

    # Finalize.

    def finalize(self):
        r"""Ends model assembly.

        Finalizes the topology, declares the state and ports, fixes the frame
        id list and derives the penalty contact parameters (unless they were
        set explicitly). The geometry engine is not referenced afterwards.
        """
        self._throw_if_finalized("finalize")
        self._tree.finalize()
        self._finalize_plant_only()
        self._finalized = True
        logger.debug(
            "Finalized plant: %d bodies, %d joints, %d actuators, %d positions,"
            " %d velocities.",
            self.num_bodies(), self.num_joints(), self.num_actuators(),
            self.num_positions(), self.num_velocities(),
        )

    def _finalize_plant_only(self):
        bodies = self._tree.bodies
        if self.geometry_source_is_registered():
            self._frame_ids = list(self._body_index_to_frame_id.values())
            self._frame_node_indices = [
                bodies[i].node_index for i in self._body_index_to_frame_id
            ]
        self._collision_node_index = {
            geometry_id: bodies[self._geometry_id_to_body_index[geometry_id]].node_index
            for geometry_id in self._geometry_id_to_collision_index
        }
        self._declare_ports()

        if self.num_collision_geometries() > 0 and self._penalty_parameters.time_scale < 0:
            mass = max(body.default_mass for body in bodies)
            if self._gravity_field is not None:
                gravity = float(jnp.linalg.norm(self._gravity_field.gravity_vector))
            else:
                gravity = Defaults.GRAVITY
            self._penalty_parameters = estimate_penalty_method_parameters(
                mass, gravity, self._penetration_allowance
            )
        self._geometry_system = None

    def _declare_ports(self):
        self._input_ports, self._output_ports = [], []
        if self.num_actuators() > 0:
            self._actuation_port = self._declare_input_port(
                "actuation", self._tree.num_actuated_dofs
            )
        if self.geometry_source_is_registered():
            self._geometry_query_port = self._declare_input_port("geometry_query")
            self._frame_ids_port = self._declare_output_port(
                "geometry_ids", lambda context: self.get_frame_ids()
            )
            self._frame_poses_port = self._declare_output_port(
                "geometry_poses", self.calc_frame_pose_output
            )
        self._continuous_state_port = self._declare_output_port(
            "continuous_state", self.copy_continuous_state_out
        )

    def _declare_input_port(self, name, size=None):
        port = InputPort(name, len(self._input_ports), size)
        self._input_ports.append(port)
        return port

    def _declare_output_port(self, name, calc):
        port = OutputPort(name, len(self._output_ports), calc)
        self._output_ports.append(port)
        return port

    @_post_finalize
    def to_autodiff(self):
        r"""Returns a copy of this plant that evaluates on
        :class:`AutoDiffArray` s. The topology is shared.
        """
        plant = copy.copy(self)
        plant._set_scalar_type(ScalarType.AUTODIFF)
        # Output ports must evaluate on the copy.
        plant._declare_ports()
        return plant

    # Sizes and accessors.

    def world_body(self):
        return self._tree.world_body

    def world_index(self):
        return self._tree.world_body.index

    def get_body_by_name(self, name):
        return self._tree.get_body_by_name(name)

    def num_bodies(self):
        return self._tree.num_bodies

    def num_joints(self):
        return self._tree.num_joints

    def num_actuators(self):
        return self._tree.num_actuators

    def num_actuated_dofs(self):
        return self._tree.num_actuated_dofs

    def num_positions(self):
        return self._tree.num_positions

    def num_velocities(self):
        return self._tree.num_velocities

    def num_multibody_states(self):
        return self._tree.num_states

    def num_visual_geometries(self):
        return len(self._geometry_id_to_visual_index)

    def num_collision_geometries(self):
        return len(self._geometry_id_to_collision_index)

    def geometry_source_is_registered(self):
        return self._source_id is not None

    def get_source_id(self):
        return self._source_id

    def is_collision_geometry(self, geometry_id):
        return geometry_id in self._geometry_id_to_collision_index

    def body_has_registered_frame(self, body):
        return body.index in self._body_index_to_frame_id

    def get_body_from_geometry_id(self, geometry_id):
        return self._tree.bodies[self._geometry_id_to_body_index[geometry_id]]

    def gravity_field(self):
        return self._gravity_field

    def penalty_method_contact_parameters(self):
        return self._penalty_parameters

    @property
    def tree(self):
        return self._tree

    # Ports.

    @_post_finalize
    def get_actuation_input_port(self):
        if self._actuation_port is None:
            raise PreconditionNotMet("This plant has no actuators, hence no actuation input port.")
        return self._actuation_port

    @_post_finalize
    def get_geometry_query_input_port(self):
        if self._geometry_query_port is None:
            raise PreconditionNotMet(
                "This plant is not registered as a geometry source, hence it has"
                " no geometry query input port."
            )
        return self._geometry_query_port

    @_post_finalize
    def get_geometry_ids_output_port(self):
        if self._frame_ids_port is None:
            raise PreconditionNotMet("This plant is not registered as a geometry source.")
        return self._frame_ids_port

    @_post_finalize
    def get_geometry_poses_output_port(self):
        if self._frame_poses_port is None:
            raise PreconditionNotMet("This plant is not registered as a geometry source.")
        return self._frame_poses_port

    @_post_finalize
    def get_continuous_state_output_port(self):
        return self._continuous_state_port

    # Evaluation.

    @_post_finalize
    def create_default_context(self):
        r"""Returns a context with the default state: zero positions and
        velocities, except identity quaternions for floating joints.
        """
        x = jnp.concatenate([self._tree.default_positions(), jnp.zeros(self.num_velocities())])
        if self._scalar_type is ScalarType.AUTODIFF:
            x = to_autodiff(x)
        return Context(
            self.num_positions(), self.num_velocities(), x, len(self._input_ports)
        )

    @_post_finalize
    def get_frame_ids(self):
        return list(self._frame_ids)

    @_post_finalize
    def eval_position_kinematics(self, context):
        r"""Computes the world pose of every body and stores it in `context`.

        Returns:
            (PositionKinematicsCache)
        """
        q = context.get_positions()
        pc = PositionKinematicsCache(self._apply(self._tree.calc_position_kinematics, q))
        context.cache["position_kinematics"] = pc
        return pc

    @_post_finalize
    def eval_velocity_kinematics(self, context):
        r"""Computes the spatial velocity of every body and stores it in
        `context`. Position kinematics are evaluated first.

        Returns:
            (VelocityKinematicsCache)
        """
        pc = self.eval_position_kinematics(context)
        q, v = context.get_positions(), context.get_velocities()
        vc = VelocityKinematicsCache(
            self._apply(self._tree.calc_velocity_kinematics, q, v, pc.X_WB)
        )
        context.cache["velocity_kinematics"] = vc
        return vc

    @_post_finalize
    def calc_frame_pose_output(self, context):
        r"""World poses of the registered frames, in the order of
        :meth:`get_frame_ids`.
        """
        pc = self.eval_position_kinematics(context)
        return [pc.pose(node) for node in self._frame_node_indices]

    @_post_finalize
    def copy_continuous_state_out(self, context):
        return context.get_continuous_state()

    @_post_finalize
    def calc_mass_matrix(self, context):
        return self._apply(
            self._tree.calc_mass_matrix_via_inverse_dynamics, context.get_positions()
        )

    @_post_finalize
    def map_velocity_to_qdot(self, context, v):
        return self._apply(self._tree.map_velocity_to_qdot, context.get_positions(), v)

    @_post_finalize
    def map_qdot_to_velocity(self, context, qdot):
        return self._apply(self._tree.map_qdot_to_velocity, context.get_positions(), qdot)

    def _add_actuation(self, forces, u):
        for actuator in self._tree.actuators:
            forces = forces.add_generalized_force(
                actuator.joint.velocity_start, u[actuator.index]
            )
        return forces

    def _calc_contact_forces(self, context, X_WB, V_WB, body_forces):
        if self._scalar_type is not ScalarType.FLOAT:
            raise UnsupportedOperation("Only float is supported.")
        query = self.get_geometry_query_input_port().eval(context)
        return calc_contact_forces_by_penalty_method(
            query.compute_point_pair_penetration(),
            self._collision_node_index,
            X_WB,
            V_WB,
            self._penalty_parameters,
            body_forces,
        )

    @_post_finalize
    def calc_time_derivatives(self, context):
        r"""Computes :math:`\dot{x} = [\dot{q}; \dot{v}]`.

        The accelerations solve :math:`M(q) \dot{v} = -\tau`, where
        :math:`\tau` is the inverse dynamics residual at zero acceleration with
        the force elements, the actuation and the contact forces applied.

        Raises:
            PreconditionNotMet: If an actuated joint does not have exactly one
                degree of freedom.
            UnsupportedOperation: If the plant has collision geometry and is
                evaluated on autodiff arrays.
        """
        tree = self._tree
        q, v = context.get_positions(), context.get_velocities()
        vc = self.eval_velocity_kinematics(context)
        pc = context.cache["position_kinematics"]

        forces = self._apply(tree.calc_force_elements_contribution, q, v, pc.X_WB, vc.V_WB)

        if self.num_actuators() > 0:
            for actuator in tree.actuators:
                if actuator.joint.num_velocities != 1:
                    raise PreconditionNotMet(
                        f"Actuator '{actuator.name}' acts on joint"
                        f" '{actuator.joint.name}' with"
                        f" {actuator.joint.num_velocities} degrees of freedom."
                        " Only single degree of freedom joints can be actuated."
                    )
            u = self.get_actuation_input_port().eval(context)
            forces = self._apply(self._add_actuation, forces, u)

        M = self.calc_mass_matrix(context)

        if self.num_collision_geometries() > 0:
            forces = forces._replace(
                body_forces=self._calc_contact_forces(
                    context, pc.X_WB, vc.V_WB, forces.body_forces
                )
            )

        zero_vdot = jnp.zeros(self.num_velocities())
        tau = self._apply(
            lambda q, v, f: tree.calc_inverse_dynamics(
                q, v, zero_vdot, f.body_forces, f.generalized_forces
            ),
            q, v, forces,
        )
        vdot = self._apply(_solve_for_accelerations, M, tau)
        qdot = self._apply(tree.map_velocity_to_qdot, q, v)
        return concatenate([qdot, vdot])
