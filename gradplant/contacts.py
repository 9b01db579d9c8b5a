import logging
import math
from dataclasses import dataclass

import jax.numpy as jnp

from .transforms import shift_spatial_force, shift_spatial_velocity, spatial_vector
from .utils.defaults import Defaults

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PenaltyMethodContactParameters:
    r"""Parameters of the penalty contact model.

    A negative `time_scale` marks parameters that have not been derived yet.
    """

    stiffness: float = 0.0
    damping: float = 0.0
    time_scale: float = -1.0


def estimate_penalty_method_parameters(
    mass,
    gravity=Defaults.GRAVITY,
    penetration_allowance=Defaults.PENETRATION_ALLOWANCE,
    damping_ratio=Defaults.DAMPING_RATIO,
):
    r"""Estimates penalty parameters from a characteristic mass and gravity.

    The stiffness is chosen so that a body of mass `mass` resting on the
    ground under `gravity` penetrates by `penetration_allowance`:
    :math:`k = m g / a`. With :math:`\omega = \sqrt{k / m}` and
    :math:`t_s = 1 / \omega`, the damping is :math:`d = \zeta t_s / a`.

    Args:
        mass (float): Characteristic mass (e.g., the largest body mass).
        gravity (float): Magnitude of gravity.
        penetration_allowance (float): Penetration allowance :math:`a`.
        damping_ratio (float): Damping ratio :math:`\zeta`.

    Returns:
        (PenaltyMethodContactParameters)
    """
    if penetration_allowance <= 0:
        raise ValueError(
            f"penetration_allowance must be positive! Got: {penetration_allowance}"
        )
    # TODO: account for the configuration-dependent effective mass instead of
    # the largest body mass.
    stiffness = mass * gravity / penetration_allowance
    omega = math.sqrt(stiffness / mass) if mass > 0 else math.inf
    # Zero stiffness has no natural frequency.
    time_scale = 1.0 / omega if omega > 0 else math.inf
    damping = damping_ratio * time_scale / penetration_allowance
    logger.debug(
        "Penalty parameters: stiffness=%g, damping=%g, time_scale=%g.",
        stiffness, damping, time_scale,
    )
    return PenaltyMethodContactParameters(stiffness, damping, time_scale)


def calc_contact_forces_by_penalty_method(
    penetrations, geometry_node_index, X_WB, V_WB, parameters, body_forces
):
    r"""Adds penalty contact forces to `body_forces`.

    For every penetrating pair (A, B) with depth :math:`x` and normal
    :math:`\hat{n}_{BA}`, the contact point C is the midpoint of the two
    witness points. With the approach speed
    :math:`v_n = (v_{WBc} - v_{WAc}) \cdot \hat{n}_{BA}` (positive when the
    bodies move towards each other), the normal force magnitude is
    :math:`f_n = k x (1 + d v_n)`. Pairs with :math:`f_n \le 0` exert no force.
    A receives :math:`f_n \hat{n}_{BA}` at C and B the opposite; both are
    shifted to the body origins. The world body never receives a force.

    Args:
        penetrations (list): `PenetrationAsPointPair` s.
        geometry_node_index (dict): Node index of the body of every collision
            geometry. Pairs involving other geometries are ignored.
        X_WB (RigidTransform): Body poses, by node index.
        V_WB (jnp.ndarray): Body spatial velocities, by node index
            (shape: :math:`(num\_bodies, 6)`).
        parameters (PenaltyMethodContactParameters): Stiffness and damping.
        body_forces (jnp.ndarray): Accumulated spatial forces, by node index
            (shape: :math:`(num\_bodies, 6)`).

    Returns:
        (jnp.ndarray): `body_forces` plus the contact forces.
    """
    pairs = [
        pair for pair in penetrations
        if pair.id_A in geometry_node_index and pair.id_B in geometry_node_index
    ]
    if not pairs:
        return body_forces

    node_A = jnp.array([geometry_node_index[pair.id_A] for pair in pairs])
    node_B = jnp.array([geometry_node_index[pair.id_B] for pair in pairs])
    x = jnp.array([pair.depth for pair in pairs], dtype=body_forces.dtype)
    nhat_BA_W = jnp.stack([jnp.asarray(pair.nhat_BA_W) for pair in pairs])
    p_WC = 0.5 * jnp.stack(
        [jnp.asarray(pair.p_WCa) + jnp.asarray(pair.p_WCb) for pair in pairs]
    )

    # Velocities of the material points of A and B coincident with C.
    p_AoC_W = p_WC - X_WB.translation[node_A]
    p_BoC_W = p_WC - X_WB.translation[node_B]
    v_WAc = shift_spatial_velocity(V_WB[node_A], p_AoC_W)[:, 3:]
    v_WBc = shift_spatial_velocity(V_WB[node_B], p_BoC_W)[:, 3:]
    vn = ((v_WBc - v_WAc) * nhat_BA_W).sum(-1)

    fn = parameters.stiffness * x * (1.0 + parameters.damping * vn)
    fn = jnp.where(fn > 0.0, fn, 0.0)
    f_AC_W = fn[:, None] * nhat_BA_W

    mask_A = (node_A != 0).astype(body_forces.dtype)[:, None]
    mask_B = (node_B != 0).astype(body_forces.dtype)[:, None]
    F_AC_W = spatial_vector(jnp.zeros_like(f_AC_W), f_AC_W)
    F_Ao_W = shift_spatial_force(F_AC_W, -p_AoC_W)
    F_Bo_W = -shift_spatial_force(F_AC_W, -p_BoC_W)
    body_forces = body_forces.at[node_A].add(mask_A * F_Ao_W)
    body_forces = body_forces.at[node_B].add(mask_B * F_Bo_W)
    return body_forces
