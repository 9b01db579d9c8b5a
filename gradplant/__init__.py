import jax

# Derivatives are compared against analytic values to 1e-10.
jax.config.update("jax_enable_x64", True)

from .autodiff import (  # noqa: E402
    AutoDiffArray,
    ScalarType,
    autodiff_apply,
    autodiff_to_gradient_matrix,
    autodiff_to_value_matrix,
    discard_gradient,
    discard_zero_gradient,
    initialize_autodiff,
    initialize_autodiff_given_gradient_matrix,
    is_autodiff,
    to_autodiff,
)
from .bodies import RigidBody  # noqa: E402
from .contacts import PenaltyMethodContactParameters  # noqa: E402
from .errors import (  # noqa: E402
    GradPlantError,
    InvalidArgument,
    LifecycleViolation,
    PreconditionNotMet,
    UnsupportedOperation,
)
from .forces import MultibodyForces, UniformGravityFieldElement  # noqa: E402
from .framework import Context  # noqa: E402
from .geometry import (  # noqa: E402
    GeometrySystem,
    HalfSpace,
    PenetrationAsPointPair,
    QueryObject,
    Sphere,
)
from .joints import (  # noqa: E402
    JointActuator,
    PrismaticJoint,
    QuaternionFloatingJoint,
    RevoluteJoint,
    WeldJoint,
)
from .plant import MultibodyPlant  # noqa: E402
from .transforms import RigidTransform  # noqa: E402

__version__ = "0.1.0"
