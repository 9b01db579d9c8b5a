"""Exceptions raised by gradplant.

All of these signal programming errors or unsupported requests. None of them
is retried or recovered from inside gradplant.
"""


class GradPlantError(Exception):
    """Base class of all gradplant errors. """


class LifecycleViolation(GradPlantError, RuntimeError):
    """A pre-finalize operation was called after `finalize()`, or a
    post-finalize operation before it.
    """


class InvalidArgument(GradPlantError, ValueError):
    """An argument is missing, malformed, or inconsistent with earlier calls
    (e.g., a different geometry engine than the registered one).
    """


class UnsupportedOperation(GradPlantError, NotImplementedError):
    """The operation is not supported for the plant's scalar type. """


class PreconditionNotMet(GradPlantError, RuntimeError):
    """A structural precondition of the model does not hold (e.g., an actuator
    on a joint with more than one degree of freedom).
    """


def post_finalize_error(method_name):
    return LifecycleViolation(
        f"Post-finalize calls to '{method_name}()' are not allowed; calls to"
        " this method must happen before finalize()."
    )


def pre_finalize_error(method_name):
    return LifecycleViolation(
        f"Pre-finalize calls to '{method_name}()' are not allowed; you must"
        " call finalize() first."
    )
