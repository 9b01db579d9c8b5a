class Defaults(object):
    r"""Default values used across gradplant. """

    # Magnitude of Earth's gravity (m / s^2). Used both as the default gravity
    # field and, when no field is added, to estimate contact parameters.
    GRAVITY = 9.81

    # Default direction of the gravity field (world frame).
    GRAVITY_DIRECTION = (0.0, 0.0, -1.0)

    # Penetration allowance (m) used to estimate penalty contact parameters.
    PENETRATION_ALLOWANCE = 1e-3

    # Critical damping of the normal contact direction.
    DAMPING_RATIO = 1.0
