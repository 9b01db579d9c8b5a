import numpy as np
import jax.numpy as jnp


def assert_array(var, varname):
    r"""Assert that the variable is an array (jnp.ndarray or np.ndarray)."""
    if not isinstance(var, (jnp.ndarray, np.ndarray)):
        raise TypeError(
            f"Expected {varname} of type jnp.ndarray. Got {type(var)} instead."
        )


def as_vector3(var, varname):
    r"""Convert `var` to a float array of shape :math:`(3)`, raising a
    `ValueError` on any other shape.
    """
    arr = jnp.asarray(var, dtype=float)
    if arr.shape != (3,):
        raise ValueError(
            f"{varname} must be of shape (3,). Got shape {arr.shape} instead."
        )
    return arr


def as_matrix3(var, varname):
    r"""Convert `var` to a float array of shape :math:`(3, 3)`."""
    arr = jnp.asarray(var, dtype=float)
    if arr.shape != (3, 3):
        raise ValueError(
            f"{varname} must be of shape (3, 3). Got shape {arr.shape} instead."
        )
    return arr
