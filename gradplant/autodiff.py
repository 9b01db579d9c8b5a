r"""Forward-mode automatic differentiation on top of `jax.jvp`.

An :class:`AutoDiffArray` pairs a value with the partial derivatives of every
one of its entries with respect to a fixed set of independent variables. The
derivatives of anything computed from such arrays are obtained by pushing the
input derivative columns through `jax.linearize`, so any function written in
`jax.numpy` can be evaluated on autodiff inputs with :func:`autodiff_apply`
and returns exact derivatives, never finite differences.

Example::

    x = initialize_autodiff(jnp.array([7.0, 9.0]))
    y = sin(x[0]) + x[1]
    autodiff_to_gradient_matrix(y)  # [[cos(7), 1]]
"""

import enum

import jax
import jax.numpy as jnp


class ScalarType(enum.Enum):
    """Numeric type a plant is instantiated on. """

    FLOAT = "float"
    AUTODIFF = "autodiff"


class AutoDiffArray(object):
    r"""An array of values together with their derivatives.

    Attributes:
        value (jnp.ndarray): Values (any shape).
        derivatives (jnp.ndarray): Partial derivatives, of shape
            ``value.shape + (num_derivatives,)``. The last axis indexes the
            independent variables. An array with zero derivatives behaves as a
            constant.
    """

    # Make numpy defer binary operators to ours.
    __array_priority__ = 100

    def __init__(self, value, derivatives=None):
        value = jnp.asarray(value)
        if not jnp.issubdtype(value.dtype, jnp.floating):
            value = value.astype(float)
        if derivatives is None:
            derivatives = jnp.zeros(value.shape + (0,), dtype=value.dtype)
        derivatives = jnp.asarray(derivatives, dtype=value.dtype)
        if derivatives.shape[:-1] != value.shape:
            raise ValueError(
                "derivatives must have shape value.shape + (num_derivatives,)."
                f" Got value shape {value.shape} and derivatives shape"
                f" {derivatives.shape}."
            )
        self.value = value
        self.derivatives = derivatives

    @property
    def shape(self):
        return self.value.shape

    @property
    def ndim(self):
        return self.value.ndim

    @property
    def size(self):
        return self.value.size

    @property
    def dtype(self):
        return self.value.dtype

    @property
    def num_derivatives(self):
        return self.derivatives.shape[-1]

    @property
    def T(self):
        return autodiff_apply(jnp.transpose, self)

    def reshape(self, *shape):
        return autodiff_apply(lambda x: x.reshape(*shape), self)

    def __len__(self):
        return len(self.value)

    def __getitem__(self, index):
        return autodiff_apply(lambda x: x[index], self)

    def __neg__(self):
        return autodiff_apply(jnp.negative, self)

    def __add__(self, other):
        return _binary(jnp.add, self, other)

    def __radd__(self, other):
        return _binary(jnp.add, other, self)

    def __sub__(self, other):
        return _binary(jnp.subtract, self, other)

    def __rsub__(self, other):
        return _binary(jnp.subtract, other, self)

    def __mul__(self, other):
        return _binary(jnp.multiply, self, other)

    def __rmul__(self, other):
        return _binary(jnp.multiply, other, self)

    def __truediv__(self, other):
        return _binary(jnp.divide, self, other)

    def __rtruediv__(self, other):
        return _binary(jnp.divide, other, self)

    def __pow__(self, other):
        return _binary(jnp.power, self, other)

    def __rpow__(self, other):
        return _binary(jnp.power, other, self)

    def __matmul__(self, other):
        return _binary(jnp.matmul, self, other)

    def __rmatmul__(self, other):
        return _binary(jnp.matmul, other, self)

    def __repr__(self):
        return (
            f"AutoDiffArray(value={self.value}, "
            f"num_derivatives={self.num_derivatives})"
        )


def is_autodiff(x):
    return isinstance(x, AutoDiffArray)


def _is_variable(x):
    # Zero-width autodiff arrays carry no derivative information.
    return is_autodiff(x) and x.num_derivatives > 0


def _binary(op, a, b):
    # Plain operands are closed over so that they are never differentiated.
    if is_autodiff(a) and is_autodiff(b):
        return autodiff_apply(op, a, b)
    if is_autodiff(a):
        return autodiff_apply(lambda x: op(x, b), a)
    return autodiff_apply(lambda y: op(a, y), b)


def autodiff_apply(fun, *args):
    r"""Evaluates `fun(*args)`, propagating derivatives.

    `args` may be arbitrary pytrees (e.g., a :class:`RigidTransform` or a
    kinematics cache) whose leaves are plain arrays, Python numbers or
    :class:`AutoDiffArray` s. Plain leaves are treated as constants. All
    autodiff leaves carrying derivatives must agree on the number of
    derivatives.

    Args:
        fun (callable): A function written in `jax.numpy` that maps the plain
            values of `args` to a pytree of arrays.

    Returns:
        The output pytree of `fun`, with each array leaf wrapped as an
        :class:`AutoDiffArray`.
    """
    leaves, treedef = jax.tree_util.tree_flatten(args, is_leaf=is_autodiff)
    leaves = [leaf.value if is_autodiff(leaf) and not _is_variable(leaf) else leaf
              for leaf in leaves]
    slots = [i for i, leaf in enumerate(leaves) if _is_variable(leaf)]

    def fun_of_variables(*variables):
        full = list(leaves)
        for i, variable in zip(slots, variables):
            full[i] = variable
        return fun(*jax.tree_util.tree_unflatten(treedef, full))

    if not slots:
        return jax.tree_util.tree_map(to_autodiff, fun_of_variables())

    num_derivatives = leaves[slots[0]].num_derivatives
    for i in slots:
        if leaves[i].num_derivatives != num_derivatives:
            raise ValueError(
                "All autodiff arguments must have the same number of derivatives."
                f" Got {num_derivatives} and {leaves[i].num_derivatives}."
            )

    values = [leaves[i].value for i in slots]
    tangents = [leaves[i].derivatives for i in slots]
    out, pushforward = jax.linearize(fun_of_variables, *values)
    derivatives = jax.vmap(pushforward, in_axes=-1, out_axes=-1)(*tangents)
    return jax.tree_util.tree_map(AutoDiffArray, out, derivatives)


def _elementwise(fn):
    def apply(x):
        if is_autodiff(x):
            return autodiff_apply(fn, x)
        return fn(x)

    apply.__name__ = fn.__name__
    apply.__doc__ = f"`jnp.{fn.__name__}` for plain or autodiff arrays."
    return apply


sin = _elementwise(jnp.sin)
cos = _elementwise(jnp.cos)
tan = _elementwise(jnp.tan)
exp = _elementwise(jnp.exp)
log = _elementwise(jnp.log)
sqrt = _elementwise(jnp.sqrt)
absolute = _elementwise(jnp.abs)


def stack(arrays, axis=0):
    if any(is_autodiff(a) for a in arrays):
        return autodiff_apply(lambda *a: jnp.stack(a, axis=axis), *arrays)
    return jnp.stack(arrays, axis=axis)


def concatenate(arrays, axis=0):
    if any(is_autodiff(a) for a in arrays):
        return autodiff_apply(lambda *a: jnp.concatenate(a, axis=axis), *arrays)
    return jnp.concatenate(arrays, axis=axis)


def to_autodiff(x):
    r"""Casts a plain array to an :class:`AutoDiffArray` with zero derivatives
    (i.e., an empty gradient). Autodiff inputs are returned unchanged.
    """
    if is_autodiff(x):
        return x
    return AutoDiffArray(x)


def initialize_autodiff(values, num_derivatives=None, deriv_num_start=0):
    r"""Marks every entry of `values` as an independent variable.

    Entry `i` (in row-major order) receives a unit derivative with respect to
    variable ``deriv_num_start + i``.

    Args:
        values (jnp.ndarray): Values of the independent variables.
        num_derivatives (int): Total number of derivatives (default:
            ``values.size``).
        deriv_num_start (int): Index of the variable of the first entry.
    """
    values = jnp.asarray(values, dtype=float)
    if num_derivatives is None:
        num_derivatives = values.size
    if deriv_num_start < 0 or deriv_num_start + values.size > num_derivatives:
        raise ValueError(
            f"Cannot seed {values.size} variables starting at {deriv_num_start}"
            f" with only {num_derivatives} derivatives."
        )
    seeds = jnp.eye(num_derivatives, dtype=values.dtype)[
        deriv_num_start:deriv_num_start + values.size
    ]
    return AutoDiffArray(values, seeds.reshape(values.shape + (num_derivatives,)))


def initialize_autodiff_given_gradient_matrix(values, gradient):
    r"""Builds an :class:`AutoDiffArray` from values and a gradient matrix of
    shape ``(values.size, num_derivatives)``.
    """
    values = jnp.asarray(values, dtype=float)
    gradient = jnp.asarray(gradient, dtype=values.dtype)
    if gradient.ndim != 2 or gradient.shape[0] != values.size:
        raise ValueError(
            f"gradient must be of shape ({values.size}, num_derivatives)."
            f" Got shape {gradient.shape} instead."
        )
    return AutoDiffArray(values, gradient.reshape(values.shape + gradient.shape[1:]))


def autodiff_to_value_matrix(x):
    return discard_gradient(x)


def autodiff_to_gradient_matrix(x):
    r"""Returns the gradient matrix of shape ``(x.size, num_derivatives)``.
    Plain arrays have an empty gradient.
    """
    if not is_autodiff(x):
        x = jnp.asarray(x)
        return jnp.zeros((x.size, 0), dtype=x.dtype)
    return x.derivatives.reshape(x.size, x.num_derivatives)


def _has_autodiff_leaves(x):
    leaves = jax.tree_util.tree_leaves(x, is_leaf=is_autodiff)
    return any(is_autodiff(leaf) for leaf in leaves)


def discard_gradient(x):
    r"""Strips derivatives, returning the plain values.

    Works on single arrays and on pytrees of them (e.g. a
    :class:`RigidTransform` with autodiff entries). Inputs with no autodiff
    leaves are returned as is (the same object).
    """
    if not _has_autodiff_leaves(x):
        return x
    return jax.tree_util.tree_map(
        lambda leaf: leaf.value if is_autodiff(leaf) else leaf, x, is_leaf=is_autodiff
    )


def discard_zero_gradient(x, tolerance=0.0):
    r"""Like :func:`discard_gradient`, but refuses to drop information.

    Raises:
        ValueError: If any derivative has magnitude larger than `tolerance`.
    """
    if not _has_autodiff_leaves(x):
        return x
    for leaf in jax.tree_util.tree_leaves(x, is_leaf=is_autodiff):
        if not is_autodiff(leaf) or leaf.derivatives.size == 0:
            continue
        largest = float(jnp.max(jnp.abs(leaf.derivatives)))
        # Also rejects NaN derivatives.
        if not largest <= tolerance:
            raise ValueError(
                "Cannot discard a nonzero gradient: found a derivative of"
                f" magnitude {largest}, larger than the tolerance {tolerance}."
            )
    return discard_gradient(x)
