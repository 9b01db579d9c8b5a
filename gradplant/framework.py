r"""Minimal system framework: contexts and ports.

A :class:`Context` holds everything that changes between evaluations: the
continuous state :math:`x = [q; v]`, the values fixed on input ports, and the
cache entries computed from them. A finalized plant is immutable, so any number
of contexts can be evaluated against one plant independently.
"""

from .autodiff import concatenate
from .errors import InvalidArgument, PreconditionNotMet


class Context(object):
    def __init__(self, num_positions, num_velocities, x, num_input_ports=0):
        self.num_positions = num_positions
        self.num_velocities = num_velocities
        self._input_values = [None] * num_input_ports
        self.cache = {}
        self.set_continuous_state(x)

    def get_continuous_state(self):
        return self._x

    def set_continuous_state(self, x):
        if x.shape != (self.num_positions + self.num_velocities,):
            raise InvalidArgument(
                f"Expected a state of shape ({self.num_positions + self.num_velocities},)."
                f" Got shape {x.shape} instead."
            )
        self._x = x
        # Anything computed from the previous state is stale.
        self.cache.clear()

    def get_positions(self):
        return self._x[:self.num_positions]

    def get_velocities(self):
        return self._x[self.num_positions:]

    def set_positions_and_velocities(self, q, v):
        self.set_continuous_state(concatenate([q, v]))

    def fix_input_port(self, index, value):
        if not 0 <= index < len(self._input_values):
            raise InvalidArgument(f"Input port index {index} is out of range.")
        self._input_values[index] = value
        self.cache.clear()

    def get_input_value(self, index):
        return self._input_values[index]


class InputPort(object):
    def __init__(self, name, index, size=None):
        self.name = name
        self.index = index
        self.size = size

    def fix_value(self, context, value):
        if self.size is not None and len(value) != self.size:
            raise InvalidArgument(
                f"Input port '{self.name}' expects {self.size} values. Got {len(value)}."
            )
        context.fix_input_port(self.index, value)

    def eval(self, context):
        value = context.get_input_value(self.index)
        if value is None:
            raise PreconditionNotMet(
                f"Input port '{self.name}' is not connected and has no fixed value."
            )
        return value

    def __repr__(self):
        return f"InputPort(name={self.name!r}, index={self.index})"


class OutputPort(object):
    def __init__(self, name, index, calc):
        self.name = name
        self.index = index
        self._calc = calc

    def eval(self, context):
        return self._calc(context)

    def __repr__(self):
        return f"OutputPort(name={self.name!r}, index={self.index})"
