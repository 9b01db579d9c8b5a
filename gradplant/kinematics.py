from typing import Any, NamedTuple


class PositionKinematicsCache(NamedTuple):
    r"""World poses of all bodies.

    `X_WB` is a :class:`gradplant.transforms.RigidTransform` with rotations of
    shape :math:`(num\_bodies, 3, 3)` and translations of shape
    :math:`(num\_bodies, 3)`, indexed by body node index.
    """

    X_WB: Any

    def pose(self, node_index):
        return self.X_WB.select(node_index)


class VelocityKinematicsCache(NamedTuple):
    r"""Spatial velocities :math:`[\omega; v]` of all body frame origins,
    expressed in the world frame (shape: :math:`(num\_bodies, 6)`), indexed by
    body node index.
    """

    V_WB: Any

    def spatial_velocity(self, node_index):
        return self.V_WB[node_index]
