r"""A small in-memory geometry engine.

The plant treats the geometry engine as a collaborator: it registers itself
as a source, registers one frame per body carrying geometry, registers
geometries under those frames (or anchored to the world), and, at evaluation
time, reads a :class:`QueryObject` from its geometry query input port to
obtain the list of penetrating pairs.

This engine supports spheres and half-spaces only. Half-spaces occupy
:math:`z \le 0` of their own frame, i.e. their outward normal is the
:math:`+z` axis of the geometry pose.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Any, NewType

import jax.numpy as jnp

from .errors import InvalidArgument
from .transforms import RigidTransform

logger = logging.getLogger(__name__)

SourceId = NewType("SourceId", int)
FrameId = NewType("FrameId", int)
GeometryId = NewType("GeometryId", int)

# Identifiers are unique across all engines in the process.
_ids = itertools.count(1)


class Shape(object):
    """Base class of geometric shapes. """


class Sphere(Shape):
    def __init__(self, radius):
        if radius <= 0:
            raise ValueError(f"radius must be positive! Got: {radius}")
        self.radius = float(radius)

    def __repr__(self):
        return f"Sphere(radius={self.radius})"


class HalfSpace(Shape):
    def __repr__(self):
        return "HalfSpace()"


@dataclass(frozen=True)
class GeometryFrame:
    name: str
    pose: Any = None


@dataclass(frozen=True)
class GeometryInstance:
    r"""A shape posed in a frame (`pose` is :math:`X_{FG}`). """

    pose: Any
    shape: Shape
    name: str = ""


@dataclass(frozen=True)
class PenetrationAsPointPair:
    r"""A pair of penetrating geometries A and B.

    Attributes:
        id_A, id_B: Geometry ids.
        depth: Penetration depth (positive).
        nhat_BA_W: Unit normal pointing from B into A, in world.
        p_WCa: Point on A's surface deepest inside B, in world.
        p_WCb: Point on B's surface deepest inside A, in world.
    """

    id_A: GeometryId
    id_B: GeometryId
    depth: Any
    nhat_BA_W: Any
    p_WCa: Any
    p_WCb: Any


class _Geometry(object):
    def __init__(self, geometry_id, source_id, frame_id, instance):
        self.id = geometry_id
        self.source_id = source_id
        # None for anchored geometry.
        self.frame_id = frame_id
        self.instance = instance


class GeometrySystem(object):
    """Registry of sources, frames and geometries. """

    def __init__(self):
        self._sources = {}
        self._frames = {}
        self._geometries = {}

    def register_source(self, name="source"):
        source_id = SourceId(next(_ids))
        self._sources[source_id] = name
        logger.debug("Registered geometry source '%s' (%d).", name, source_id)
        return source_id

    def _check_source(self, source_id):
        if source_id not in self._sources:
            raise InvalidArgument(f"Source {source_id} is not registered.")

    def register_frame(self, source_id, frame):
        self._check_source(source_id)
        frame_id = FrameId(next(_ids))
        self._frames[frame_id] = (source_id, frame)
        return frame_id

    def register_geometry(self, source_id, frame_id, instance):
        self._check_source(source_id)
        if frame_id not in self._frames:
            raise InvalidArgument(f"Frame {frame_id} is not registered.")
        geometry_id = GeometryId(next(_ids))
        self._geometries[geometry_id] = _Geometry(geometry_id, source_id, frame_id, instance)
        return geometry_id

    def register_anchored_geometry(self, source_id, instance):
        self._check_source(source_id)
        geometry_id = GeometryId(next(_ids))
        self._geometries[geometry_id] = _Geometry(geometry_id, source_id, None, instance)
        return geometry_id

    @property
    def num_frames(self):
        return len(self._frames)

    @property
    def num_geometries(self):
        return len(self._geometries)

    def get_frame(self, frame_id):
        return self._frames[frame_id][1]

    def make_query_object(self, frame_ids, frame_poses, geometry_ids=None):
        r"""Snapshots the world poses of the registered geometries.

        Args:
            frame_ids (list): Frame ids, as emitted by a source's frame id
                output port.
            frame_poses (list): World poses :math:`X_{WF}` of those frames, in
                the same order.
            geometry_ids (iterable): If given, only these geometries take part
                in queries (e.g., only the collision geometries of a plant).
        """
        if len(frame_ids) != len(frame_poses):
            raise InvalidArgument(
                f"Got {len(frame_ids)} frame ids but {len(frame_poses)} poses."
            )
        X_WF = dict(zip(frame_ids, frame_poses))
        if geometry_ids is None:
            geometry_ids = self._geometries.keys()
        posed = []
        for geometry_id in geometry_ids:
            geometry = self._geometries[geometry_id]
            X_FG = geometry.instance.pose
            if geometry.frame_id is None:
                X_WG = X_FG
            elif geometry.frame_id in X_WF:
                X_WG = X_WF[geometry.frame_id] @ X_FG
            else:
                raise InvalidArgument(
                    f"No pose was provided for frame {geometry.frame_id}."
                )
            posed.append((geometry, X_WG))
        return QueryObject(posed=posed)


def _sphere_sphere(id_A, X_WA, rA, id_B, X_WB, rB):
    p_BA = X_WA.translation - X_WB.translation
    distance = jnp.linalg.norm(p_BA)
    depth = rA + rB - distance
    if depth <= 0 or distance == 0:
        return None
    nhat_BA_W = p_BA / distance
    return PenetrationAsPointPair(
        id_A, id_B, depth, nhat_BA_W,
        X_WA.translation - rA * nhat_BA_W,
        X_WB.translation + rB * nhat_BA_W,
    )


def _sphere_halfspace(id_A, X_WA, rA, id_B, X_WB):
    nhat_BA_W = X_WB.rotation[:, 2]
    height = jnp.dot(X_WA.translation - X_WB.translation, nhat_BA_W)
    depth = rA - height
    if depth <= 0:
        return None
    return PenetrationAsPointPair(
        id_A, id_B, depth, nhat_BA_W,
        X_WA.translation - rA * nhat_BA_W,
        X_WA.translation - height * nhat_BA_W,
    )


class QueryObject(object):
    r"""Answers proximity queries for one configuration.

    Either built by :meth:`GeometrySystem.make_query_object` or constructed
    directly from a precomputed list of `penetrations`.
    """

    def __init__(self, penetrations=None, posed=None):
        self._penetrations = penetrations
        self._posed = posed if posed is not None else []

    def compute_point_pair_penetration(self):
        r"""Returns a list of :class:`PenetrationAsPointPair`, one per pair of
        penetrating geometries. Pairs of geometries in the same frame and pairs
        of anchored geometries are never reported.
        """
        if self._penetrations is not None:
            return list(self._penetrations)
        pairs = []
        for (a, X_WA), (b, X_WB) in itertools.combinations(self._posed, 2):
            if a.frame_id == b.frame_id:
                continue
            shape_a, shape_b = a.instance.shape, b.instance.shape
            if isinstance(shape_a, HalfSpace) and isinstance(shape_b, Sphere):
                (a, X_WA, shape_a), (b, X_WB, shape_b) = (b, X_WB, shape_b), (a, X_WA, shape_a)
            if isinstance(shape_a, Sphere) and isinstance(shape_b, Sphere):
                pair = _sphere_sphere(a.id, X_WA, shape_a.radius, b.id, X_WB, shape_b.radius)
            elif isinstance(shape_a, Sphere) and isinstance(shape_b, HalfSpace):
                pair = _sphere_halfspace(a.id, X_WA, shape_a.radius, b.id, X_WB)
            else:
                continue
            if pair is not None:
                pairs.append(pair)
        return pairs


def make_geometry_instance(X_BG, shape, name=""):
    if not isinstance(X_BG, RigidTransform):
        raise TypeError(f"Expected X_BG of type RigidTransform. Got {type(X_BG)} instead.")
    if not isinstance(shape, Shape):
        raise TypeError(f"Expected shape of type Shape. Got {type(shape)} instead.")
    return GeometryInstance(X_BG, shape, name)
