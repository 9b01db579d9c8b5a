import jax.numpy as jnp

from .utils.asserts import as_matrix3, as_vector3, assert_array


class RigidBody(object):
    r"""A rigid body of a multibody tree.

    The body frame B is the frame the body's joint moves. Mass properties are
    given about the center of mass, expressed in B. Bodies are created through
    :meth:`MultibodyPlant.add_rigid_body`, which assigns `index`; `node_index`
    (the position of the body in the tree's traversal order) is assigned when
    the plant is finalized.
    """

    def __init__(self, name, mass, com=None, rotational_inertia=None):
        r"""
        Args:
            name (str): Unique name of the body.
            mass (float): Default mass of the body.
            com (jnp.ndarray): Center of mass in the body frame
                (shape: :math:`(3)`, default: origin).
            rotational_inertia (jnp.ndarray): Rotational inertia about the
                center of mass, expressed in the body frame
                (shape: :math:`(3, 3)`, default: zeros, i.e. a point mass).
        """
        if mass < 0:
            raise ValueError(f"mass cannot be negative! Got: {mass}")
        if com is None:
            com = jnp.zeros(3)
        if rotational_inertia is None:
            rotational_inertia = jnp.zeros((3, 3))
        self.name = name
        self.default_mass = float(mass)
        self.com = as_vector3(com, "com")
        self.rotational_inertia = as_matrix3(rotational_inertia, "rotational_inertia")
        self.index = None
        self.node_index = None

    @classmethod
    def from_vertices(cls, name, vertices, masses=None):
        r"""Builds a body from a collection of "particles". By default, we
        assume a uniform (unit) mass distribution across the vertices.

        Args:
            vertices (jnp.ndarray): Particle positions in the body frame
                (shape: :math:`(N, 3)`).
            masses (jnp.ndarray): Mass of each particle (shape: :math:`(N)`).
        """
        assert_array(vertices, "vertices")
        if vertices.ndim != 2 or vertices.shape[-1] != 3:
            raise ValueError(
                "vertices must have two dimensions, and the last dimension must"
                f" be of shape 3. Got shape {vertices.shape} instead."
            )
        if masses is None:
            masses = jnp.ones(vertices.shape[0], dtype=vertices.dtype)
        assert_array(masses, "masses")
        com = cls.compute_center_of_mass(vertices, masses)
        inertia = cls.compute_inertia_body(vertices - com.reshape(-1, 3), masses)
        return cls(name, float(masses.sum()), com, inertia)

    @staticmethod
    def compute_center_of_mass(vertices, masses):
        r"""Computes the center of mass :math:`\frac{1}{M} \sum_{i} m_i r_i` of
        a set of particles.

        Args:
            vertices (jnp.ndarray): Particle positions (shape: :math:`(N, 3)`).
            masses (jnp.ndarray): Mass of each particle (shape: :math:`(N)`).

        Returns:
            (jnp.ndarray): Center of mass (shape: :math:`(3)`).
        """
        return (masses.reshape(-1, 1) * vertices).sum(0) / masses.sum()

    @staticmethod
    def compute_inertia_body(vertices, masses):
        r"""Computes the inertia tensor of a set of particles about the origin.

        For :math:`N` particles of mass :math:`m_i` at :math:`r_i`, this is
        :math:`I = \sum_{i=1}^{N} m_i ((r_i^T r_i) \mathbf{1}_3 - r_i r_i^T)`.

        Args:
            vertices (jnp.ndarray): Particle positions, relative to the center
                of mass (shape: :math:`(N, 3)`).
            masses (jnp.ndarray): Mass of each particle (shape: :math:`(N)`).

        Returns:
            (jnp.ndarray): Inertia tensor (shape: :math:`(3, 3)`).
        """
        N = vertices.shape[0]
        # rt_r: (N, 1, 1)
        rt_r = jnp.matmul(vertices.reshape(-1, 1, 3), vertices.reshape(-1, 3, 1))
        # r_rt: (N, 3, 3)
        r_rt = jnp.matmul(vertices.reshape(-1, 3, 1), vertices.reshape(-1, 1, 3))
        eye = jnp.eye(3, dtype=vertices.dtype)
        return ((rt_r * eye - r_rt) * masses.reshape(N, 1, 1)).sum(0)

    @staticmethod
    def rotational_inertia_in_world(rotational_inertia, rotmat):
        r"""Re-expresses a rotational inertia in the world frame:
        :math:`I_W = R I_B R^T`.

        Args:
            rotational_inertia (jnp.ndarray): Inertia in the body frame
                (shape: :math:`(3, 3)`).
            rotmat (jnp.ndarray): Orientation of the body in the world
                (shape: :math:`(3, 3)`).
        """
        return jnp.matmul(jnp.matmul(rotmat, rotational_inertia), rotmat.T)

    def __repr__(self):
        return f"RigidBody(name={self.name!r}, index={self.index}, mass={self.default_mass})"
