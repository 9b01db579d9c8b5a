import pytest
import jax.numpy as jnp

from gradplant.bodies import RigidBody


def test_assertions():
    pytest.raises(TypeError, RigidBody)
    with pytest.raises(ValueError):
        RigidBody("body", -1.0)
    with pytest.raises(ValueError):
        RigidBody("body", 1.0, com=jnp.zeros(2))
    with pytest.raises(TypeError):
        RigidBody.from_vertices("body", [[0.0, 0.0, 0.0]])
    with pytest.raises(ValueError):
        RigidBody.from_vertices("body", jnp.zeros((4, 2)))


def test_defaults():
    body = RigidBody("body", 2.0)
    assert body.default_mass == 2.0
    assert jnp.allclose(body.com, jnp.zeros(3))
    assert jnp.allclose(body.rotational_inertia, jnp.zeros((3, 3)))
    assert body.index is None and body.node_index is None


def test_create_body_from_vertices():
    cube_verts = jnp.array(
        [
            [1.0, 1.0, 1.0],
            [1.0, -1.0, 1.0],
            [1.0, -1.0, -1.0],
            [1.0, 1.0, -1.0],
            [-1.0, 1.0, 1.0],
            [-1.0, -1.0, 1.0],
            [-1.0, -1.0, -1.0],
            [-1.0, 1.0, -1.0],
        ]
    )
    cube = RigidBody.from_vertices("cube", cube_verts + 1)
    assert cube.default_mass == 8.0
    assert jnp.allclose(cube.com, jnp.ones(3))
    # Each unit particle sits at distance sqrt(2) from every axis.
    assert jnp.allclose(cube.rotational_inertia, 16.0 * jnp.eye(3))


def test_inertia_in_world():
    inertia = jnp.diag(jnp.array([1.0, 2.0, 3.0]))
    # Quarter turn about z swaps the x and y moments.
    rotmat = jnp.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    assert jnp.allclose(
        RigidBody.rotational_inertia_in_world(inertia, rotmat),
        jnp.diag(jnp.array([2.0, 1.0, 3.0])),
    )
