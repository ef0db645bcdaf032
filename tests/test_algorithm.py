from types import SimpleNamespace

import numpy as np
import pytest

from slamkit.algorithm import to_vec2, triangulation
from slamkit.lie import SE3


def test_triangulation_recovers_point():
    pt_world = np.array([30.0, 20.0, 10.0])
    poses = [
        SE3.from_quaternion(0, 0, 0, 1, translation=[0, 0, 0]),
        SE3.from_quaternion(0, 0, 0, 1, translation=[0, -10, 0]),
        SE3.from_quaternion(0, 0, 0, 1, translation=[0, 10, 0]),
    ]
    points = []
    for pose in poses:
        pc = pose * pt_world
        points.append(pc / pc[2])

    estimated = triangulation(poses, points)
    assert estimated is not None
    assert estimated[0] == pytest.approx(pt_world[0], abs=0.01)
    assert estimated[1] == pytest.approx(pt_world[1], abs=0.01)
    assert estimated[2] == pytest.approx(pt_world[2], abs=0.01)


def test_triangulation_two_views():
    pt_world = np.array([1.0, -2.0, 8.0])
    poses = [SE3(), SE3(translation=[-0.5, 0.0, 0.0])]
    points = [(pose * pt_world) / (pose * pt_world)[2] for pose in poses]
    estimated = triangulation(poses, points)
    assert estimated is not None
    np.testing.assert_allclose(estimated, pt_world, atol=1e-6)


def test_triangulation_degenerate_returns_none():
    poses = [SE3(), SE3()]
    points = [np.array([0.5, 0.2, 1.0]), np.array([0.5, 0.2, 1.0])]
    assert triangulation(poses, points) is None


def test_triangulation_length_mismatch():
    with pytest.raises(ValueError):
        triangulation([SE3(), SE3()], [np.array([0.0, 0.0, 1.0])])


def test_triangulation_needs_two_views():
    with pytest.raises(ValueError):
        triangulation([SE3()], [np.array([0.0, 0.0, 1.0])])


def test_to_vec2_from_attributes():
    np.testing.assert_allclose(to_vec2(SimpleNamespace(x=1.5, y=2.5)), [1.5, 2.5])


def test_to_vec2_from_sequence():
    np.testing.assert_allclose(to_vec2((3.0, -4.0)), [3.0, -4.0])


def test_to_vec2_rejects_wrong_size():
    with pytest.raises(ValueError):
        to_vec2((1.0, 2.0, 3.0))