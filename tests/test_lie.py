import math

import numpy as np
import pytest

from slamkit.lie import (
    SE3,
    SO3,
    angle_axis_matrix,
    euler_angles_zyx,
    matrix_to_quaternion,
    quaternion_to_matrix,
    relative_point,
)

Z_AXIS = [0.0, 0.0, 1.0]


def quarter_turn():
    return angle_axis_matrix(math.pi / 2, Z_AXIS)


def test_so3_from_matrix_and_quaternion_agree():
    r = quarter_turn()
    q = matrix_to_quaternion(r)
    np.testing.assert_allclose(SO3(r).matrix(), r, atol=1e-12)
    np.testing.assert_allclose(SO3.from_quaternion(*q).matrix(), r, atol=1e-12)


def test_so3_log_of_quarter_turn():
    np.testing.assert_allclose(SO3(quarter_turn()).log(), [0, 0, math.pi / 2], atol=1e-12)


@pytest.mark.parametrize("v", [[0.1, 0.2, 0.3], [1.0, -2.0, 0.5], [0.0, 0.0, 0.0]])
def test_so3_hat_vee(v):
    h = SO3.hat(v)
    np.testing.assert_allclose(h, -h.T)
    np.testing.assert_allclose(SO3.vee(h), v)
    np.testing.assert_allclose(h @ np.array([0.3, -0.7, 1.1]), np.cross(v, [0.3, -0.7, 1.1]))


@pytest.mark.parametrize(
    "omega", [[1e-12, 0.0, 0.0], [0.3, -0.2, 0.9], [3.0, 0.0, 0.0], [0.0, 0.0, 0.0]]
)
def test_so3_exp_log_round_trip(omega):
    np.testing.assert_allclose(SO3.exp(omega).log(), omega, atol=1e-10)


def test_so3_small_update_stays_rotation():
    r = SO3(quarter_turn())
    updated = SO3.exp([1e-4, 0, 0]) * r
    m = updated.matrix()
    np.testing.assert_allclose(m @ m.T, np.eye(3), atol=1e-12)
    np.testing.assert_allclose(m, r.matrix(), atol=1e-3)


def test_so3_inverse_and_rotation():
    r = SO3.exp([0.4, -0.1, 0.7])
    np.testing.assert_allclose((r * r.inverse()).matrix(), np.eye(3), atol=1e-12)
    v = np.array([1.0, 2.0, 3.0])
    np.testing.assert_allclose(r * v, r.matrix() @ v)


def test_so3_rejects_non_rotation():
    with pytest.raises(ValueError):
        SO3(np.diag([2.0, 1.0, 1.0]))
    with pytest.raises(ValueError):
        SO3(np.diag([1.0, 1.0, -1.0]))


def test_zero_quaternion_rejected():
    with pytest.raises(ValueError):
        SO3.from_quaternion(0, 0, 0, 0)


@pytest.mark.parametrize(
    "xi",
    [
        [1e-4, 0, 0, 0, 0, 0],
        [1.0, 0.5, -0.3, 0.2, -0.4, 0.9],
        [0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
        [2.0, -1.0, 0.5, 1e-13, 0.0, 0.0],
    ],
)
def test_se3_exp_log_round_trip(xi):
    np.testing.assert_allclose(SE3.exp(xi).log(), xi, atol=1e-10)


def test_se3_log_rotation_part():
    t = SE3(quarter_turn(), [1.0, 0.0, 0.0])
    xi = t.log()
    np.testing.assert_allclose(xi[3:], [0, 0, math.pi / 2], atol=1e-12)
    np.testing.assert_allclose(SE3.exp(xi).matrix(), t.matrix(), atol=1e-12)


def test_se3_hat_vee():
    xi = np.array([0.1, 0.2, 0.3, 0.4, 0.5, 0.6])
    h = SE3.hat(xi)
    np.testing.assert_allclose(h[3], np.zeros(4))
    np.testing.assert_allclose(SE3.vee(h), xi)


def test_se3_matrix_layout():
    r = quarter_turn()
    t = SE3(r, [1.0, 2.0, 3.0])
    m = t.matrix()
    np.testing.assert_allclose(m[:3, :3], r, atol=1e-12)
    np.testing.assert_allclose(m[:3, 3], [1.0, 2.0, 3.0])
    np.testing.assert_allclose(m[3], [0, 0, 0, 1])
    np.testing.assert_allclose(t.matrix3x4(), m[:3])


def test_se3_inverse_and_points():
    t = SE3.exp([0.5, -0.2, 1.0, 0.3, 0.1, -0.6])
    np.testing.assert_allclose((t * t.inverse()).matrix(), np.eye(4), atol=1e-12)
    pts = np.array([[1.0, 2.0], [0.0, -1.0], [3.0, 0.5]])
    np.testing.assert_allclose(t.inverse() * (t * pts), pts, atol=1e-12)


def test_se3_adjoint():
    t = SE3.exp([0.5, -0.2, 1.0, 0.3, 0.1, -0.6])
    xi = np.array([0.01, 0.02, -0.03, 0.04, -0.02, 0.01])
    lhs = t * SE3.exp(xi) * t.inverse()
    rhs = SE3.exp(t.adjoint() @ xi)
    np.testing.assert_allclose(lhs.matrix(), rhs.matrix(), atol=1e-12)


def test_se3_from_quaternion_matches_matrix():
    q = (0.35, 0.2, 0.3, 0.1)
    t = SE3.from_quaternion(*q, translation=[0.3, 0.1, 0.1])
    np.testing.assert_allclose(t.matrix()[:3, :3], quaternion_to_matrix(*q), atol=1e-12)
    np.testing.assert_allclose(np.linalg.norm(t.unit_quaternion()), 1.0)


@pytest.mark.parametrize(
    "q", [(1, 0, 0, 0), (0, 1, 0, 0), (0, 0, 1, 0), (0, 0, 0, 1), (-0.5, 0.4, -0.1, 0.2)]
)
def test_quaternion_round_trip(q):
    qn = np.array(q, float) / np.linalg.norm(q)
    back = matrix_to_quaternion(quaternion_to_matrix(*q))
    assert min(np.linalg.norm(back - qn), np.linalg.norm(back + qn)) < 1e-12


def test_angle_axis_matches_exp():
    axis = np.array([1.0, -2.0, 0.5])
    unit = axis / np.linalg.norm(axis)
    np.testing.assert_allclose(
        angle_axis_matrix(0.8, axis), SO3.exp(0.8 * unit).matrix(), atol=1e-12
    )
    v = angle_axis_matrix(math.pi / 4, Z_AXIS) @ [1.0, 0.0, 0.0]
    np.testing.assert_allclose(v, [math.cos(math.pi / 4), math.sin(math.pi / 4), 0], atol=1e-12)


def test_angle_axis_zero_axis():
    with pytest.raises(ValueError):
        angle_axis_matrix(1.0, [0, 0, 0])


@pytest.mark.parametrize("angles", [(math.pi / 4, 0.0, 0.0), (1.0, 0.3, -0.5), (2.5, -1.0, 2.0)])
def test_euler_angles_round_trip(angles):
    yaw, pitch, roll = angles
    r = (
        angle_axis_matrix(yaw, Z_AXIS)
        @ angle_axis_matrix(pitch, [0, 1, 0])
        @ angle_axis_matrix(roll, [1, 0, 0])
    )
    np.testing.assert_allclose(euler_angles_zyx(r), angles, atol=1e-12)


def test_relative_point():
    p2 = relative_point(
        (0.35, 0.2, 0.3, 0.1), (0.3, 0.1, 0.1), (-0.5, 0.4, -0.1, 0.2), (-0.1, 0.5, 0.3),
        (0.5, 0.0, 0.2),
    )
    np.testing.assert_allclose(p2, [-0.0309731, 0.73499, 0.296108], atol=1e-5)