"""
Tests for the finite-difference Jacobian.
"""

import math

import pytest
import numpy as np

from arm_kinematics.bone import Bone
from arm_kinematics.cartesian import cartesian_delta
from arm_kinematics.chain import KinematicChain
from arm_kinematics.errors import InvalidArgumentError, SingularJacobianError
from arm_kinematics.jacobian import ApproximateJacobian
from arm_kinematics.utils import ControlConfig

DEG = math.pi / 180.0


def make_chain(count, r=10.0, alpha=0.0):
    bones = [Bone(f"J{i}", r=r, alpha=alpha, angle_min=-180, angle_max=180) for i in range(count)]
    return KinematicChain(bones)


class TestEstimate:
    """Test Jacobian estimation."""

    def test_planar_columns(self):
        """Straight two-link arm along X."""
        jac = ApproximateJacobian(make_chain(2))
        J = jac.jacobian

        assert J.shape == (6, 2)
        assert np.allclose(J[:, 0], [0, 20 * DEG, 0, 0, 0, 1], atol=1e-6)
        assert np.allclose(J[:, 1], [0, 10 * DEG, 0, 0, 0, 1], atol=1e-6)

    def test_angles_are_restored_exactly(self):
        chain = make_chain(3)
        chain.set_angles([12.3456789, -45.1, 170.25])
        before = chain.get_angles()

        ApproximateJacobian(chain)

        assert np.array_equal(chain.get_angles(), before)

    def test_angles_restored_when_pose_query_fails(self, monkeypatch):
        chain = make_chain(2)
        chain.set_angles([10.0, 20.0])
        original = chain.end_effector_pose
        calls = []

        def failing_pose():
            calls.append(1)
            if len(calls) == 2:
                raise RuntimeError("pose query failed")
            return original()

        monkeypatch.setattr(chain, "end_effector_pose", failing_pose)

        with pytest.raises(RuntimeError):
            ApproximateJacobian(chain)

        assert np.array_equal(chain.get_angles(), [10.0, 20.0])

    def test_only_listed_joints_contribute(self):
        chain = make_chain(3)
        jac = ApproximateJacobian(chain, joints=[0, 2])

        assert jac.num_joints == 2
        assert jac.jacobian.shape == (6, 2)
        assert np.allclose(jac.jacobian[:, 1], [0, 10 * DEG, 0, 0, 0, 1], atol=1e-6)

    def test_predicts_small_motions_of_a_six_axis_arm(self):
        config = ControlConfig()
        chain = KinematicChain([Bone(**vars(b)) for b in config.bones])
        chain.set_angles([10, -60, 60, 20, 40, 10])

        jac = ApproximateJacobian(chain)
        dq = np.array([0.01, -0.02, 0.015, 0.01, -0.01, 0.02])
        expected = cartesian_delta(chain.end_effector_pose(),
                                   chain.forward_kinematics(chain.get_angles() + dq))

        assert np.allclose(jac.get_cartesian_from_joint(dq), expected, atol=1e-5)

    def test_bad_epsilon(self):
        with pytest.raises(InvalidArgumentError):
            ApproximateJacobian(make_chain(1), epsilon=0)

    def test_text_dump(self):
        text = str(ApproximateJacobian(make_chain(2)))
        rows = text.split("\n")

        assert len(rows) == 6
        assert all(row.startswith("[") and row.endswith("]") for row in rows)
        assert rows[5] == "[1.00000, 1.00000]"


class TestSolve:
    """Test solving cartesian motion for joint motion."""

    def test_tall_least_squares(self):
        jac = ApproximateJacobian(make_chain(2))
        v = jac.jacobian @ np.array([0.5, -0.25])

        x = jac.get_joint_from_cartesian(v)

        assert np.allclose(x, [0.5, -0.25])

    def test_single_column_matches_itself(self):
        jac = ApproximateJacobian(make_chain(1))
        x = jac.get_joint_from_cartesian(jac.jacobian[:, 0])
        assert np.allclose(x, [1.0])

    def test_unreachable_direction(self):
        """A planar one-link arm cannot move along Z."""
        jac = ApproximateJacobian(make_chain(1))

        with pytest.raises(SingularJacobianError):
            jac.get_joint_from_cartesian([0, 0, 5, 0, 0, 0])

    def test_zero_motion(self):
        jac = ApproximateJacobian(make_chain(2))
        assert np.allclose(jac.get_joint_from_cartesian(np.zeros(6)), np.zeros(2))

    def test_square_inverse(self):
        jac = ApproximateJacobian(make_chain(6, alpha=90))
        rng = np.random.default_rng(7)
        jac.jacobian = 3 * np.eye(6) + 0.1 * rng.normal(size=(6, 6))
        v = np.array([1.0, -2.0, 0.5, 0.0, 3.0, -1.0])

        x = jac.get_joint_from_cartesian(v)

        assert np.allclose(jac.jacobian @ x, v)

    def test_wide_minimum_norm(self):
        jac = ApproximateJacobian(make_chain(7, alpha=90))
        rng = np.random.default_rng(11)
        jac.jacobian = np.hstack([np.eye(6), np.zeros((6, 1))]) + 0.05 * rng.normal(size=(6, 7))
        v = np.array([0.2, 0.4, -0.1, 1.0, 0.0, -0.3])

        x = jac.get_joint_from_cartesian(v)

        assert x.shape == (7,)
        assert np.allclose(jac.jacobian @ x, v)
        assert np.allclose(x, np.linalg.pinv(jac.jacobian) @ v)

    def test_singular_square(self):
        jac = ApproximateJacobian(make_chain(6, alpha=90))
        J = np.eye(6)
        J[:, 5] = J[:, 4]
        jac.jacobian = J

        with pytest.raises(SingularJacobianError):
            jac.get_joint_from_cartesian([1, 0, 0, 0, 0, 0])

    def test_no_active_joints(self):
        jac = ApproximateJacobian(make_chain(2), joints=[])
        with pytest.raises(SingularJacobianError):
            jac.get_joint_from_cartesian([1, 0, 0, 0, 0, 0])

    def test_wrong_vector_length(self):
        jac = ApproximateJacobian(make_chain(2))
        with pytest.raises(InvalidArgumentError):
            jac.get_joint_from_cartesian([1, 0, 0])
        with pytest.raises(InvalidArgumentError):
            jac.get_cartesian_from_joint([1, 0, 0])


if __name__ == "__main__":
    pytest.main([__file__])
