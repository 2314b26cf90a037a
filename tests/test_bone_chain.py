"""
Tests for bones, poses and the kinematic chain.
"""

import math

import pytest
import numpy as np

from arm_kinematics.bone import Bone, dh_matrix, is_unconstrained_range
from arm_kinematics.chain import KinematicChain, Pose
from arm_kinematics.errors import InvalidArgumentError


def translation(x, y, z):
    T = np.eye(4)
    T[:3, 3] = [x, y, z]
    return T


@pytest.fixture
def planar_chain():
    """Two 10 mm links rotating about Z, both free to spin."""
    bones = [
        Bone("A", d=0, r=10, alpha=0, theta=0, angle_min=-180, angle_max=180),
        Bone("B", d=0, r=10, alpha=0, theta=0, angle_min=-180, angle_max=180),
    ]
    return KinematicChain(bones)


class TestDHMatrix:
    """Test the DH transform."""

    def test_identity_parameters(self):
        assert np.allclose(dh_matrix(0, 0, 0, 0), np.eye(4))

    def test_translation_parameters(self):
        T = dh_matrix(d=5, r=7, alpha=0, theta=0)
        assert np.allclose(T[:3, 3], [7, 0, 5])
        assert np.allclose(T[:3, :3], np.eye(3))

    def test_composition_order(self):
        """TransZ(d) * RotZ(theta) * TransX(r) * RotX(alpha)."""
        d, r, alpha, theta = 3.0, 4.0, 30.0, 60.0
        ct, st = math.cos(math.radians(theta)), math.sin(math.radians(theta))
        ca, sa = math.cos(math.radians(alpha)), math.sin(math.radians(alpha))
        rot_z = np.array([[ct, -st, 0, 0], [st, ct, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]])
        rot_x = np.array([[1, 0, 0, 0], [0, ca, -sa, 0], [0, sa, ca, 0], [0, 0, 0, 1]])
        expected = translation(0, 0, d) @ rot_z @ translation(r, 0, 0) @ rot_x

        assert np.allclose(dh_matrix(d, r, alpha, theta), expected)

    def test_non_finite_parameter_is_a_programming_error(self):
        with pytest.raises(AssertionError):
            dh_matrix(float('nan'), 0, 0, 0)
        with pytest.raises(AssertionError):
            Bone(r=float('inf'))


class TestBone:
    """Test bone state and limits."""

    def test_matrix_follows_theta(self):
        bone = Bone(r=10)
        assert np.allclose(bone.local_matrix[:3, 3], [10, 0, 0])

        bone.theta = 90
        assert np.allclose(bone.local_matrix[:3, 3], [0, 10, 0])

    def test_local_matrix_is_read_only(self):
        bone = Bone(r=10)
        with pytest.raises(ValueError):
            bone.local_matrix[0, 3] = 5

    def test_set_dh(self):
        bone = Bone()
        bone.set_dh(d=1, r=2, alpha=0, theta=0)
        assert np.allclose(bone.local_matrix[:3, 3], [2, 0, 1])

    def test_clamped_joint(self):
        bone = Bone(angle_min=-90, angle_max=90)
        assert bone.set_angle_wrt_limits(120) == 90
        assert bone.theta == 90
        assert bone.set_angle_wrt_limits(-100) == -90
        assert bone.set_angle_wrt_limits(45.5) == 45.5

    def test_full_circle_joint_is_not_clamped(self):
        bone = Bone(angle_min=-180, angle_max=180)
        assert bone.is_unconstrained
        assert bone.set_angle_wrt_limits(540.25) == 540.25
        assert bone.theta == 540.25

    @pytest.mark.parametrize("angle_min,angle_max", [
        (-90, 90), (10, 170), (-179.9, 180), (0, 359), (-180, 180), (0, 360), (-200, 200), (30, 30),
    ])
    @pytest.mark.parametrize("new_angle", [-720.0, -181.0, -90.5, 0.0, 15.0, 179.99, 359.5, 1000.0])
    def test_clamp_invariant(self, angle_min, angle_max, new_angle):
        bone = Bone(angle_min=angle_min, angle_max=angle_max)
        result = bone.set_angle_wrt_limits(new_angle)

        if is_unconstrained_range(angle_min, angle_max):
            assert result == new_angle
        else:
            assert angle_min <= result <= angle_max

    def test_unconstrained_rule_uses_span_around_middle(self):
        assert is_unconstrained_range(-180, 180)
        assert is_unconstrained_range(0, 360)
        assert not is_unconstrained_range(-179, 180)
        # reversed limits still span a full turn around their middle
        assert is_unconstrained_range(180, -180)

    def test_home_defaults_to_initial_theta(self):
        assert Bone(theta=25).angle_home == 25
        assert Bone(theta=25, angle_home=0).angle_home == 0


class TestPose:
    """Test pose world transforms."""

    def test_world_without_parent_is_a_copy(self):
        pose = Pose(translation(1, 2, 3))
        world = pose.get_world()
        world[0, 3] = 99
        assert pose.get_world()[0, 3] == 1

    def test_world_walks_ancestors(self):
        root = Pose(translation(1, 0, 0))
        middle = Pose(translation(0, 2, 0), parent=root)
        leaf = Pose(translation(0, 0, 3), parent=middle)
        assert np.allclose(leaf.get_world()[:3, 3], [1, 2, 3])

    def test_set_world_under_parent(self):
        root = Pose(translation(5, 0, 0))
        child = Pose(parent=root)
        child.set_world(translation(5, 5, 5))
        assert np.allclose(child.get_local()[:3, 3], [0, 5, 5])

    def test_rejects_wrong_shape(self):
        with pytest.raises(InvalidArgumentError):
            Pose(np.eye(3))


class TestKinematicChain:
    """Test forward kinematics."""

    def test_straight_arm(self, planar_chain):
        pose = planar_chain.end_effector_pose()
        assert np.allclose(pose[:3, 3], [20, 0, 0])

    def test_quarter_turn_of_first_joint(self, planar_chain):
        planar_chain.bone(0).set_angle_wrt_limits(90)
        pose = planar_chain.end_effector_pose()

        assert planar_chain.bone(0).theta == pytest.approx(90)
        assert pose[0, 3] == pytest.approx(0.0, abs=1e-9)
        assert pose[1, 3] == pytest.approx(20.0)

    def test_matches_trigonometry(self, planar_chain):
        planar_chain.set_angles([30, 45])
        a, b = math.radians(30), math.radians(75)
        expected = [10 * math.cos(a) + 10 * math.cos(b), 10 * math.sin(a) + 10 * math.sin(b), 0]
        assert np.allclose(planar_chain.end_effector_pose()[:3, 3], expected)

    def test_intermediate_world_pose(self, planar_chain):
        planar_chain.set_angles([90, 0])
        assert np.allclose(planar_chain.get_world_pose(0)[:3, 3], [0, 10, 0])

    def test_repeated_queries_are_identical(self, planar_chain):
        planar_chain.set_angles([12.5, -33.25])
        first = planar_chain.get_world_pose()
        second = planar_chain.get_world_pose()
        assert np.array_equal(first, second)

    def test_world_pose_is_not_an_alias(self, planar_chain):
        pose = planar_chain.end_effector_pose()
        pose[:] = 0
        assert np.allclose(planar_chain.end_effector_pose()[:3, 3], [20, 0, 0])

    def test_base_and_parent(self, planar_chain):
        scene = Pose(translation(0, 0, 100))
        planar_chain.base.parent = scene
        planar_chain.base.set_local(translation(5, 0, 0))
        assert np.allclose(planar_chain.end_effector_pose()[:3, 3], [25, 0, 100])

    def test_end_effector_handle(self, planar_chain):
        assert np.allclose(planar_chain.end_effector.get_world(), planar_chain.end_effector_pose())
        with pytest.raises(AttributeError):
            planar_chain.end_effector.set_local(np.eye(4))

    def test_forward_kinematics_leaves_state_alone(self, planar_chain):
        pose = planar_chain.forward_kinematics([90, 90])
        assert np.allclose(pose[:3, 3], [-10, 10, 0])
        assert np.array_equal(planar_chain.get_angles(), [0, 0])

    def test_bones_are_shared_with_the_arena(self):
        arena = [Bone("A", r=1), Bone("B", r=2), Bone("C", r=4)]
        chain = KinematicChain(arena, indices=[2, 0])

        assert chain.bones == [arena[2], arena[0]]
        arena[0].theta = 90
        assert chain.bone(1) is arena[0]
        assert np.allclose(chain.end_effector_pose()[:3, 3], [4, 1, 0])

    def test_add_bone(self, planar_chain):
        position = planar_chain.add_bone(Bone("C", r=5))
        assert position == 2
        assert np.allclose(planar_chain.end_effector_pose()[:3, 3], [25, 0, 0])

    def test_bad_indices(self, planar_chain):
        with pytest.raises(InvalidArgumentError):
            KinematicChain([Bone()], indices=[1])
        with pytest.raises(InvalidArgumentError):
            planar_chain.bone(5)
        with pytest.raises(InvalidArgumentError):
            planar_chain.set_angles([1, 2, 3])

    def test_empty_chain_is_its_base(self):
        chain = KinematicChain(base=Pose(translation(1, 1, 1)))
        assert np.allclose(chain.end_effector_pose(), translation(1, 1, 1))


if __name__ == "__main__":
    pytest.main([__file__])
