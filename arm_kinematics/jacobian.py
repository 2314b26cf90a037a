"""
Finite-difference Jacobian for a DH kinematic chain.

Each column is estimated by nudging one joint by ``JACOBIAN_EPSILON`` degrees,
measuring how the end-effector pose moved, and dividing by the nudge.  The
result maps joint rates (deg/s) to cartesian rates ([mm/s, deg/s]).
"""

import logging
from typing import Optional, Sequence

import numpy as np

from .cartesian import CARTESIAN_SIZE, cartesian_delta
from .chain import KinematicChain
from .errors import InvalidArgumentError, SingularJacobianError

logger = logging.getLogger(__name__)

# Forward-difference step in degrees.  At 1e-3 deg the truncation error is
# about 1e-5 relative (half the step in radians) while the pose differences
# stay ten orders of magnitude above double precision round-off for arms
# measured in millimeters.
JACOBIAN_EPSILON = 0.001

# Reciprocal condition number below which a matrix counts as singular.
SINGULARITY_THRESHOLD = 1e-10

# Fraction of the requested motion that must survive the round trip
# cartesian -> joint -> cartesian for the move to count as reachable.
REACHABLE_FRACTION = 1e-9


class ApproximateJacobian:
    """
    6xN Jacobian estimate for the current joint angles of a chain.

    Only the chain positions listed in ``joints`` contribute a column.  The
    estimate is taken once, at construction; build a new one after the arm
    moves.
    """

    def __init__(self, chain: KinematicChain, joints: Optional[Sequence[int]] = None,
                 epsilon: float = JACOBIAN_EPSILON,
                 singularity_threshold: float = SINGULARITY_THRESHOLD):
        if epsilon <= 0:
            raise InvalidArgumentError("epsilon must be positive")

        self.chain = chain
        self.joints = list(range(len(chain))) if joints is None else list(joints)
        self.epsilon = float(epsilon)
        self.singularity_threshold = float(singularity_threshold)
        self.jacobian = self._estimate()

    @property
    def num_joints(self) -> int:
        return len(self.joints)

    def _estimate(self) -> np.ndarray:
        jacobian = np.zeros((CARTESIAN_SIZE, self.num_joints))
        p0 = self.chain.end_effector_pose()

        for column, position in enumerate(self.joints):
            bone = self.chain.bone(position)
            saved = bone.theta
            try:
                bone.theta = saved + self.epsilon
                pi = self.chain.end_effector_pose()
                jacobian[:, column] = cartesian_delta(p0, pi) / self.epsilon
            finally:
                bone.theta = saved

        return jacobian

    def get_cartesian_from_joint(self, joint_velocity: Sequence[float]) -> np.ndarray:
        """Cartesian velocity produced by ``joint_velocity``."""
        dq = np.asarray(joint_velocity, dtype=float)
        if dq.shape != (self.num_joints,):
            raise InvalidArgumentError(f"expected {self.num_joints} joint values, got {dq.shape}")
        return self.jacobian @ dq

    def get_joint_from_cartesian(self, cartesian_velocity: Sequence[float]) -> np.ndarray:
        """
        Solve J * x = v for the joint velocity x.

        Square Jacobians are inverted directly.  Tall ones (fewer than six
        joints) use the least-squares pseudo-inverse, wide ones the
        minimum-norm pseudo-inverse.

        Args:
            cartesian_velocity: 6-element cartesian vector

        Returns:
            Joint velocities in the order of ``joints``

        Raises:
            SingularJacobianError: If the system cannot be solved, or if none of
                the requested motion lies in the directions the joints can reach
        """
        v = np.asarray(cartesian_velocity, dtype=float)
        if v.shape != (CARTESIAN_SIZE,):
            raise InvalidArgumentError(f"expected a 6-element cartesian vector, got {v.shape}")

        J = self.jacobian
        n = self.num_joints
        if n == 0:
            raise SingularJacobianError("no active joints")

        if n == CARTESIAN_SIZE:
            self._check_conditioning(J)
            x = self._invert(J) @ v
        elif n < CARTESIAN_SIZE:
            normal = J.T @ J
            self._check_conditioning(normal)
            x = self._invert(normal) @ (J.T @ v)
        else:
            normal = J @ J.T
            self._check_conditioning(normal)
            x = J.T @ (self._invert(normal) @ v)

        self._check_reachable(v, x)
        return x

    def _check_conditioning(self, matrix: np.ndarray):
        condition = float(np.linalg.cond(matrix))
        if not np.isfinite(condition) or condition * self.singularity_threshold > 1.0:
            logger.debug(f"Jacobian condition number {condition:.3e} is past the singular limit")
            raise SingularJacobianError("singular jacobian", condition=condition)

    @staticmethod
    def _invert(matrix: np.ndarray) -> np.ndarray:
        try:
            return np.linalg.inv(matrix)
        except np.linalg.LinAlgError as e:
            raise SingularJacobianError(f"singular jacobian: {e}") from e

    def _check_reachable(self, v: np.ndarray, x: np.ndarray):
        requested = float(np.linalg.norm(v))
        if requested == 0.0:
            return
        achieved = float(np.linalg.norm(self.jacobian @ x))
        if achieved <= REACHABLE_FRACTION * requested:
            raise SingularJacobianError("singular jacobian: direction is not reachable")

    def __str__(self):
        rows = []
        for row in self.jacobian:
            rows.append("[" + ", ".join(f"{value:.5f}" for value in row) + "]")
        return "\n".join(rows)

    def __repr__(self):
        return f"ApproximateJacobian(joints={self.joints}, epsilon={self.epsilon})"
