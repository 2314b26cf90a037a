"""
Exception hierarchy for the arm kinematics engine.

Validation problems (bad commands, bad arguments) and kinematic problems
(singular Jacobian, impossible joint velocities) are kept apart so the motion
director can decide which ones drop a tick and which ones reach the protocol
layer as an ``Error:`` response.
"""

from typing import Optional

import numpy as np


class ArmKinematicsError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(ArmKinematicsError):
    """Malformed command token or missing end effector / target reference."""


class InvalidArgumentError(ValidationError):
    """A caller broke an argument contract, e.g. the wrong number of joint values."""


class KinematicError(ArmKinematicsError):
    """The kinematic computation could not produce a usable answer."""


class SingularJacobianError(KinematicError):
    """The Jacobian cannot be inverted in the requested direction."""

    def __init__(self, message: str = "singular jacobian", condition: Optional[float] = None):
        super().__init__(message)
        self.condition = condition


class ImpossibleVelocityError(KinematicError):
    """A solved joint velocity is non-finite or above the joint's cap."""

    def __init__(self, joint_velocities: np.ndarray, limits: np.ndarray):
        self.joint_velocities = np.array(joint_velocities, dtype=float)
        self.limits = np.array(limits, dtype=float)
        super().__init__("impossible joint velocity")

    def offending_joints(self):
        """Indices (into the active joint list) that broke the cap."""
        v = self.joint_velocities
        bad = ~np.isfinite(v) | (np.abs(v) > self.limits)
        return [int(i) for i in np.flatnonzero(bad)]
