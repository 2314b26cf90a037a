"""
Arm Kinematics

Kinematic control engine for serial robot arms described with
Denavit-Hartenberg parameters: forward kinematics, a finite-difference
Jacobian, a velocity-based inverse kinematics loop, and a G-code style
command interface.
"""

__version__ = "1.0.0"
__author__ = "Robot Control Team"

from .bone import Bone
from .chain import KinematicChain, Pose, EndEffector
from .motor import JointMotor, BoneMotor
from .jacobian import ApproximateJacobian, JACOBIAN_EPSILON
from .motion_director import MotionDirector, MotionState, MAX_JOINTS
from .protocol import ArmCommandInterface
from .utils import ControlConfig, BoneConfig, load_config, save_config
from .errors import (
    ArmKinematicsError,
    ValidationError,
    InvalidArgumentError,
    KinematicError,
    SingularJacobianError,
    ImpossibleVelocityError,
)

__all__ = [
    "Bone",
    "KinematicChain",
    "Pose",
    "EndEffector",
    "JointMotor",
    "BoneMotor",
    "ApproximateJacobian",
    "JACOBIAN_EPSILON",
    "MotionDirector",
    "MotionState",
    "MAX_JOINTS",
    "ArmCommandInterface",
    "ControlConfig",
    "BoneConfig",
    "load_config",
    "save_config",
    "ArmKinematicsError",
    "ValidationError",
    "InvalidArgumentError",
    "KinematicError",
    "SingularJacobianError",
    "ImpossibleVelocityError",
]
