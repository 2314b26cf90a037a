"""
Per-tick control loop that drives the end effector toward a target pose.

Each tick compares the end effector with the target, caps the cartesian error
to ``linear_velocity * dt``, splits big moves into sub-moves, and converts
every sub-move to joint motion through a freshly estimated Jacobian.  The
Jacobian is a local linearization, so each sub-move is solved from the pose
the previous sub-move left behind.
"""

import logging
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from .cartesian import cap_vector_to_magnitude, cartesian_delta, split_cartesian_move
from .chain import KinematicChain, Pose
from .errors import (
    ArmKinematicsError,
    ImpossibleVelocityError,
    InvalidArgumentError,
    ValidationError,
)
from .jacobian import JACOBIAN_EPSILON, SINGULARITY_THRESHOLD, ApproximateJacobian
from .motor import BoneMotor, JointMotor

logger = logging.getLogger(__name__)

MAX_JOINTS = 6
DEFAULT_MAX_JOINT_VELOCITY = 100.0  # deg/s
MIN_LINEAR_VELOCITY = 1e-4
DEFAULT_ARRIVAL_TOLERANCE = 1e-3


class MotionState(Enum):
    """Motion director states."""
    IDLE = "idle"
    TRACKING = "tracking"


class MotionDirector:
    """Moves a chain's end effector toward a target pose, one tick at a time."""

    def __init__(self, chain: KinematicChain,
                 motors: Optional[Sequence[Optional[JointMotor]]] = None,
                 target: Optional[Pose] = None,
                 linear_velocity: float = 0.0,
                 max_joints: int = MAX_JOINTS,
                 max_joint_velocities: Optional[Sequence[float]] = None,
                 jacobian_epsilon: float = JACOBIAN_EPSILON,
                 singularity_threshold: float = SINGULARITY_THRESHOLD,
                 arrival_tolerance: float = DEFAULT_ARRIVAL_TOLERANCE):
        """
        Args:
            chain: Kinematic chain to drive
            motors: One binding per chain position, ``None`` for joints that are
                not driven.  Defaults to a :class:`BoneMotor` per bone.
            target: Pose the end effector should reach
            linear_velocity: Cartesian speed cap (mm/s, deg/s); 0 disables motion
            max_joints: Number of joint slots
            max_joint_velocities: Per-slot joint speed caps (deg/s)
            jacobian_epsilon: Finite-difference step (degrees)
            singularity_threshold: Reciprocal condition number limit
            arrival_tolerance: Cartesian error norm at which the target counts as reached
        """
        if len(chain) > max_joints:
            raise InvalidArgumentError(f"chain has {len(chain)} bones, at most {max_joints} are supported")

        self.chain = chain
        self.max_joints = max_joints
        self.target = target
        self.linear_velocity = float(linear_velocity)
        self.jacobian_epsilon = jacobian_epsilon
        self.singularity_threshold = singularity_threshold
        self.arrival_tolerance = arrival_tolerance

        if max_joint_velocities is None:
            max_joint_velocities = np.full(max_joints, DEFAULT_MAX_JOINT_VELOCITY)
        self.max_joint_velocities = np.asarray(max_joint_velocities, dtype=float)
        if self.max_joint_velocities.shape != (max_joints,):
            raise InvalidArgumentError(f"need one velocity cap per joint slot ({max_joints})")

        self.motors: List[Optional[JointMotor]] = [None] * max_joints
        if motors is None:
            motors = [BoneMotor(bone) for bone in chain]
        if len(motors) > max_joints:
            raise InvalidArgumentError(f"{len(motors)} motors given, at most {max_joints} are supported")
        for i, motor in enumerate(motors):
            self.set_motor(i, motor)

        self.state = MotionState.IDLE
        self.last_error: Optional[ArmKinematicsError] = None
        self.last_joint_velocities = np.zeros(self.get_num_joints())
        self.limited_joints: List[int] = []

        logger.info(f"MotionDirector ready: {self.get_num_joints()} active joints on '{chain.name}'")

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------

    @property
    def end_effector(self):
        return self.chain.end_effector

    def set_target(self, target: Optional[Pose]):
        self.target = target

    def set_motor(self, index: int, motor: Optional[JointMotor]):
        if not 0 <= index < self.max_joints:
            raise InvalidArgumentError(f"joint slot {index} out of range")
        if motor is not None and index >= len(self.chain):
            raise InvalidArgumentError(f"joint slot {index} has no bone in the chain")
        self.motors[index] = motor

    def get_motor(self, index: int) -> Optional[JointMotor]:
        return self.motors[index]

    @property
    def active_joints(self) -> List[int]:
        """Slots with a motor bound, in slot order."""
        return [i for i, motor in enumerate(self.motors) if motor is not None]

    def get_num_joints(self) -> int:
        return len(self.active_joints)

    # ------------------------------------------------------------------
    # Joint access
    # ------------------------------------------------------------------

    def get_all_joint_angles(self) -> np.ndarray:
        return np.array([self.motors[i].get_angle() for i in self.active_joints], dtype=float)

    def set_all_joint_angles(self, values: Sequence[float]) -> np.ndarray:
        """
        Set every active joint angle, in slot order.

        Each value goes through the bone's limit clamp before it reaches the
        motor.  The bone then takes whatever angle the motor reports, so the
        model always follows the actuator.

        Returns:
            Angles the motors report after the move
        """
        values = self._check_joint_values(values, "set_all_joint_angles")
        stored = np.zeros(len(values))
        for n, (i, value) in enumerate(zip(self.active_joints, values)):
            bone = self.chain.bone(i)
            self.motors[i].set_angle(bone.set_angle_wrt_limits(float(value)))
            stored[n] = self.motors[i].get_angle()
            bone.theta = stored[n]
        return stored

    def sync_chain_from_motors(self):
        """Copy every bound motor's angle into its bone."""
        for i in self.active_joints:
            self.chain.bone(i).theta = self.motors[i].get_angle()

    def set_all_joint_velocities(self, values: Sequence[float]):
        values = self._check_joint_values(values, "set_all_joint_velocities")
        for i, value in zip(self.active_joints, values):
            self.motors[i].set_velocity(float(value))

    def _check_joint_values(self, values: Sequence[float], caller: str) -> np.ndarray:
        values = np.asarray(values, dtype=float).ravel()
        if len(values) != self.get_num_joints():
            raise InvalidArgumentError(
                f"{caller}: expected one value for each of {self.get_num_joints()} motors, got {len(values)}")
        return values

    def home(self):
        """Move every active joint to its home angle."""
        homes = self.chain.home_angles()
        self.set_all_joint_angles([homes[i] for i in self.active_joints])

    # ------------------------------------------------------------------
    # Kinematics
    # ------------------------------------------------------------------

    def get_jacobian(self) -> ApproximateJacobian:
        self.sync_chain_from_motors()
        return ApproximateJacobian(self.chain, self.active_joints,
                                   epsilon=self.jacobian_epsilon,
                                   singularity_threshold=self.singularity_threshold)

    def get_cartesian_error(self) -> np.ndarray:
        """Cartesian vector from the end effector to the target."""
        if self.target is None:
            raise ValidationError("no target")
        self.sync_chain_from_motors()
        return cartesian_delta(self.end_effector.get_world(), self.target.get_world())

    def update(self, dt: float) -> MotionState:
        """
        Run one control tick.

        Kinematic failures never escape: the joints are left as they were at the
        start of the tick and the failure is kept in ``last_error``.

        Args:
            dt: Time step in seconds

        Returns:
            State after the tick
        """
        if dt <= 0 or self.target is None or self.linear_velocity < MIN_LINEAR_VELOCITY:
            self._go_idle()
            return self.state

        error = self.get_cartesian_error()
        if np.linalg.norm(error) <= self.arrival_tolerance:
            if self.state is MotionState.TRACKING:
                logger.debug("Target reached")
            self._go_idle()
            return self.state

        self.state = MotionState.TRACKING
        step = cap_vector_to_magnitude(error, self.linear_velocity * dt)
        try:
            self.last_joint_velocities = self.move_end_effector_in_cartesian_direction(step, dt)
            self.last_error = None
        except ImpossibleVelocityError as e:
            self.last_error = e
            logger.warning(f"Dropped tick, joints {e.offending_joints()} over their velocity cap")
        except ArmKinematicsError as e:
            self.last_error = e
            logger.warning(f"Dropped tick: {e}")

        return self.state

    def _go_idle(self):
        if self.state is MotionState.TRACKING and self.get_num_joints():
            self.set_all_joint_velocities(np.zeros(self.get_num_joints()))
        self.state = MotionState.IDLE
        self.last_error = None
        self.last_joint_velocities = np.zeros(self.get_num_joints())
        self.limited_joints = []

    def move_end_effector_in_cartesian_direction(self, cartesian_velocity: Sequence[float],
                                                  dt: float = 1.0) -> np.ndarray:
        """
        Move the end effector along a cartesian vector.

        Moves whose components sum past 1 are split into ceil(sum) equal
        sub-moves, each solved against the pose left by the previous one.
        Either every sub-move is applied or none is.

        Joints stopped by their limits move less than asked; the returned
        velocities describe the motion that actually happened and the slots
        that were held back are listed in ``limited_joints``.

        Args:
            cartesian_velocity: Cartesian displacement to cover during ``dt``
            dt: Duration of the move in seconds

        Returns:
            Joint velocities (deg/s) sent to the motors

        Raises:
            SingularJacobianError: If a sub-move cannot be solved
            ImpossibleVelocityError: If a sub-move needs a joint to go too fast
        """
        if dt <= 0:
            raise InvalidArgumentError("dt must be positive")

        steps = split_cartesian_move(cartesian_velocity)
        requested = np.zeros(self.get_num_joints())
        moved = np.zeros(self.get_num_joints())
        self.limited_joints = []
        if not steps:
            return moved

        self.sync_chain_from_motors()
        saved_motors = self.get_all_joint_angles()
        saved_chain = self.chain.get_angles()
        try:
            for step in steps:
                dq = self.get_jacobian().get_joint_from_cartesian(step)
                # the cap applies to the whole tick, not to each sub-move
                requested = requested + dq / dt
                self.check_joint_velocities(requested)
                before = self.get_all_joint_angles()
                moved = moved + (self.set_all_joint_angles(before + dq) - before) / dt
        except ArmKinematicsError:
            self._restore_joint_angles(saved_motors, saved_chain)
            self.set_all_joint_velocities(np.zeros(self.get_num_joints()))
            raise

        self.limited_joints = [slot for slot, r, m in zip(self.active_joints, requested, moved)
                               if not np.isclose(r, m)]
        if self.limited_joints:
            logger.debug(f"Joints {self.limited_joints} held back by their limits")
        logger.debug(f"Cartesian move in {len(steps)} steps, joint velocities {moved}")
        self.set_all_joint_velocities(moved)
        return moved

    def _restore_joint_angles(self, motor_angles: np.ndarray, chain_angles: np.ndarray):
        # motors first, then raw bone angles so the model comes back bit for bit
        for i, angle in zip(self.active_joints, motor_angles):
            self.motors[i].set_angle(float(angle))
        self.chain.set_angles(chain_angles)

    def check_joint_velocities(self, velocities: np.ndarray):
        """Raise ImpossibleVelocityError if any velocity is non-finite or over its cap."""
        limits = self.max_joint_velocities[self.active_joints]
        if np.any(~np.isfinite(velocities)) or np.any(np.abs(velocities) > limits):
            raise ImpossibleVelocityError(velocities, limits)
