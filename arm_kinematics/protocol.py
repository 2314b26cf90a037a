"""
G-code style text interface to the motion director.

One command per line, space separated tokens, case-sensitive keywords:

- ``G0 X10 Y-5``  set joint angles directly (tokens prefixed by a motor name)
- ``G1 X.. Y.. Z.. U.. V.. W..``  set the target pose relative to the chain base
- ``G28``  move every joint to its home angle
- ``fk``  report the joint angles as a G0 command
- ``ik``  report the end-effector pose as a G1 command
- ``aj``  report the current Jacobian estimate
- ``M114``  report joint angles and end-effector pose together

Every command gets exactly one response (``Ok``, ``Ok: <payload>`` or
``Error: <reason>``).  Responses are returned by :meth:`ArmCommandInterface.send`
and published to every registered listener.
"""

import math
import logging
from dataclasses import asdict
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from .bone import Bone
from .cartesian import cartesian_to_matrix, matrix_to_cartesian
from .chain import KinematicChain, Pose
from .errors import ArmKinematicsError, ImpossibleVelocityError, ValidationError
from .motion_director import MotionDirector, MotionState
from .motor import BoneMotor
from .utils import ControlConfig

logger = logging.getLogger(__name__)

RESPONSE_OK = "Ok"
CARTESIAN_AXES = ("X", "Y", "Z", "U", "V", "W")

Listener = Callable[[str], None]


def format_double(value: float) -> str:
    """Shortest text that parses back to exactly ``value``."""
    value = float(value)
    if value == 0.0:
        return "0"
    text = repr(value)
    if text.endswith(".0"):
        text = text[:-2]
    return text


def parse_value(token: str, prefix: str) -> float:
    """Number that follows ``prefix`` in ``token``; must be finite."""
    text = token[len(prefix):]
    try:
        value = float(text)
    except ValueError:
        raise ValidationError(f"invalid value '{token}'") from None
    if not math.isfinite(value):
        raise ValidationError(f"invalid value '{token}'")
    return value


class ArmCommandInterface:
    """Parses commands, drives the motion director, and publishes responses."""

    def __init__(self, director: MotionDirector, report_impossible_velocity: bool = True):
        self.director = director
        self.report_impossible_velocity = report_impossible_velocity
        self._listeners: List[Listener] = []
        self._last_reported: Optional[str] = None
        self._handlers: Dict[str, Callable[[List[str]], str]] = {
            "G0": self._parse_g0,
            "G1": self._parse_g1,
            "G28": self._home,
            "fk": lambda tokens: f"Ok: {self.get_fk_as_gcode()}",
            "ik": lambda tokens: f"Ok: {self.get_ik_as_gcode()}",
            "aj": lambda tokens: f"Ok: {self.director.get_jacobian()}",
            "M114": self._report_position,
        }

    @classmethod
    def from_config(cls, config: Optional[ControlConfig] = None) -> 'ArmCommandInterface':
        """Assemble bones, chain, motors, target and director from a config."""
        config = config or ControlConfig()

        bones = [Bone(**asdict(b)) for b in config.bones]
        base = Pose(cartesian_to_matrix(config.base_pose), name="base")
        chain = KinematicChain(bones, base=base)
        motors = [BoneMotor(bone) for bone in bones]

        # start on the current end-effector pose so nothing moves until told to
        target = Pose(chain.cumulative_transform(), parent=chain.base, name="target")

        director = MotionDirector(
            chain,
            motors=motors,
            target=target,
            linear_velocity=config.linear_velocity,
            max_joints=config.max_joints,
            max_joint_velocities=config.max_joint_velocities,
            jacobian_epsilon=config.jacobian_epsilon,
            singularity_threshold=config.singularity_threshold,
            arrival_tolerance=config.arrival_tolerance,
        )
        logger.info(f"Arm assembled from config with {len(bones)} bones")
        return cls(director, report_impossible_velocity=config.report_impossible_velocity)

    @property
    def chain(self) -> KinematicChain:
        return self.director.chain

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener):
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener):
        self._listeners.remove(listener)

    def _fire(self, message: str):
        for listener in list(self._listeners):
            listener(message)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def send(self, command: str) -> str:
        """
        Handle one command line.

        Args:
            command: Command text, without or with a trailing newline

        Returns:
            The response, also delivered to every listener
        """
        logger.debug(f"heard {command!r}")
        tokens = command.split()
        handler = self._handlers.get(tokens[0]) if tokens else None

        if handler is None:
            response = "Error: unknown command"
        else:
            try:
                response = handler(tokens)
            except ArmKinematicsError as e:
                logger.error(f"{tokens[0]} failed: {e}")
                response = f"Error: {e}"

        self._fire(response)
        return response

    def update(self, dt: float) -> MotionState:
        """
        Advance the motion director one tick and publish new tick failures.
        """
        state = self.director.update(dt)
        error = self.director.last_error
        if error is None:
            self._last_reported = None
            return state

        if isinstance(error, ImpossibleVelocityError) and not self.report_impossible_velocity:
            return state

        message = f"Error: {error}"
        if message != self._last_reported:
            self._last_reported = message
            self._fire(message)
        return state

    def _parse_g0(self, tokens: Sequence[str]) -> str:
        """Rapid move: set every named joint immediately."""
        director = self.director
        values = []
        for slot in director.active_joints:
            motor = director.get_motor(slot)
            value = motor.get_angle()
            for token in tokens[1:]:
                if token.startswith(motor.name):
                    value = parse_value(token, motor.name)
                    break
            values.append(value)

        director.set_all_joint_angles(values)
        return RESPONSE_OK

    def _parse_g1(self, tokens: Sequence[str]) -> str:
        """Linear move: set the target; motion happens on later ticks."""
        target = self.director.target
        if target is None:
            raise ValidationError("no target")

        cartesian = self.get_end_effector_cartesian()
        for token in tokens[1:]:
            if token[:1] in CARTESIAN_AXES:
                cartesian[CARTESIAN_AXES.index(token[0])] = parse_value(token, token[0])

        base = self.chain.base.get_world()
        target.set_world(base @ cartesian_to_matrix(cartesian))
        return RESPONSE_OK

    def _home(self, tokens: Sequence[str]) -> str:
        self.director.home()
        return RESPONSE_OK

    def _report_position(self, tokens: Sequence[str]) -> str:
        return f"Ok: M114 {self.get_fk_as_gcode()} {self.get_ik_as_gcode()}"

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def get_fk_as_gcode(self) -> str:
        """Current joint angles as a G0 command."""
        parts = ["G0"]
        for slot in self.director.active_joints:
            motor = self.director.get_motor(slot)
            parts.append(f"{motor.name}{format_double(motor.get_angle())}")
        return " ".join(parts)

    def get_end_effector_cartesian(self) -> np.ndarray:
        """End-effector pose relative to the chain base, [x, y, z, u, v, w]."""
        self.director.sync_chain_from_motors()
        base = self.chain.base.get_world()
        local = np.linalg.inv(base) @ self.chain.end_effector_pose()
        return matrix_to_cartesian(local)

    def get_ik_as_gcode(self) -> str:
        """Current end-effector pose as a G1 command."""
        cartesian = self.get_end_effector_cartesian()
        parts = ["G1"] + [f"{axis}{format_double(v)}" for axis, v in zip(CARTESIAN_AXES, cartesian)]
        return " ".join(parts)
