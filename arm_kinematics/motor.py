"""
Actuator bindings between chain positions and whatever drives them.
"""

from typing import Optional, Protocol, runtime_checkable

from .bone import Bone


@runtime_checkable
class JointMotor(Protocol):
    """What the motion director needs from an actuator."""

    name: str

    def get_angle(self) -> float:
        ...

    def set_angle(self, degrees: float) -> float:
        ...

    def set_velocity(self, degrees_per_second: float):
        ...


class BoneMotor:
    """
    Simulated motor driving one bone of the model chain.

    Angles go through the bone's limit clamp.  The velocity is only recorded;
    the motion director moves the bone itself, a hardware driver would read
    ``velocity`` and command the real axis.
    """

    def __init__(self, bone: Bone, name: Optional[str] = None):
        self.bone = bone
        self.name = name if name is not None else bone.name
        self.velocity = 0.0

    def get_angle(self) -> float:
        return self.bone.theta

    def set_angle(self, degrees: float) -> float:
        return self.bone.set_angle_wrt_limits(degrees)

    def set_velocity(self, degrees_per_second: float):
        self.velocity = float(degrees_per_second)

    def __repr__(self):
        return f"BoneMotor(name={self.name!r}, angle={self.bone.theta}, velocity={self.velocity})"
