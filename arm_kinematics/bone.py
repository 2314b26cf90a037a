"""
One link of a serial arm described with Denavit-Hartenberg parameters.

Lengths are in millimeters, angles in degrees.  The local transform follows
the standard composition TransZ(d) * RotZ(theta) * TransX(r) * RotX(alpha).
"""

import math
import logging
from typing import Any, Dict, Optional

import numpy as np

logger = logging.getLogger(__name__)

# A joint whose limits span a full turn or more has no limit at all.
FULL_TURN = 360.0


def dh_matrix(d: float, r: float, alpha: float, theta: float) -> np.ndarray:
    """
    Build the 4x4 homogeneous transform for one set of DH parameters.

    Args:
        d: Offset along the previous Z axis (mm)
        r: Length of the common normal along the new X axis (mm)
        alpha: Twist about the common normal (degrees)
        theta: Rotation about the previous Z axis (degrees)

    Returns:
        4x4 transformation matrix
    """
    assert math.isfinite(d), "d must be finite"
    assert math.isfinite(r), "r must be finite"
    assert math.isfinite(alpha), "alpha must be finite"
    assert math.isfinite(theta), "theta must be finite"

    rt = math.radians(theta)
    ra = math.radians(alpha)
    ct = math.cos(rt)
    st = math.sin(rt)
    ca = math.cos(ra)
    sa = math.sin(ra)

    return np.array([
        [ct, -st * ca,  st * sa, r * ct],
        [st,  ct * ca, -ct * sa, r * st],
        [0.0,      sa,       ca,      d],
        [0.0,     0.0,      0.0,    1.0],
    ])


def is_unconstrained_range(angle_min: float, angle_max: float) -> bool:
    """True when the limits describe a joint that may spin freely."""
    middle = (angle_max + angle_min) / 2.0
    return abs(angle_max - middle) + abs(angle_min - middle) >= FULL_TURN


class Bone:
    """
    A single revolute joint and the link that follows it.

    ``theta`` is the only mutable DH parameter.  Writing it marks the cached
    local matrix dirty; the matrix is rebuilt on the next read.
    """

    def __init__(self, name: str = "", d: float = 0.0, r: float = 0.0,
                 alpha: float = 0.0, theta: float = 0.0,
                 angle_min: float = -180.0, angle_max: float = 180.0,
                 angle_home: Optional[float] = None):
        self.name = name
        self.d = float(d)
        self.r = float(r)
        self.alpha = float(alpha)
        self._theta = float(theta)
        self.angle_min = float(angle_min)
        self.angle_max = float(angle_max)
        self.angle_home = float(theta if angle_home is None else angle_home)

        self._local = np.identity(4)
        self._dirty = True
        self.update_matrix()

    @property
    def theta(self) -> float:
        return self._theta

    @theta.setter
    def theta(self, value: float):
        self._theta = float(value)
        self._dirty = True

    @property
    def local_matrix(self) -> np.ndarray:
        """Local transform for the current theta (read-only view)."""
        if self._dirty:
            self.update_matrix()
        view = self._local.view()
        view.flags.writeable = False
        return view

    def update_matrix(self):
        """Recompute the cached local transform from d, r, alpha and theta."""
        self._local = dh_matrix(self.d, self.r, self.alpha, self._theta)
        self._dirty = False

    def set_dh(self, d: float, r: float, alpha: float, theta: float):
        self.d = float(d)
        self.r = float(r)
        self.alpha = float(alpha)
        self.theta = theta

    @property
    def angle_middle(self) -> float:
        return (self.angle_max + self.angle_min) / 2.0

    @property
    def is_unconstrained(self) -> bool:
        return is_unconstrained_range(self.angle_min, self.angle_max)

    def set_angle_wrt_limits(self, new_angle: float) -> float:
        """
        Set theta, clamped into [angle_min, angle_max] unless the joint is
        unconstrained.

        Args:
            new_angle: Requested joint angle in degrees

        Returns:
            The angle actually stored
        """
        angle = float(new_angle)
        if not self.is_unconstrained:
            angle = max(min(angle, self.angle_max), self.angle_min)
        if angle != new_angle:
            logger.debug(f"Bone {self.name}: clamped {new_angle} to {angle}")
        self.theta = angle
        return angle

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'd': self.d,
            'r': self.r,
            'alpha': self.alpha,
            'theta': self._theta,
            'angle_min': self.angle_min,
            'angle_max': self.angle_max,
            'angle_home': self.angle_home,
        }

    def __repr__(self):
        return (f"Bone(name={self.name!r}, d={self.d}, r={self.r}, alpha={self.alpha}, "
                f"theta={self._theta}, angle_min={self.angle_min}, angle_max={self.angle_max})")
