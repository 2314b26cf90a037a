"""
Cartesian vector utilities for the arm kinematics engine.

A cartesian vector is the 6-element array [dx, dy, dz, rx, ry, rz]:
- dx, dy, dz: linear displacement in millimeters
- rx, ry, rz: rotation in degrees, taken from the quaternion difference of
  two poses (rotation vector, world frame)

Poses written by G1 and reported by ik use XYZ in mm and UVW as extrinsic
x-y-z Euler angles in degrees.
"""

import math
from typing import List, Sequence

import numpy as np
from scipy.spatial.transform import Rotation

CARTESIAN_SIZE = 6
EULER_SEQUENCE = 'xyz'

# Below this sum of absolute components a cartesian move is treated as no move.
MIN_MOVE = 1e-4


def cartesian_delta(start: np.ndarray, end: np.ndarray) -> np.ndarray:
    """
    Difference between two poses as a cartesian vector.

    The rotation part is the rotation vector of q_end * inverse(q_start), so
    the direction stays well defined near Euler singularities.

    Args:
        start: 4x4 transformation matrix of the start pose
        end: 4x4 transformation matrix of the end pose

    Returns:
        6-element array [dx_mm, dy_mm, dz_mm, rx_deg, ry_deg, rz_deg]
    """
    linear = end[:3, 3] - start[:3, 3]

    q_start = Rotation.from_matrix(start[:3, :3])
    q_end = Rotation.from_matrix(end[:3, :3])
    angular = (q_end * q_start.inv()).as_rotvec(degrees=True)

    return np.concatenate([linear, angular])


def cap_vector_to_magnitude(vector: Sequence[float], max_len: float) -> np.ndarray:
    """
    Scale a vector down so its length does not exceed ``max_len``.

    Args:
        vector: Any 1-D vector
        max_len: Maximum allowed euclidean length, >= 0

    Returns:
        The vector unchanged if it is already short enough, otherwise a scaled
        copy whose length equals ``max_len``
    """
    v = np.asarray(vector, dtype=float)
    length = float(np.linalg.norm(v))
    if length <= max_len:
        return v
    return v * (max_len / length)


def sum_of_components(vector: Sequence[float]) -> float:
    """Sum of absolute components."""
    return float(np.sum(np.abs(np.asarray(vector, dtype=float))))


def split_cartesian_move(vector: Sequence[float]) -> List[np.ndarray]:
    """
    Split a cartesian move into equal sub-moves small enough to linearize.

    A move whose components add up to at most 1 stays whole.  A bigger move
    is divided into ceil(sum) equal parts.

    Args:
        vector: Cartesian vector

    Returns:
        List of sub-vectors whose sum equals ``vector``.  Empty when the move is
        below ``MIN_MOVE``.
    """
    v = np.asarray(vector, dtype=float)
    total = sum_of_components(v)
    if total < MIN_MOVE:
        return []
    if total <= 1.0:
        return [v.copy()]

    steps = int(math.ceil(total))
    step = v / steps
    return [step.copy() for _ in range(steps)]


def matrix_to_cartesian(matrix: np.ndarray) -> np.ndarray:
    """
    Convert a 4x4 transform to [x_mm, y_mm, z_mm, u_deg, v_deg, w_deg].
    """
    position = matrix[:3, 3]
    euler = Rotation.from_matrix(matrix[:3, :3]).as_euler(EULER_SEQUENCE, degrees=True)
    return np.concatenate([position, euler])


def cartesian_to_matrix(cartesian: Sequence[float]) -> np.ndarray:
    """
    Convert [x_mm, y_mm, z_mm, u_deg, v_deg, w_deg] to a 4x4 transform.
    """
    c = np.asarray(cartesian, dtype=float)
    if c.shape != (CARTESIAN_SIZE,):
        raise ValueError(f"Cartesian pose must have 6 elements, got shape {c.shape}")

    T = np.eye(4)
    T[:3, :3] = Rotation.from_euler(EULER_SEQUENCE, c[3:], degrees=True).as_matrix()
    T[:3, 3] = c[:3]
    return T
