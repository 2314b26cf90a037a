"""
Poses and the serial kinematic chain.

The chain keeps an arena of :class:`Bone` objects and an ordered list of
indices into it.  Forward kinematics multiplies
base * bone[0] * bone[1] * ... * bone[n-1]; the end-effector pose is never
stored, it is recomputed from the current joint angles on every query.
"""

import logging
from typing import Iterable, List, Optional, Sequence

import numpy as np

from .bone import Bone
from .errors import InvalidArgumentError

logger = logging.getLogger(__name__)


class Pose:
    """
    A named 4x4 transform relative to an optional parent.

    The parent may be any object with a ``get_world()`` method, so a pose can
    hang off another pose, a chain's end effector, or nothing at all.
    """

    def __init__(self, local: Optional[np.ndarray] = None, parent=None, name: str = ""):
        self.name = name
        self.parent = parent
        self._local = np.identity(4) if local is None else _as_transform(local)

    def get_local(self) -> np.ndarray:
        return self._local.copy()

    def set_local(self, matrix: np.ndarray):
        self._local = _as_transform(matrix)

    def get_world(self) -> np.ndarray:
        """Walk the ancestor chain and return this pose in world space."""
        if self.parent is None:
            return self._local.copy()
        return self.parent.get_world() @ self._local

    def set_world(self, matrix: np.ndarray):
        """Set the local transform so that the world transform equals ``matrix``."""
        matrix = _as_transform(matrix)
        if self.parent is None:
            self._local = matrix
        else:
            self._local = np.linalg.inv(self.parent.get_world()) @ matrix

    def __repr__(self):
        return f"Pose(name={self.name!r}, position={self._local[:3, 3].tolist()})"


class EndEffector:
    """Read-only handle on the tip of a chain."""

    def __init__(self, chain: 'KinematicChain', name: str = "end effector"):
        self.chain = chain
        self.name = name

    def get_world(self) -> np.ndarray:
        return self.chain.end_effector_pose()

    def get_local(self) -> np.ndarray:
        """End effector relative to the chain base."""
        return self.chain.cumulative_transform()

    def set_local(self, matrix: np.ndarray):
        raise AttributeError("the end effector pose is derived from the joint angles")


class KinematicChain:
    """Ordered sequence of bones on top of a base pose."""

    def __init__(self, bones: Optional[Sequence[Bone]] = None,
                 indices: Optional[Iterable[int]] = None,
                 base: Optional[Pose] = None,
                 name: str = "chain"):
        """
        Args:
            bones: Bone arena.  The list is referenced, not copied.
            indices: Order of arena entries along the chain.  Defaults to the
                arena order.
            base: Pose of the chain base.  Its parent, if any, places the whole
                chain inside a larger scene.
            name: Label used in log messages
        """
        self.name = name
        self.arena: List[Bone] = bones if isinstance(bones, list) else list(bones or [])
        if indices is None:
            indices = range(len(self.arena))
        self.indices: List[int] = []
        for index in indices:
            self._check_arena_index(index)
            self.indices.append(int(index))
        self.base = base if base is not None else Pose(name=f"{name} base")
        self.end_effector = EndEffector(self)

        logger.debug(f"Assembled chain '{name}' with {len(self.indices)} bones")

    def _check_arena_index(self, index: int):
        if not 0 <= index < len(self.arena):
            raise InvalidArgumentError(f"bone index {index} is not in the arena")

    def __len__(self):
        return len(self.indices)

    def __iter__(self):
        return (self.arena[i] for i in self.indices)

    def add_bone(self, bone: Bone) -> int:
        """Append a bone to the arena and to the end of the chain. Returns its chain position."""
        self.arena.append(bone)
        self.indices.append(len(self.arena) - 1)
        return len(self.indices) - 1

    def bone(self, position: int) -> Bone:
        """Bone at ``position`` along the chain."""
        if not 0 <= position < len(self.indices):
            raise InvalidArgumentError(f"chain has no joint {position}")
        return self.arena[self.indices[position]]

    @property
    def bones(self) -> List[Bone]:
        return [self.arena[i] for i in self.indices]

    # ------------------------------------------------------------------
    # Joint angles
    # ------------------------------------------------------------------

    def get_angles(self) -> np.ndarray:
        return np.array([bone.theta for bone in self], dtype=float)

    def set_angles(self, angles: Sequence[float]):
        """Write raw angles to every bone, bypassing the limit clamp."""
        if len(angles) != len(self):
            raise InvalidArgumentError(f"expected {len(self)} angles, got {len(angles)}")
        for bone, angle in zip(self, angles):
            bone.theta = angle

    # ------------------------------------------------------------------
    # Forward kinematics
    # ------------------------------------------------------------------

    def cumulative_transform(self, position: Optional[int] = None) -> np.ndarray:
        """
        Product of bone local transforms from the base up to and including
        ``position``.  ``None`` means the last bone.
        """
        if position is None:
            position = len(self) - 1
        elif not -1 <= position < len(self):
            raise InvalidArgumentError(f"chain has no joint {position}")

        result = np.identity(4)
        for i in range(position + 1):
            result = result @ self.bone(i).local_matrix
        return result

    def get_world_pose(self, position: Optional[int] = None) -> np.ndarray:
        """World transform of the bone at ``position`` (default: last bone)."""
        return self.base.get_world() @ self.cumulative_transform(position)

    def end_effector_pose(self) -> np.ndarray:
        return self.get_world_pose()

    def forward_kinematics(self, angles: Optional[Sequence[float]] = None) -> np.ndarray:
        """
        End-effector pose for ``angles`` without changing the committed state.

        Args:
            angles: Joint angles in degrees.  ``None`` uses the current angles.

        Returns:
            4x4 world transform of the end effector
        """
        if angles is None:
            return self.end_effector_pose()

        saved = self.get_angles()
        try:
            self.set_angles(angles)
            return self.end_effector_pose()
        finally:
            self.set_angles(saved)

    def home_angles(self) -> np.ndarray:
        return np.array([bone.angle_home for bone in self], dtype=float)

    def __repr__(self):
        return f"KinematicChain(name={self.name!r}, bones={len(self)})"


def _as_transform(matrix) -> np.ndarray:
    m = np.array(matrix, dtype=float)
    if m.shape != (4, 4):
        raise InvalidArgumentError(f"expected a 4x4 transform, got shape {m.shape}")
    return m
