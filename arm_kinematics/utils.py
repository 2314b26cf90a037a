"""
Configuration management for the arm kinematics engine.
"""

import os
import yaml
import numpy as np
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field, asdict
import logging

from .jacobian import JACOBIAN_EPSILON, SINGULARITY_THRESHOLD
from .motion_director import DEFAULT_ARRIVAL_TOLERANCE, DEFAULT_MAX_JOINT_VELOCITY, MAX_JOINTS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), 'config', 'default_config.yaml')


@dataclass
class BoneConfig:
    """DH parameters and limits of one bone (mm and degrees)."""

    name: str = ""
    d: float = 0.0
    r: float = 0.0
    alpha: float = 0.0
    theta: float = 0.0
    angle_min: float = -180.0
    angle_max: float = 180.0
    angle_home: Optional[float] = None

    @classmethod
    def from_dict(cls, bone_dict: Dict[str, Any]) -> 'BoneConfig':
        unknown = set(bone_dict) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown bone settings: {sorted(unknown)}")
        return cls(**bone_dict)


def _default_bones() -> List[BoneConfig]:
    # Six-axis desktop arm.  U spins freely: its limits span a full turn.
    return [
        BoneConfig(name="X", d=8.0, r=0.0, alpha=270.0, theta=0.0, angle_min=-120.0, angle_max=120.0),
        BoneConfig(name="Y", d=9.0, r=35.0, alpha=0.0, theta=-90.0, angle_min=-170.0, angle_max=-10.0),
        BoneConfig(name="Z", d=0.0, r=0.0, alpha=90.0, theta=90.0, angle_min=10.0, angle_max=170.0),
        BoneConfig(name="U", d=40.0, r=0.0, alpha=270.0, theta=0.0, angle_min=-180.0, angle_max=180.0),
        BoneConfig(name="V", d=0.0, r=0.0, alpha=90.0, theta=0.0, angle_min=-120.0, angle_max=120.0),
        BoneConfig(name="W", d=10.0, r=0.0, alpha=0.0, theta=0.0, angle_min=-170.0, angle_max=170.0),
    ]


@dataclass
class ControlConfig:
    """Configuration class for the chain and its motion director."""

    # Motion director
    linear_velocity: float = 0.0
    max_joints: int = MAX_JOINTS
    max_joint_velocities: np.ndarray = field(
        default_factory=lambda: np.full(MAX_JOINTS, DEFAULT_MAX_JOINT_VELOCITY))
    arrival_tolerance: float = DEFAULT_ARRIVAL_TOLERANCE
    report_impossible_velocity: bool = True

    # Jacobian estimator
    jacobian_epsilon: float = JACOBIAN_EPSILON
    singularity_threshold: float = SINGULARITY_THRESHOLD

    # Chain
    base_pose: np.ndarray = field(default_factory=lambda: np.zeros(6))
    bones: List[BoneConfig] = field(default_factory=_default_bones)

    def __post_init__(self):
        self.max_joint_velocities = np.asarray(self.max_joint_velocities, dtype=float)
        self.base_pose = np.asarray(self.base_pose, dtype=float)
        if self.max_joint_velocities.shape == ():
            self.max_joint_velocities = np.full(self.max_joints, float(self.max_joint_velocities))
        self.bones = [b if isinstance(b, BoneConfig) else BoneConfig.from_dict(b) for b in self.bones]
        self.validate()

    def validate(self):
        """Check values that cannot be fixed up later."""
        if self.base_pose.shape != (6,):
            raise ValueError("base_pose must be [x, y, z, rx, ry, rz]")
        if self.max_joint_velocities.shape != (self.max_joints,):
            raise ValueError(f"max_joint_velocities needs {self.max_joints} entries")
        if len(self.bones) > self.max_joints:
            raise ValueError(f"{len(self.bones)} bones configured, max_joints is {self.max_joints}")
        if self.jacobian_epsilon <= 0:
            raise ValueError("jacobian_epsilon must be positive")
        if self.linear_velocity < 0:
            raise ValueError("linear_velocity must not be negative")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'ControlConfig':
        """Create config from dictionary."""
        config_dict = dict(config_dict)
        # Handle numpy arrays
        if 'max_joint_velocities' in config_dict:
            config_dict['max_joint_velocities'] = np.array(config_dict['max_joint_velocities'], dtype=float)
        if 'base_pose' in config_dict:
            config_dict['base_pose'] = np.array(config_dict['base_pose'], dtype=float)
        if 'bones' in config_dict:
            config_dict['bones'] = [BoneConfig.from_dict(b) for b in config_dict['bones']]

        return cls(**config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        config_dict = {}
        for key, value in self.__dict__.items():
            if isinstance(value, np.ndarray):
                config_dict[key] = value.tolist()
            elif key == 'bones':
                config_dict[key] = [asdict(b) for b in value]
            else:
                config_dict[key] = value
        return config_dict


def load_config(config_path: Optional[str] = None) -> ControlConfig:
    """
    Load control configuration from YAML file.

    Args:
        config_path: Path to configuration file. If None, uses default config.

    Returns:
        ControlConfig object
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                config_dict = yaml.safe_load(f) or {}
            config = ControlConfig.from_dict(config_dict)
            logger.info(f"Loaded configuration from {config_path}")
            return config
        except (OSError, yaml.YAMLError, TypeError, ValueError) as e:
            logger.warning(f"Failed to load config from {config_path}: {e}")
    else:
        logger.warning(f"Config file {config_path} not found")

    logger.info("Using default configuration")
    return ControlConfig()


def save_config(config: ControlConfig, config_path: str):
    """
    Save control configuration to YAML file.

    Args:
        config: ControlConfig object to save
        config_path: Path where to save the configuration
    """
    directory = os.path.dirname(config_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(config_path, 'w') as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    logger.info(f"Saved configuration to {config_path}")
