"""Objects produced by the packfile decoders.

Vectors are ``(x, y, z)`` tuples and quaternions ``(x, y, z, w)`` tuples.
Objects refer to each other by absolute file address; callers resolve those
through :class:`havok_tagfile.HavokFile` lookups.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

Vec3 = Tuple[float, float, float]
Vec4 = Tuple[float, float, float, float]
Quat = Tuple[float, float, float, float]

IDENTITY_QUAT: Quat = (0.0, 0.0, 0.0, 1.0)


@dataclass
class Bone:
    name: str
    parent_index: int = -1
    position: Vec3 = (0.0, 0.0, 0.0)
    rotation: Quat = IDENTITY_QUAT
    scale: Vec3 = (1.0, 1.0, 1.0)
    translation_locked: bool = False


@dataclass(frozen=True)
class Skeleton:
    name: str
    bones: List[Bone]

    def bone_index(self, name: str) -> int:
        for index, bone in enumerate(self.bones):
            if bone.name == name:
                return index
        raise KeyError(name)


@dataclass(frozen=True)
class Track:
    positions: Optional[List[Vec3]]
    rotations: List[Quat]
    # Spline metadata; None when the channel holds a single static sample.
    position_degree: Optional[int] = None
    position_knots: Optional[List[int]] = None
    rotation_degree: Optional[int] = None
    rotation_knots: Optional[List[int]] = None


@dataclass(frozen=True)
class Animation:
    duration: float
    tracks: List[Track]
    bone_to_track: Dict[str, int]
    num_transform_tracks: int = 0
    num_frames: int = 0
    num_blocks: int = 0
    max_frames_per_block: int = 0
    block_duration: float = 0.0
    frame_duration: float = 0.0

    def block_tracks(self, block: int) -> List[Track]:
        """Tracks decoded from one block; tracks are stored block after block."""
        if self.num_transform_tracks == 0:
            return []
        start = block * self.num_transform_tracks
        if block < 0 or start >= len(self.tracks):
            raise IndexError(block)
        return self.tracks[start : start + self.num_transform_tracks]


class ShapeType(Enum):
    BOX = "box"


@dataclass(frozen=True)
class Shape:
    type: ShapeType
    user_data: int
    radius: float
    half_extents: Vec4


@dataclass(frozen=True)
class RigidBody:
    shape: int


@dataclass(frozen=True)
class PhysicsSystem:
    rigid_bodies: List[int]
    names: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AnimationBinding:
    skeleton_name: str
    animation: int
    transform_track_to_bone_indices: List[int]


@dataclass(frozen=True)
class AnimationContainer:
    skeletons: List[int] = field(default_factory=list)
    animations: List[int] = field(default_factory=list)
    bindings: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class Scene:
    scene_length: float
    applied_transform: Tuple[Vec4, Vec4, Vec4]


@dataclass(frozen=True)
class NamedVariant:
    name: str
    class_name: str
    address: int


@dataclass(frozen=True)
class RootLevelContainer:
    variants: List[NamedVariant]


DecodedObject = Union[
    Skeleton,
    Animation,
    RigidBody,
    Shape,
    PhysicsSystem,
    AnimationBinding,
    AnimationContainer,
    Scene,
]
