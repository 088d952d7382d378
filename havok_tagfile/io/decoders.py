"""Class-name driven decoders for packfile objects.

``DECODERS`` maps the class name recorded in a virtual fixup to the routine
reading that class. Every routine starts with the raw reader positioned on
the object and returns the decoded object. Classes missing from the table
are skipped by the caller. Layouts assume 32 bit pointers.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from ..errors import InvalidFormatError
from .binary_parser import SENTINEL, HavokVersion, HkArray
from .context import DecodeContext, VersionLayouts
from .objects import (
    Animation,
    AnimationBinding,
    AnimationContainer,
    NamedVariant,
    PhysicsSystem,
    RigidBody,
    RootLevelContainer,
    Scene,
    Shape,
    ShapeType,
    Skeleton,
    Vec4,
)
from .skeleton import read_skeleton_550, read_skeleton_2010
from .spline_decompressor import SplineDecompressor

logger = logging.getLogger("havok_tagfile").getChild("io.decoders")

_ANNOTATION_TRACK_SIZE = 16
_NAMED_VARIANT_SIZE = 12


# Animation -----------------------------------------------------------
def read_spline_compressed_animation(ctx: DecodeContext) -> Animation:
    reader = ctx.reader
    reader.skip(8)  # hkReferencedObject
    _animation_type = reader.u32()
    duration = reader.f32()
    num_transform_tracks, num_float_tracks = reader.read("II")
    _extracted_motion = ctx.read_fixup()
    annotation_tracks = ctx.read_hkarray()

    (
        num_frames,
        num_blocks,
        max_frames_per_block,
        _mask_and_quantization_size,
    ) = reader.read("IIII")
    block_duration, _block_inverse_duration, frame_duration = reader.read("fff")

    block_offsets_array = ctx.read_hkarray()
    _float_block_offsets = ctx.read_hkarray()
    _transform_offsets = ctx.read_hkarray()
    _float_offsets = ctx.read_hkarray()
    data_array = ctx.read_hkarray()

    if num_transform_tracks > ctx.options.max_array_count:
        raise InvalidFormatError(
            f"Animation declares {num_transform_tracks} transform tracks"
        )

    tracks = []
    block_offsets = ctx.read_u32_array(block_offsets_array, "block offsets")
    if block_offsets:
        if data_array.is_empty:
            raise InvalidFormatError("Animation has block offsets but no data buffer")
        reader.seek_absolute(data_array.offset)
        data_stream = reader.read_stream(data_array.count)
        tracks = SplineDecompressor().decompress(
            data_stream, block_offsets, num_transform_tracks, num_float_tracks
        )

    bone_to_track = _read_annotation_tracks(ctx, annotation_tracks)
    logger.debug(
        "Animation: duration=%.3f tracks=%d blocks=%d frames=%d",
        duration,
        num_transform_tracks,
        len(block_offsets),
        num_frames,
    )
    return Animation(
        duration=duration,
        tracks=tracks,
        bone_to_track=bone_to_track,
        num_transform_tracks=num_transform_tracks,
        num_frames=num_frames,
        num_blocks=num_blocks,
        max_frames_per_block=max_frames_per_block,
        block_duration=block_duration,
        frame_duration=frame_duration,
    )


def _read_annotation_tracks(ctx: DecodeContext, array: HkArray) -> Dict[str, int]:
    bone_to_track: Dict[str, int] = {}
    if array.is_empty or array.count == 0:
        return bone_to_track
    reader = ctx.reader
    reader.seek_absolute(array.offset)
    ctx.check_count(array.count, _ANNOTATION_TRACK_SIZE, "annotation tracks")
    for index in range(array.count):
        name_offset = ctx.read_fixup()
        # Two reserved words and a float, meaning unknown.
        reader.read("IIf")

        last_pos = reader.tell()
        bone_to_track[ctx.read_string_at(name_offset)] = index
        reader.seek(last_pos)
    return bone_to_track


def read_animation_binding(ctx: DecodeContext) -> AnimationBinding:
    ctx.reader.skip(8)
    name_offset = ctx.read_fixup()
    animation = ctx.read_fixup()
    track_to_bone_array = ctx.read_hkarray()
    _float_track_to_float_slot = ctx.read_hkarray()
    _partition_indices = ctx.read_hkarray()

    skeleton_name = ctx.read_string_at(name_offset)
    track_to_bone = ctx.read_s16_array(track_to_bone_array, "track to bone indices")
    return AnimationBinding(
        skeleton_name=skeleton_name,
        animation=animation,
        transform_track_to_bone_indices=track_to_bone,
    )


def read_animation_container_2010(ctx: DecodeContext) -> AnimationContainer:
    ctx.reader.skip(8)
    skeletons = ctx.read_hkarray()
    animations = ctx.read_hkarray()
    bindings = ctx.read_hkarray()
    _attachments = ctx.read_hkarray()

    return AnimationContainer(
        skeletons=ctx.read_fixup_array(skeletons, "skeletons"),
        animations=ctx.read_fixup_array(animations, "animations"),
        bindings=ctx.read_fixup_array(bindings, "bindings"),
    )


def read_animation_container_550(ctx: DecodeContext) -> AnimationContainer:
    skeletons = ctx.read_pointer_and_count()
    animations = ctx.read_pointer_and_count()

    return AnimationContainer(
        skeletons=ctx.read_fixup_array(skeletons, "skeletons"),
        animations=ctx.read_fixup_array(animations, "animations"),
    )


def read_skeleton(ctx: DecodeContext) -> Skeleton:
    return ctx.layouts.skeleton(ctx)


def read_animation_container(ctx: DecodeContext) -> AnimationContainer:
    return ctx.layouts.animation_container(ctx)


# Physics -------------------------------------------------------------
def read_physics_system(ctx: DecodeContext) -> PhysicsSystem:
    reader = ctx.reader
    reader.skip(8)
    rigid_bodies = ctx.read_hkarray()
    for _ in range(3):
        ctx.read_hkarray()
    reader.skip(12)
    names = ctx.read_hkarray()

    return PhysicsSystem(
        rigid_bodies=ctx.read_fixup_array(rigid_bodies, "rigid bodies"),
        names=ctx.read_string_array(names, "rigid body names"),
    )


def read_rigid_body(ctx: DecodeContext) -> RigidBody:
    ctx.reader.skip(16)
    return RigidBody(shape=ctx.read_fixup())


def read_box_shape(ctx: DecodeContext) -> Shape:
    reader = ctx.reader
    reader.skip(8)  # hkReferencedObject
    user_data = reader.u64()  # hkpShape
    radius = reader.f32()  # hkpConvexShape
    reader.skip(12)
    half_extents = reader.read("ffff")
    return Shape(
        type=ShapeType.BOX,
        user_data=user_data,
        radius=radius,
        half_extents=(half_extents[0], half_extents[1], half_extents[2], half_extents[3]),
    )


# Scene and root ------------------------------------------------------
def read_scene(ctx: DecodeContext) -> Scene:
    reader = ctx.reader
    reader.skip(8)
    scene_length = reader.f32()
    reader.skip(0x44)
    rows: List[Vec4] = []
    for _ in range(3):
        x, y, z, w = reader.read("ffff")
        rows.append((x, y, z, w))
    return Scene(scene_length=scene_length, applied_transform=(rows[0], rows[1], rows[2]))


def read_root_level_container(ctx: DecodeContext) -> RootLevelContainer:
    """Read the named variants through the contents sub-stream."""
    content = ctx.content
    variants_ptr = ctx.fixups.read_fixup(content, ctx.section)
    count = content.u32()

    variants: List[NamedVariant] = []
    if variants_ptr == SENTINEL or count == 0:
        return RootLevelContainer(variants)
    content.seek_absolute(variants_ptr)
    if count > ctx.options.max_array_count or count * _NAMED_VARIANT_SIZE > content.remaining():
        raise InvalidFormatError(f"Root level container declares {count} variants")
    for _ in range(count):
        name_ptr = ctx.fixups.read_fixup(content, ctx.section)
        class_name_ptr = ctx.fixups.read_fixup(content, ctx.section)
        address = ctx.fixups.read_fixup(content, ctx.section)
        variants.append(
            NamedVariant(
                name=ctx.read_string_at(name_ptr),
                class_name=ctx.read_string_at(class_name_ptr),
                address=address,
            )
        )
    return RootLevelContainer(variants)


Decoder = Callable[[DecodeContext], Optional[object]]

DECODERS: Dict[str, Decoder] = {
    "hkaSkeleton": read_skeleton,
    "hkaSplineCompressedAnimation": read_spline_compressed_animation,
    "hkaAnimationBinding": read_animation_binding,
    "hkaAnimationContainer": read_animation_container,
    "hkxScene": read_scene,
    "RmdPhysicsSystem": read_physics_system,
    "hkpRigidBody": read_rigid_body,
    "hkpBoxShape": read_box_shape,
    "hkRootLevelContainer": read_root_level_container,
}

LAYOUTS: Dict[HavokVersion, VersionLayouts] = {
    HavokVersion.HAVOK_550_R1: VersionLayouts(
        skeleton=read_skeleton_550,
        animation_container=read_animation_container_550,
    ),
    HavokVersion.HK_2010_2_0_R1: VersionLayouts(
        skeleton=read_skeleton_2010,
        animation_container=read_animation_container_2010,
    ),
}


def layouts_for(version: HavokVersion) -> VersionLayouts:
    return LAYOUTS[version]


def decoder_for(class_name: str) -> Optional[Decoder]:
    return DECODERS.get(class_name)

