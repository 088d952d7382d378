"""hkaSkeleton decoding for the two supported packfile generations.

hk_2010 keeps bones inline in an hkArray next to a parent index hkArray and a
reference pose hkArray. Havok 5.5 predates hkArray in this class: every
member is a raw pointer plus count, and the bone list is an array of
pointers to individually allocated bone records.

Reference floats, float slots, local frames and partitions are not decoded.
"""
from __future__ import annotations

import logging
from typing import List

from ..errors import InvalidFormatError
from .binary_parser import SENTINEL, HkArray
from .context import DecodeContext
from .objects import Bone, Skeleton

logger = logging.getLogger("havok_tagfile").getChild("io.skeleton")

_BONE_RECORD_SIZE = 8
_QS_TRANSFORM_SIZE = 48


def read_skeleton_2010(ctx: DecodeContext) -> Skeleton:
    reader = ctx.reader
    reader.skip(8)  # hkReferencedObject
    name_offset = ctx.read_fixup()
    parent_array = ctx.read_hkarray()
    bone_array = ctx.read_hkarray()
    transform_array = ctx.read_hkarray()

    name = ctx.read_string_at(name_offset)
    parents = ctx.read_s16_array(parent_array, "parent indices")

    bones: List[Bone] = []
    if not bone_array.is_empty and bone_array.count:
        reader.seek_absolute(bone_array.offset)
        ctx.check_count(bone_array.count, _BONE_RECORD_SIZE, "bones")
        for _ in range(bone_array.count):
            bones.append(_read_bone(ctx))

    _attach_parents(name, bones, parents)
    _read_reference_pose(ctx, name, transform_array, bones)
    return Skeleton(name=name, bones=bones)


def read_skeleton_550(ctx: DecodeContext) -> Skeleton:
    name_offset = ctx.read_fixup()
    parent_array = ctx.read_pointer_and_count()
    bone_array = ctx.read_pointer_and_count()
    transform_array = ctx.read_pointer_and_count()

    name = ctx.read_string_at(name_offset)
    parents = ctx.read_s16_array(parent_array, "parent indices")

    bones: List[Bone] = []
    for index, bone_offset in enumerate(ctx.read_fixup_array(bone_array, "bones")):
        if bone_offset == SENTINEL:
            raise InvalidFormatError(f"Skeleton {name!r}: bone {index} has no record")
        ctx.reader.seek_absolute(bone_offset)
        bones.append(_read_bone(ctx))

    _attach_parents(name, bones, parents)
    _read_reference_pose(ctx, name, transform_array, bones)
    return Skeleton(name=name, bones=bones)


def _read_bone(ctx: DecodeContext) -> Bone:
    reader = ctx.reader
    bone_name_offset = ctx.read_fixup()
    translation_locked = reader.u32() == 1

    last_pos = reader.tell()
    name = ctx.read_string_at(bone_name_offset)
    reader.seek(last_pos)
    return Bone(name=name, translation_locked=translation_locked)


def _attach_parents(name: str, bones: List[Bone], parents: List[int]) -> None:
    if len(parents) != len(bones):
        logger.warning(
            "Skeleton %r: %d parent indices for %d bones", name, len(parents), len(bones)
        )
    for bone, parent in zip(bones, parents):
        bone.parent_index = parent


def _read_reference_pose(
    ctx: DecodeContext, name: str, array: HkArray, bones: List[Bone]
) -> None:
    if array.is_empty or array.count == 0:
        return
    reader = ctx.reader
    reader.seek_absolute(array.offset)
    ctx.check_count(array.count, _QS_TRANSFORM_SIZE, "reference pose")
    if array.count != len(bones):
        logger.warning(
            "Skeleton %r: %d reference transforms for %d bones",
            name,
            array.count,
            len(bones),
        )
    for bone in bones[: array.count]:
        px, py, pz, _, rw, rx, ry, rz, sx, sy, sz, _ = reader.read("12f")
        bone.position = (px, py, pz)
        bone.rotation = (rx, ry, rz, rw)
        bone.scale = (sx, sy, sz)
