"""Spline compressed Havok animation decoding.

Each block of an ``hkaSplineCompressedAnimation`` starts with one transform
mask per track followed by the packed channel data of every track:

* Transform masks flag every position/scale axis and the rotation as spline
  (dynamic), static or absent, and pack the quantization used by each
  channel.
* Spline channels store an item count, a degree and a byte knot vector
  followed by quantized control points. Positions use 8 or 16 bit fractions
  of a per-axis ``[min, max]`` range.
* Rotations use the 40 bit "smallest three" quaternion encoding.
* Channel payloads are realigned to 4 bytes counted from the block start.

Spline compressed scale is not supported and fails loudly; static scale is
consumed and dropped.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..errors import InvalidFormatError, UnsupportedQuantizationError
from .binary_reader import BinaryReader
from .objects import Quat, Track, Vec3

logger = logging.getLogger("havok_tagfile").getChild("io.spline_decompressor")

QUAT40_FRACTAL = 0.000345436
QUAT40_BIAS = 0x801


class SplineTrackType:
    DYNAMIC = 0
    STATIC = 1
    IDENTITY = 2


class QuantizationType:
    QT_8BIT = 0
    QT_16BIT = 1
    QT_40BIT = 3


class TransformType:
    POS_X = 0
    POS_Y = 1
    POS_Z = 2
    ROTATION = 3
    SCALE_X = 4
    SCALE_Y = 5
    SCALE_Z = 6


@dataclass(frozen=True)
class TransformMask:
    quantization_types: int
    position_types: int
    rotation_types: int
    scale_types: int

    @classmethod
    def from_bytes(cls, payload: bytes) -> "TransformMask":
        if len(payload) != 4:
            raise ValueError("TransformMask requires exactly 4 bytes")
        return cls(payload[0], payload[1], payload[2], payload[3])

    def _flag(self, flags: int, axis: int) -> int:
        # A spline bit wins over the static bit of the same axis.
        if flags & (0x10 << axis):
            return SplineTrackType.DYNAMIC
        if flags & (0x01 << axis):
            return SplineTrackType.STATIC
        return SplineTrackType.IDENTITY

    def sub_track_type(self, transform: int) -> int:
        if TransformType.POS_X <= transform <= TransformType.POS_Z:
            return self._flag(self.position_types, transform - TransformType.POS_X)
        if transform == TransformType.ROTATION:
            if self.rotation_types & 0xF0:
                return SplineTrackType.DYNAMIC
            if self.rotation_types & 0x0F:
                return SplineTrackType.STATIC
            return SplineTrackType.IDENTITY
        if TransformType.SCALE_X <= transform <= TransformType.SCALE_Z:
            return self._flag(self.scale_types, transform - TransformType.SCALE_X)
        return SplineTrackType.IDENTITY

    def axis_types(self, base_type: int) -> List[int]:
        return [self.sub_track_type(base_type + axis) for axis in range(3)]

    def pos_quantization(self) -> int:
        return self.quantization_types & 0x3

    def rot_quantization(self) -> int:
        return ((self.quantization_types >> 2) & 0xF) + 2


def decode_40bit_quaternion(raw: int) -> Quat:
    """Unpack a 40 bit quaternion.

    Bits 0-35 hold three biased 12 bit components, bits 36-37 the slot of the
    dropped (largest) component and bit 38 its sign.
    """
    x = float((raw & 0xFFF) - QUAT40_BIAS) * QUAT40_FRACTAL
    y = float(((raw >> 12) & 0xFFF) - QUAT40_BIAS) * QUAT40_FRACTAL
    z = float(((raw >> 24) & 0xFFF) - QUAT40_BIAS) * QUAT40_FRACTAL

    w = math.sqrt(max(0.0, 1.0 - (x * x + y * y + z * z)))
    if (raw >> 38) & 1:
        w = -w

    shift = (raw >> 36) & 3
    values = [x, y, z, w]
    for i in range(3 - shift):
        values[3 - i], values[2 - i] = values[2 - i], values[3 - i]
    return (values[0], values[1], values[2], values[3])


def read_40bit_quaternion(reader: BinaryReader) -> Quat:
    return decode_40bit_quaternion(int.from_bytes(reader.read_bytes(5), "little"))


def _find_knot_span(
    degree: int, value: float, num_points: int, knots: Sequence[int]
) -> int:
    if value >= knots[num_points]:
        return num_points - 1
    if value <= knots[degree]:
        return degree
    low = degree
    high = num_points
    mid = (low + high) // 2
    while value < knots[mid] or value >= knots[mid + 1]:
        if value < knots[mid]:
            high = mid
        else:
            low = mid
        mid = (low + high) // 2
    return mid


def evaluate_spline(
    degree: int,
    knots: Sequence[int],
    control_points: Sequence[Tuple[float, ...]],
    frame: float,
) -> Tuple[float, ...]:
    """Evaluate decoded control points as a B-spline at a block-local frame."""
    if len(control_points) == 1:
        return tuple(control_points[0])
    knot_span = _find_knot_span(degree, frame, len(control_points), knots)

    n_vals = [0.0] * (degree + 1)
    n_vals[0] = 1.0
    for i in range(1, degree + 1):
        for j in range(i - 1, -1, -1):
            denom = knots[knot_span + i - j] - knots[knot_span - j]
            a = 0.0 if denom == 0 else (frame - knots[knot_span - j]) / denom
            tmp = n_vals[j] * a
            n_vals[j + 1] += n_vals[j] - tmp
            n_vals[j] = tmp

    accum = [0.0] * len(control_points[0])
    for i in range(degree + 1):
        weight = n_vals[i]
        for idx, component in enumerate(control_points[knot_span - i]):
            accum[idx] += component * weight
    return tuple(accum)


def _position_sample_format(quantization_type: int) -> Tuple[str, float]:
    if quantization_type == QuantizationType.QT_8BIT:
        return "B", 255.0
    if quantization_type == QuantizationType.QT_16BIT:
        return "H", 65535.0
    raise UnsupportedQuantizationError(
        f"Invalid position quantization type {quantization_type}"
    )


class SplineDecompressor:
    def __init__(self) -> None:
        self.tracks: List[Track] = []

    def decompress(
        self,
        reader: BinaryReader,
        block_offsets: Sequence[int],
        num_transform_tracks: int,
        num_float_tracks: int,
    ) -> List[Track]:
        logger.debug(
            "SplineDecompressor: decompressing %d blocks (tracks=%d floats=%d)",
            len(block_offsets),
            num_transform_tracks,
            num_float_tracks,
        )
        self.tracks = []
        for idx, offset in enumerate(block_offsets):
            if offset >= len(reader):
                raise InvalidFormatError(
                    f"Block {idx} offset {offset} beyond buffer size {len(reader)}"
                )
            block_start = time.perf_counter()
            self.tracks.extend(
                self._parse_block(reader, offset, num_transform_tracks, num_float_tracks)
            )
            logger.debug(
                "SplineDecompressor: parsed block %d/%d at offset %d in %.3fs",
                idx + 1,
                len(block_offsets),
                offset,
                time.perf_counter() - block_start,
            )
        return self.tracks

    def _parse_block(
        self,
        reader: BinaryReader,
        offset: int,
        num_transform_tracks: int,
        num_float_tracks: int,
    ) -> List[Track]:
        reader.seek(offset)
        masks = [
            TransformMask.from_bytes(reader.read_bytes(4))
            for _ in range(num_transform_tracks)
        ]
        # Float track masks are one byte each and carry no transform data.
        reader.skip(num_float_tracks)
        reader.align(offset)

        tracks: List[Track] = []
        for mask in masks:
            positions, position_degree, position_knots = self._parse_position(
                reader, mask, offset
            )
            rotations, rotation_degree, rotation_knots = self._parse_rotation(
                reader, mask, offset
            )
            self._skip_scale(reader, mask)
            tracks.append(
                Track(
                    positions=positions,
                    rotations=rotations,
                    position_degree=position_degree,
                    position_knots=position_knots,
                    rotation_degree=rotation_degree,
                    rotation_knots=rotation_knots,
                )
            )
        return tracks

    def _read_spline_header(self, reader: BinaryReader) -> Tuple[int, int, List[int]]:
        num_items = reader.u16()
        degree = reader.u8()
        knots = list(reader.read_bytes(num_items + degree + 2))
        return num_items, degree, knots

    def _parse_position(
        self, reader: BinaryReader, mask: TransformMask, begin: int
    ) -> Tuple[Optional[List[Vec3]], Optional[int], Optional[List[int]]]:
        axis_types = mask.axis_types(TransformType.POS_X)
        spline_axes = [kind == SplineTrackType.DYNAMIC for kind in axis_types]
        static_axes = [kind == SplineTrackType.STATIC for kind in axis_types]

        if not any(spline_axes):
            if not any(static_axes):
                return None, None, None
            sample = [0.0, 0.0, 0.0]
            for axis in range(3):
                if static_axes[axis]:
                    sample[axis] = reader.f32()
            return [(sample[0], sample[1], sample[2])], None, None

        num_items, degree, knots = self._read_spline_header(reader)
        reader.align(begin)

        minimums = [0.0, 0.0, 0.0]
        maximums = [0.0, 0.0, 0.0]
        statics = [0.0, 0.0, 0.0]
        for axis in range(3):
            if spline_axes[axis]:
                minimums[axis], maximums[axis] = reader.read("ff")
            elif static_axes[axis]:
                statics[axis] = reader.f32()

        fmt, scale = _position_sample_format(mask.pos_quantization())
        positions: List[Vec3] = []
        for _ in range(num_items + 1):
            sample = list(statics)
            for axis in range(3):
                if spline_axes[axis]:
                    fraction = reader.read(fmt)[0] / scale
                    sample[axis] = (
                        minimums[axis] + (maximums[axis] - minimums[axis]) * fraction
                    )
            positions.append((sample[0], sample[1], sample[2]))
        reader.align(begin)
        return positions, degree, knots

    def _parse_rotation(
        self, reader: BinaryReader, mask: TransformMask, begin: int
    ) -> Tuple[List[Quat], Optional[int], Optional[List[int]]]:
        track_type = mask.sub_track_type(TransformType.ROTATION)
        rotations: List[Quat] = []
        degree: Optional[int] = None
        knots: Optional[List[int]] = None

        if track_type != SplineTrackType.IDENTITY:
            quantization = mask.rot_quantization()
            if quantization != QuantizationType.QT_40BIT:
                raise UnsupportedQuantizationError(
                    f"Invalid rotation quantization type {quantization}"
                )
            if track_type == SplineTrackType.DYNAMIC:
                num_items, degree, knots = self._read_spline_header(reader)
                rotations = [read_40bit_quaternion(reader) for _ in range(num_items + 1)]
            else:
                rotations = [read_40bit_quaternion(reader)]

        reader.align(begin)
        return rotations, degree, knots

    def _skip_scale(self, reader: BinaryReader, mask: TransformMask) -> None:
        axis_types = mask.axis_types(TransformType.SCALE_X)
        if SplineTrackType.DYNAMIC in axis_types:
            raise UnsupportedQuantizationError(
                "Spline compressed scale is not supported"
            )
        for kind in axis_types:
            if kind == SplineTrackType.STATIC:
                reader.skip(4)
