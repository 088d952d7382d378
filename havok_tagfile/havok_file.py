"""Decoded view of one Havok packfile.

Construction runs the whole decode: header, class names, fixups, then every
object listed by the virtual fixups. Decoded objects are kept in a read-only
table keyed by absolute file address; any failure aborts construction.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Tuple, Type, TypeVar, Union

from .config import DecoderOptions
from .errors import ObjectNotFoundError, ObjectTypeError, UnknownClassError
from .io.binary_parser import FixupTable, hkxHeader, read_class_names
from .io.binary_reader import BinaryReader, Buffer
from .io.context import DecodeContext
from .io.decoders import decoder_for, layouts_for
from .io.objects import (
    Animation,
    AnimationBinding,
    AnimationContainer,
    DecodedObject,
    PhysicsSystem,
    RigidBody,
    RootLevelContainer,
    Scene,
    Shape,
    Skeleton,
)

logger = logging.getLogger("havok_tagfile").getChild("havok_file")

T = TypeVar("T")


class HavokFile:
    def __init__(
        self,
        data: Union[Buffer, BinaryReader],
        options: Optional[DecoderOptions] = None,
    ) -> None:
        self.options = options or DecoderOptions.from_defaults()
        reader = data if isinstance(data, BinaryReader) else BinaryReader(data)
        start = time.perf_counter()

        self.header = hkxHeader()
        self.header.load(reader)
        self.class_names: Dict[int, str] = read_class_names(reader, self.header)
        self.fixups = FixupTable.load(reader, self.header)

        self.root_level_container: Optional[RootLevelContainer] = None
        self._animation_container: Optional[AnimationContainer] = None
        self._physics_system: Optional[PhysicsSystem] = None
        self._skipped: Dict[int, str] = {}
        self.objects: Mapping[int, DecodedObject] = MappingProxyType(
            self._decode_objects(reader)
        )

        logger.info(
            "Decoded %s packfile: %d objects (%d skipped) in %.3fs",
            self.header.contents_version,
            len(self.objects),
            len(self._skipped),
            time.perf_counter() - start,
        )

    @classmethod
    def from_path(
        cls, path: Union[str, Path], options: Optional[DecoderOptions] = None
    ) -> "HavokFile":
        return cls(Path(path).read_bytes(), options)

    # Decoding --------------------------------------------------------
    def _decode_objects(self, reader: BinaryReader) -> Dict[int, DecodedObject]:
        header = self.header
        contents = header.contents_section
        base = contents.absolute_data_start

        reader.seek_absolute(base)
        content = reader.read_stream(min(contents.end_offset, reader.remaining()))
        ctx = DecodeContext(
            reader=reader,
            content=content,
            header=header,
            fixups=self.fixups,
            options=self.options,
            layouts=layouts_for(header.version),
            section=header.contents_section_index,
        )

        objects: Dict[int, DecodedObject] = {}
        for entry in self.fixups.virtual_fixups:
            class_name = self.class_names.get(entry.class_name_offset, "")
            address = base + entry.source_offset
            decoder = decoder_for(class_name)
            if decoder is None:
                if self.options.strict_classes:
                    raise UnknownClassError(class_name, address)
                logger.warning("Skipping unsupported havok class %r at 0x%X", class_name, address)
                self._skipped[address] = class_name
                continue

            last_pos = reader.tell()
            reader.seek_absolute(address)
            content.seek(entry.source_offset)
            logger.debug("Decoding %s at 0x%X", class_name, address)
            result = decoder(ctx)
            reader.seek(last_pos)

            if isinstance(result, RootLevelContainer):
                self.root_level_container = result
            elif result is not None:
                objects[address] = result
                if isinstance(result, AnimationContainer):
                    self._animation_container = result
                elif isinstance(result, PhysicsSystem):
                    self._physics_system = result
        return objects

    # Queries ---------------------------------------------------------
    @property
    def skipped_classes(self) -> Mapping[int, str]:
        return MappingProxyType(self._skipped)

    def get_animation_container(self) -> AnimationContainer:
        if self._animation_container is None:
            raise ObjectNotFoundError("File has no hkaAnimationContainer")
        return self._animation_container

    def get_physics_system(self) -> PhysicsSystem:
        if self._physics_system is None:
            raise ObjectNotFoundError("File has no RmdPhysicsSystem")
        return self._physics_system

    def get_object(self, address: int) -> DecodedObject:
        try:
            return self.objects[address]
        except KeyError:
            raise ObjectNotFoundError(f"No object decoded at 0x{address:X}") from None

    def _get_typed(self, address: int, cls: Type[T]) -> T:
        obj = self.get_object(address)
        if not isinstance(obj, cls):
            raise ObjectTypeError(
                f"Object at 0x{address:X} is a {type(obj).__name__}, not a {cls.__name__}"
            )
        return obj

    def get_skeleton(self, address: int) -> Skeleton:
        return self._get_typed(address, Skeleton)

    def get_animation(self, address: int) -> Animation:
        return self._get_typed(address, Animation)

    def get_rigid_body(self, address: int) -> RigidBody:
        return self._get_typed(address, RigidBody)

    def get_shape(self, address: int) -> Shape:
        return self._get_typed(address, Shape)

    def get_binding(self, address: int) -> AnimationBinding:
        return self._get_typed(address, AnimationBinding)

    def get_scene(self, address: int) -> Scene:
        return self._get_typed(address, Scene)

    def iter_objects(self, cls: Type[T]) -> Iterator[Tuple[int, T]]:
        for address, obj in self.objects.items():
            if isinstance(obj, cls):
                yield address, obj
