"""Exceptions raised while decoding packfiles."""
from __future__ import annotations


class TagfileError(ValueError):
    """Base class for every decoding failure."""


class InvalidFormatError(TagfileError):
    """Bad magic, truncated data or structurally impossible values."""


class UnsupportedVersionError(TagfileError):
    def __init__(self, version: str):
        super().__init__(f"Unsupported havok version {version!r}")
        self.version = version


class InvalidFixupError(TagfileError):
    def __init__(self, source_offset: int):
        super().__init__(f"Invalid fixup at source offset 0x{source_offset:X}")
        self.source_offset = source_offset


class UnsupportedQuantizationError(TagfileError):
    """An encoding that the spline decoder does not implement."""


class UnknownClassError(TagfileError):
    def __init__(self, class_name: str, address: int):
        super().__init__(f"No decoder for havok class {class_name!r} at 0x{address:X}")
        self.class_name = class_name
        self.address = address


class ObjectNotFoundError(TagfileError, LookupError):
    pass


class ObjectTypeError(TagfileError, TypeError):
    pass
