"""Decoder settings.

Module level ``d*`` values are the defaults picked up by :class:`DecoderOptions`;
front ends may overwrite them before building options, the CLI passes its
flags explicitly instead.
"""
from __future__ import annotations

from dataclasses import dataclass

# Upper bound for any element count read from a file before a list is built.
dMaxArrayCount = 1 << 20
# Raise UnknownClassError instead of skipping classes without a decoder.
dStrictClasses = False


@dataclass(frozen=True)
class DecoderOptions:
    max_array_count: int = dMaxArrayCount
    strict_classes: bool = dStrictClasses

    @classmethod
    def from_defaults(cls) -> "DecoderOptions":
        return cls(max_array_count=dMaxArrayCount, strict_classes=dStrictClasses)
