"""Read-only decoder for Havok binary packfiles used by the Alan Wake engine."""
from __future__ import annotations

import logging

_base_logger = logging.getLogger("havok_tagfile")
if not _base_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("[HavokTagfile] %(levelname)s %(name)s: %(message)s")
    )
    _base_logger.addHandler(handler)
    _base_logger.setLevel(logging.INFO)

from .config import DecoderOptions  # noqa: E402
from .errors import (  # noqa: E402
    InvalidFixupError,
    InvalidFormatError,
    ObjectNotFoundError,
    ObjectTypeError,
    TagfileError,
    UnknownClassError,
    UnsupportedQuantizationError,
    UnsupportedVersionError,
)
from .havok_file import HavokFile  # noqa: E402

__version__ = "0.1.0"

__all__ = [
    "DecoderOptions",
    "HavokFile",
    "InvalidFixupError",
    "InvalidFormatError",
    "ObjectNotFoundError",
    "ObjectTypeError",
    "TagfileError",
    "UnknownClassError",
    "UnsupportedQuantizationError",
    "UnsupportedVersionError",
]
