"""FIT encoding of weight-scale measurements.

Writes the smallest file Garmin Connect imports as a weigh-in: a
``file_id`` message of type *weight*, a ``user_profile`` and one
``weight_scale`` message. The result is read back with ``fitparse``
before it is handed to the uploader so a malformed file never leaves this
module.

Only the handful of base types these messages need are supported.
"""
from __future__ import annotations

import logging
import struct
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from fitparse import FitFile, FitParseError

from .errors import EncodingError
from .models import UserProfileSettings, WeightScaleData

logger = logging.getLogger(__name__)

FIT_EPOCH_OFFSET = 631065600  # 1989-12-31T00:00:00Z as unix time
PROTOCOL_VERSION = 0x10
PROFILE_VERSION = 2132

ENUM = 0x00
UINT8 = 0x02
UINT16 = 0x84
UINT32 = 0x86
UINT32Z = 0x8C

_FORMATS = {ENUM: "B", UINT8: "B", UINT16: "H", UINT32: "I", UINT32Z: "I"}
_INVALID = {ENUM: 0xFF, UINT8: 0xFF, UINT16: 0xFFFF, UINT32: 0xFFFFFFFF, UINT32Z: 0x00000000}

MESG_FILE_ID = 0
MESG_USER_PROFILE = 3
MESG_WEIGHT_SCALE = 30

FILE_TYPE_WEIGHT = 9

CRC_TABLE = (
    0x0000, 0xCC01, 0xD801, 0x1400, 0xF001, 0x3C00, 0x2800, 0xE401,
    0xA001, 0x6C00, 0x7800, 0xB401, 0x5000, 0x9C01, 0x8801, 0x4400,
)


def fit_crc(data: bytes, crc: int = 0) -> int:
    """CRC-16 as defined by the FIT SDK."""
    for byte in data:
        tmp = CRC_TABLE[crc & 0xF]
        crc = (crc >> 4) & 0x0FFF
        crc = crc ^ tmp ^ CRC_TABLE[byte & 0xF]
        tmp = CRC_TABLE[crc & 0xF]
        crc = (crc >> 4) & 0x0FFF
        crc = crc ^ tmp ^ CRC_TABLE[(byte >> 4) & 0xF]
    return crc


def to_fit_timestamp(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp()) - FIT_EPOCH_OFFSET


class FitWriter:
    """Accumulates definition + data records and renders a FIT file."""

    def __init__(self) -> None:
        self._records = bytearray()
        self._next_local = 0

    def add_message(self, global_num: int, fields: list[tuple[int, int, int | None]]) -> None:
        """Append one message; ``fields`` are (field_num, base_type, value).

        Fields whose value is None are left out of the definition.
        """
        fields = [f for f in fields if f[2] is not None]
        if self._next_local > 0x0F:
            raise EncodingError("Too many local message types")
        local = self._next_local
        self._next_local += 1

        definition = struct.pack("<BBBHB", 0x40 | local, 0, 0, global_num, len(fields))
        data = bytearray([local])
        for num, base_type, value in fields:
            fmt = "<" + _FORMATS[base_type]
            size = struct.calcsize(fmt)
            if value == _INVALID[base_type] or not 0 <= value < 2 ** (8 * size):
                raise EncodingError(f"Value {value} does not fit field {num} of message {global_num}")
            definition += struct.pack("<BBB", num, size, base_type)
            data += struct.pack(fmt, value)
        self._records += definition + data

    def to_bytes(self) -> bytes:
        data = bytes(self._records)
        header = struct.pack("<BBHI4s", 14, PROTOCOL_VERSION, PROFILE_VERSION, len(data), b".FIT")
        header += struct.pack("<H", fit_crc(header))
        content = header + data
        return content + struct.pack("<H", fit_crc(content))


def _scaled(value: float | None, scale: float) -> int | None:
    return None if value is None else int(round(value * scale))


class PayloadEncoder(Protocol):
    def encode(self, weight: WeightScaleData, profile: UserProfileSettings) -> Path:
        ...


class FitWeightEncoder:
    """Encodes a ``WeightScaleData`` into a FIT weight file on disk.

    Parameters
    ----------
    output_dir: Path | None
        Where files are written; defaults to the system temp directory.
    manufacturer: int
        FIT manufacturer id written into ``file_id`` (1 = Garmin).
    product: int
        FIT product id written into ``file_id``.
    """

    def __init__(self, output_dir: Path | None = None, manufacturer: int = 1, product: int = 65534) -> None:
        self.output_dir = output_dir
        self.manufacturer = manufacturer
        self.product = product

    def build(self, weight: WeightScaleData, profile: UserProfileSettings) -> bytes:
        if weight.weight is None or weight.weight <= 0:
            raise EncodingError(f"Invalid weight: {weight.weight!r}")
        timestamp = to_fit_timestamp(weight.timestamp)
        if timestamp < 0:
            raise EncodingError(f"Timestamp before FIT epoch: {weight.timestamp}")
        gender = {"female": 0, "male": 1}.get(profile.gender.lower())

        writer = FitWriter()
        writer.add_message(MESG_FILE_ID, [
            (0, ENUM, FILE_TYPE_WEIGHT),
            (1, UINT16, self.manufacturer),
            (2, UINT16, self.product),
            (3, UINT32Z, timestamp or 1),
            (4, UINT32, timestamp),
        ])
        writer.add_message(MESG_USER_PROFILE, [
            (1, ENUM, gender),
            (2, UINT8, profile.age),
            (3, UINT8, _scaled(profile.height, 1)),  # cm == m * 100
            (4, UINT16, _scaled(weight.weight, 10)),
        ])
        writer.add_message(MESG_WEIGHT_SCALE, [
            (253, UINT32, timestamp),
            (0, UINT16, _scaled(weight.weight, 100)),
            (1, UINT16, _scaled(weight.percent_fat, 100)),
            (2, UINT16, _scaled(weight.percent_hydration, 100)),
            (3, UINT16, _scaled(weight.visceral_fat_mass, 100)),
            (4, UINT16, _scaled(weight.bone_mass, 100)),
            (5, UINT16, _scaled(weight.muscle_mass, 100)),
            (7, UINT16, _scaled(weight.basal_met, 4)),
            (8, UINT8, weight.physique_rating),
            (9, UINT16, _scaled(weight.active_met, 4)),
            (10, UINT8, weight.metabolic_age),
            (11, UINT8, weight.visceral_fat_rating),
            (13, UINT16, _scaled(weight.bmi, 10)),
        ])
        return writer.to_bytes()

    def encode(self, weight: WeightScaleData, profile: UserProfileSettings) -> Path:
        """Write the FIT file and return its path.

        Raises ``EncodingError`` when the data cannot be encoded or the
        written file does not parse back as a weight file.
        """
        payload = self.build(weight, profile)
        try:
            with tempfile.NamedTemporaryFile(
                prefix="weight_", suffix=".fit", dir=self.output_dir, delete=False
            ) as fh:
                fh.write(payload)
                path = Path(fh.name)
        except OSError as e:
            raise EncodingError(f"Could not write FIT file: {e}") from e
        logger.debug("Wrote %d bytes to %s", len(payload), path)
        inspect_weight_file(path)
        return path


def inspect_weight_file(path: Path) -> None:
    """Parse ``path`` with fitparse and check it is a weight file."""
    try:
        fit = FitFile(str(path))
        file_ids = list(fit.get_messages("file_id"))
        weights = list(fit.get_messages("weight_scale"))
    except FitParseError as e:
        raise EncodingError(f"Generated FIT file does not parse: {e}") from e

    if not file_ids or file_ids[0].get_value("type") != "weight":
        raise EncodingError(f"{path.name} is not a weight FIT file")
    if not weights:
        raise EncodingError(f"{path.name} has no weight_scale message")
