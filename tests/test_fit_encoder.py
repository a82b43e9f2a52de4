"""Tests for the FIT weight encoder."""
import struct
from datetime import datetime, timezone

import pytest
from fitparse import FitFile

from garmin_uploader.errors import EncodingError
from garmin_uploader.fit_encoder import (
    FitWeightEncoder,
    FitWriter,
    UINT8,
    fit_crc,
    inspect_weight_file,
    to_fit_timestamp,
)
from garmin_uploader.models import Credentials, WeightScaleData


@pytest.fixture
def encoder(tmp_path):
    return FitWeightEncoder(output_dir=tmp_path)


class TestHelpers:

    def test_crc_of_empty_input(self):
        assert fit_crc(b"") == 0

    def test_crc_appended_gives_zero(self):
        data = b"garmin weight"
        crc = fit_crc(data)
        assert fit_crc(data + struct.pack("<H", crc)) == 0

    def test_fit_epoch(self):
        assert to_fit_timestamp(datetime(1989, 12, 31, tzinfo=timezone.utc)) == 0
        assert to_fit_timestamp(datetime(1989, 12, 31, 0, 1)) == 60

    def test_header(self):
        writer = FitWriter()
        writer.add_message(0, [(0, UINT8, 9)])
        payload = writer.to_bytes()

        header_size, protocol, profile, data_size, magic = struct.unpack("<BBHI4s", payload[:12])
        assert header_size == 14
        assert magic == b".FIT"
        assert data_size == len(payload) - 14 - 2
        assert fit_crc(payload) == 0

    def test_out_of_range_value(self):
        writer = FitWriter()
        with pytest.raises(EncodingError):
            writer.add_message(30, [(8, UINT8, 300)])


class TestFitWeightEncoder:

    def test_encode_reads_back(self, encoder, weight_data, profile, tmp_path):
        path = encoder.encode(weight_data, profile)

        assert path.parent == tmp_path
        assert path.suffix == ".fit"
        fit = FitFile(str(path))
        file_id = next(fit.get_messages("file_id"))
        assert file_id.get_value("type") == "weight"

        scale = next(fit.get_messages("weight_scale"))
        assert scale.get_value("weight") == pytest.approx(80.5)
        assert scale.get_value("percent_fat") == pytest.approx(18.2)
        assert scale.get_value("bone_mass") == pytest.approx(3.1)
        assert scale.get_value("timestamp").replace(tzinfo=None) == datetime(2024, 3, 1, 7, 30)

        user = next(fit.get_messages("user_profile"))
        assert user.get_value("gender") == "male"
        assert user.get_value("age") == 35
        assert user.get_value("height") == pytest.approx(1.8)

    def test_optional_fields_are_omitted(self, encoder, profile):
        data = WeightScaleData(
            credentials=Credentials("a", "b"),
            timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
            weight=70.0,
        )

        path = encoder.encode(data, profile)

        scale = next(FitFile(str(path)).get_messages("weight_scale"))
        assert scale.get_value("percent_fat") is None
        assert scale.get_value("weight") == pytest.approx(70.0)

    @pytest.mark.parametrize("weight", [0, -1.0])
    def test_invalid_weight(self, encoder, weight_data, profile, weight):
        data = WeightScaleData(credentials=weight_data.credentials, timestamp=weight_data.timestamp, weight=weight)

        with pytest.raises(EncodingError):
            encoder.encode(data, profile)

    def test_timestamp_before_epoch(self, encoder, profile):
        data = WeightScaleData(
            credentials=Credentials("a", "b"),
            timestamp=datetime(1980, 1, 1, tzinfo=timezone.utc),
            weight=70.0,
        )

        with pytest.raises(EncodingError):
            encoder.encode(data, profile)

    def test_unwritable_directory(self, weight_data, profile, tmp_path):
        encoder = FitWeightEncoder(output_dir=tmp_path / "missing")

        with pytest.raises(EncodingError):
            encoder.encode(weight_data, profile)


class TestInspectWeightFile:

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "bad.fit"
        path.write_bytes(b"not a fit file at all")

        with pytest.raises(EncodingError):
            inspect_weight_file(path)

    def test_not_a_weight_file(self, tmp_path):
        writer = FitWriter()
        writer.add_message(0, [(0, 0x00, 4)])  # file type: activity
        path = tmp_path / "activity.fit"
        path.write_bytes(writer.to_bytes())

        with pytest.raises(EncodingError):
            inspect_weight_file(path)
