"""Tests for appended-section framing and offset bookkeeping."""

from __future__ import annotations

import numpy as np
import pytest

from vtkrect.core.bases import BinaryLayout, Precision
from vtkrect.encoding.codec import (
    AppendedSection,
    AppendedSectionWriter,
    AppendedSlot,
    locate_appended_section,
    plan_offsets,
)
from vtkrect.errors import (
    ConfigurationError,
    LengthMismatch,
    MalformedEncoding,
    UnsupportedDatasetType,
)


def _section(blocks, encoding="raw", layout=None):
    writer = AppendedSectionWriter(encoding, layout)
    slots = [writer.reserve(name, values, precision) for name, values, precision in blocks]
    return writer, slots


class TestPlanOffsets:
    def test_left_fold(self):
        assert plan_offsets([16, 24, 8]) == [0, 16, 40]

    def test_empty(self):
        assert plan_offsets([]) == []


class TestAppendedSectionWriter:
    def test_offsets_are_running_sums(self):
        writer, slots = _section([
            ("a", np.ones(2), Precision.FLOAT64),
            ("b", np.ones(3), Precision.FLOAT64),
        ])
        assert slots[0] == AppendedSlot("a", 0, 8 + 16)
        assert slots[1] == AppendedSlot("b", 24, 8 + 24)
        assert writer.length == len(writer.payload()) == 56
        assert writer.slots == slots

    def test_base64_offsets_count_characters(self):
        writer, slots = _section(
            [("a", np.ones(2), Precision.FLOAT64), ("b", np.ones(1), Precision.FLOAT64)],
            encoding="base64",
        )
        # 24 bytes -> 32 characters, 16 bytes -> 24 characters
        assert [slot.offset for slot in slots] == [0, 32]
        assert writer.length == 56

    def test_empty_writer_is_falsy(self):
        assert not AppendedSectionWriter()

    def test_unknown_encoding(self):
        with pytest.raises(ConfigurationError):
            AppendedSectionWriter("zlib")


class TestAppendedSection:
    @pytest.mark.parametrize("encoding", ["raw", "base64"])
    @pytest.mark.parametrize("header_type", ["UInt32", "UInt64"])
    def test_decode_each_block(self, encoding, header_type):
        layout = BinaryLayout(header_type=header_type)
        first = np.arange(5, dtype=np.float64)
        second = np.arange(7, dtype=np.float64) * -1.0
        writer, slots = _section(
            [("a", first, Precision.FLOAT64), ("b", second, Precision.FLOAT64)],
            encoding=encoding,
            layout=layout,
        )
        section = AppendedSection(writer.payload(), encoding, layout)
        np.testing.assert_array_equal(section.decode(slots[0].offset, Precision.FLOAT64), first)
        np.testing.assert_array_equal(section.decode(slots[1].offset, Precision.FLOAT64), second)
        assert [section.block_length(s.offset) for s in slots] == [s.length for s in slots]

    def test_scan_returns_sorted_slots(self):
        writer, slots = _section([
            ("a", np.ones(2), Precision.FLOAT64),
            ("b", np.ones(3), Precision.FLOAT64),
        ])
        section = AppendedSection(writer.payload() + b"\n  ")
        assert section.scan([("b", slots[1].offset), ("a", 0)]) == slots

    def test_scan_detects_truncation(self):
        writer, slots = _section([("a", np.ones(8), Precision.FLOAT64)])
        payload = writer.payload()
        section = AppendedSection(payload[: len(payload) // 2])
        with pytest.raises(LengthMismatch):
            section.scan([("a", 0)])

    def test_scan_detects_gap(self):
        writer, slots = _section([
            ("a", np.ones(2), Precision.FLOAT64),
            ("b", np.ones(3), Precision.FLOAT64),
        ])
        section = AppendedSection(writer.payload())
        with pytest.raises(LengthMismatch):
            section.scan([("b", slots[1].offset)])

    def test_scan_detects_unclaimed_bytes(self):
        writer, _ = _section([("a", np.ones(2), Precision.FLOAT64)])
        section = AppendedSection(writer.payload() + b"\x00\x01")
        with pytest.raises(LengthMismatch):
            section.scan([("a", 0)])

    def test_content_length_stops_at_closing_line(self):
        writer, _ = _section([("a", np.ones(2), Precision.FLOAT64)])
        section = AppendedSection(writer.payload() + b"\n  ")
        assert section.content_length == writer.length == 24

    def test_offset_out_of_range(self):
        writer, _ = _section([("a", np.ones(2), Precision.FLOAT64)])
        section = AppendedSection(writer.payload())
        with pytest.raises(LengthMismatch):
            section.decode(1000, Precision.FLOAT64, name="a")

    def test_missing_terminator(self):
        writer, _ = _section([("a", np.ones(2), Precision.FLOAT64)])
        section = AppendedSection(writer.payload(), terminated=False)
        with pytest.raises(MalformedEncoding):
            section.scan([("a", 0)])

    def test_expected_count_enforced(self):
        writer, _ = _section([("a", np.ones(2), Precision.FLOAT64)])
        section = AppendedSection(writer.payload())
        with pytest.raises(LengthMismatch):
            section.decode(0, Precision.FLOAT64, expected_count=3)


class TestLocateAppendedSection:
    def test_no_section(self):
        split = locate_appended_section(b"<VTKFile></VTKFile>")
        assert split.section is None
        assert split.head == b"<VTKFile></VTKFile>"

    def test_splits_head_and_section(self):
        content = (
            b'<VTKFile>\n  <AppendedData encoding="raw">\n   _\x01\x02</AppendedData>'
            b"\n</AppendedData>\n</VTKFile>\n"
        )
        split = locate_appended_section(content)
        assert split.encoding == "raw"
        assert split.head == b"<VTKFile>\n  </VTKFile>"
        # the last closing tag ends the section, even if the payload contains one
        assert split.section == b"\x01\x02</AppendedData>\n"
        assert split.terminated

    def test_unterminated_section(self):
        split = locate_appended_section(b'<VTKFile><AppendedData encoding="base64">_QUJD')
        assert split.section == b"QUJD"
        assert not split.terminated

    def test_missing_sentinel(self):
        with pytest.raises(MalformedEncoding):
            locate_appended_section(b'<VTKFile><AppendedData encoding="raw">abc</AppendedData>')

    def test_missing_encoding(self):
        with pytest.raises(MalformedEncoding):
            locate_appended_section(b"<VTKFile><AppendedData>_</AppendedData></VTKFile>")

    def test_unknown_encoding(self):
        with pytest.raises(UnsupportedDatasetType):
            locate_appended_section(b'<VTKFile><AppendedData encoding="zlib">_</AppendedData>')
