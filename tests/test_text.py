"""Pre-validation gate and the line-based text adapter."""
from __future__ import annotations

from roster_engine.prevalidation import count_fragmented_lines, pre_validate
from roster_engine.text_lines import (
    cleanup_text,
    detect_house_number,
    detect_name,
    merge_single_characters,
    normalize_and_cleanup,
    normalize_text,
    rows_from_text,
    segment_lines,
)


# ═══════════════════════════════════════════════════════════════════════════════
# PRE-VALIDATION GATE
# ═══════════════════════════════════════════════════════════════════════════════

class TestPreValidation:
    """Score boundary and individual signals."""

    def test_house_number_and_address_keyword_pass(self):
        result = pre_validate("12/3 บ้านเลขที่")
        assert result.score == 4
        assert result.should_extract_table is True

    def test_lone_prefix_fails(self):
        result = pre_validate("นาย")
        assert result.score == 3
        assert result.should_extract_table is False
        assert result.reasons[-1] == "Score 3 < 4, skipping table extraction"

    def test_empty_text(self):
        result = pre_validate("   ")
        assert result.should_extract_table is False
        assert result.score == 0
        assert result.reasons == ("Empty text",)

    def test_mostly_numeric_penalized(self):
        result = pre_validate("1234567890")
        assert result.score == -1
        assert any("Mostly numeric" in r for r in result.reasons)

    def test_fragmented_lines_penalized(self):
        text = "\n".join("กขคงจฉ")
        assert count_fragmented_lines(text) == 6
        assert any("Fragmented OCR" in r for r in pre_validate(text).reasons)

    def test_roster_text(self):
        text = "นาย สมชาย ใจดี 12/3\nนาง สมศรี มีสุข 45"
        result = pre_validate(text)
        assert result.should_extract_table
        assert result.score >= 8

    def test_custom_threshold(self):
        assert pre_validate("นาย", threshold=3).should_extract_table is True


# ═══════════════════════════════════════════════════════════════════════════════
# TEXT NORMALIZATION
# ═══════════════════════════════════════════════════════════════════════════════

class TestTextNormalization:
    """Whitespace, invisible characters, Thai digits and page furniture."""

    def test_normalize_text(self):
        assert normalize_text("a\r\nb\t\tc\u200b ๑๒") == "a\nb c 12"

    def test_blank_runs_collapsed(self):
        assert normalize_text("a\n\n\n\nb") == "a\n\nb"

    def test_non_string(self):
        assert normalize_text(None) == ""
        assert cleanup_text(None) == ""

    def test_cleanup_drops_page_numbers(self):
        assert cleanup_text("นาย สมชาย\nหน้า 2\n15\nPage 3") == "นาย สมชาย"

    def test_normalize_and_cleanup_thai_page_number(self):
        assert normalize_and_cleanup("นาย สมชาย\nหน้า ๒") == "นาย สมชาย"

    def test_merge_single_characters(self):
        assert merge_single_characters("ส ม ช า ย ใจดี") == "สมชาย ใจดี"
        assert merge_single_characters("ก ใจดี") == "ก ใจดี"


# ═══════════════════════════════════════════════════════════════════════════════
# LINE SEGMENTATION
# ═══════════════════════════════════════════════════════════════════════════════

class TestLineSegmentation:
    """Lines are grouped into rows at the next name-looking line."""

    def test_detect_name(self):
        assert detect_name("นาย สมชาย")
        assert detect_name("สมชาย ใจดี")
        assert not detect_name("12/3")
        assert not detect_name("ก ข")
        assert not detect_name("Somchai Jaidee")

    def test_detect_house_number(self):
        assert detect_house_number("บ้าน 12/3 ซอย") == "12/3"
        assert detect_house_number("เลขที่ 45") == "45"
        assert detect_house_number("ไม่มี") is None

    def test_continuation_lines_joined(self):
        text = "นาย สมชาย ใจดี\n12/3\nนาง สมศรี มีสุข 45"
        assert segment_lines(text) == ["นาย สมชาย ใจดี 12/3", "นาง สมศรี มีสุข 45"]

    def test_rows_without_thai_or_number_dropped(self):
        assert segment_lines("---\n***") == []

    def test_rows_from_text(self):
        rows = rows_from_text("นาย สมชาย ใจดี 12/3\nนาง สมศรี มีสุข 45")
        assert [r.y_anchor for r in rows] == [0.0, 1.0]
        assert rows[0].tokens == ()
        assert rows[0].thai_word_count == 3
