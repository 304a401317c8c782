"""Header location, field extraction and name normalization."""
from __future__ import annotations

import pytest

from roster_engine.extractor import FieldExtractor, NameNormalizer
from roster_engine.header import HeaderLocator, extract_house_number_by_column
from roster_engine.types import RECORD_FIELDS, HeaderInfo, Record


@pytest.fixture
def extractor() -> FieldExtractor:
    return FieldExtractor({})


@pytest.fixture
def no_header() -> HeaderInfo:
    return HeaderInfo()


# ═══════════════════════════════════════════════════════════════════════════════
# HEADER LOCATOR
# ═══════════════════════════════════════════════════════════════════════════════

class TestHeaderLocator:
    """Literal header rows and their column positions."""

    def test_header_found_with_columns(self):
        info = HeaderLocator({}).locate(["ลำดับ ชื่อ-สกุล บ้านเลขที่", "1 นายสมชาย ใจดี 12/3"])
        assert info.has_header
        assert info.header_row_index == 0
        assert info.column_index_by_field == {"order": 0, "name": 1, "house_number": 2}
        assert info.house_number_column == 2

    def test_single_keyword_is_not_a_header(self):
        info = HeaderLocator({}).locate(["ชื่อ นายสมชาย"])
        assert not info.has_header
        assert info.header_row_index is None
        assert info.column_index_by_field == {}

    def test_only_first_rows_scanned(self):
        rows = ["1 นายสมชาย ใจดี 12/3"] * 5 + ["ลำดับ ชื่อ บ้านเลขที่"]
        assert not HeaderLocator({}).locate(rows).has_header
        assert HeaderLocator({"scan_rows": 6}).locate(rows).header_row_index == 5

    def test_later_header_cell_wins(self):
        info = HeaderLocator({}).locate(["ลำดับ บ้านเลขที่ ชื่อ เลขหมายประจำบ้าน"])
        assert info.column_index_by_field["house_number"] == 3


# ═══════════════════════════════════════════════════════════════════════════════
# COLUMN HOUSE NUMBER
# ═══════════════════════════════════════════════════════════════════════════════

class TestColumnHouseNumber:
    """The token at the header's house-number index, validated."""

    def test_exact_column(self):
        assert extract_house_number_by_column("1 นายสมชาย 12/3", 2) == "12/3"
        assert extract_house_number_by_column("1 นายสมชาย 12-5", 2) == "12-5"

    def test_column_without_digits(self):
        assert extract_house_number_by_column("1 นายสมชาย 12/3", 1) is None

    def test_column_out_of_range(self):
        assert extract_house_number_by_column("1 นายสมชาย 12/3", 9) is None
        assert extract_house_number_by_column("1 นายสมชาย 12/3", None) is None
        assert extract_house_number_by_column("1 นายสมชาย 12/3", -1) is None

    def test_malformed_value_rejected(self):
        assert extract_house_number_by_column("1 นาย 12/3a", 2) is None
        assert extract_house_number_by_column("1 นาย 12//3", 2) is None


# ═══════════════════════════════════════════════════════════════════════════════
# FIELD EXTRACTOR
# ═══════════════════════════════════════════════════════════════════════════════

class TestFieldExtractor:
    """Name and house number from one accepted row."""

    def test_trailing_house_number(self, extractor, no_header):
        record = extractor.extract("1 นายสมชาย ใจดี 12/3", no_header)
        assert record == Record(name="นายสมชาย ใจดี", address="12/3")

    def test_ordinal_range_stripped(self, extractor, no_header):
        record = extractor.extract("3-4 นางสมศรี มีสุข 45", no_header)
        assert record.name == "นางสมศรี มีสุข"
        assert record.address == "45"

    def test_no_house_number(self, extractor, no_header):
        record = extractor.extract("นายสมชาย ใจดี", no_header)
        assert record == Record(name="นายสมชาย ใจดี", address=None)

    def test_column_house_number_removed_from_name(self, extractor):
        header = HeaderInfo(has_header=True, header_row_index=0, column_index_by_field={"house_number": 1})
        record = extractor.extract("สมชาย 45 ใจดี", header)
        assert record == Record(name="สมชาย ใจดี", address="45")

    def test_column_miss_falls_back_to_trailing_number(self, extractor):
        header = HeaderInfo(has_header=True, header_row_index=0, column_index_by_field={"house_number": 2})
        record = extractor.extract("1 นายสมชาย ใจดี 12/3", header)
        assert record.address == "12/3"
        assert record.name == "นายสมชาย ใจดี"

    def test_gender_marker_stripped(self, extractor, no_header):
        record = extractor.extract("นายสมชาย ใจดี ช 12", no_header)
        assert record.name == "นายสมชาย ใจดี"
        assert record.address == "12"

    def test_short_thai_token_kept(self, extractor, no_header):
        """A trailing two-letter Thai word is part of the name, not OCR bleed."""
        record = extractor.extract("นายสมชาย ใจ ดี", no_header)
        assert record.name == "นายสมชาย ใจ ดี"

    def test_short_latin_bleed_dropped(self, extractor, no_header):
        record = extractor.extract("นายสมชาย ใจดี ab", no_header)
        assert record.name == "นายสมชาย ใจดี"

    def test_never_raises(self, extractor, no_header):
        record = extractor.extract(None, no_header)
        assert record == Record(name="", address=None)

    def test_record_fields_fixed(self, extractor, no_header):
        record = extractor.extract("1 นายสมชาย ใจดี 12/3", no_header)
        assert tuple(record.to_dict()) == RECORD_FIELDS
        assert record.to_dict()["age"] is None


# ═══════════════════════════════════════════════════════════════════════════════
# NAME NORMALIZER
# ═══════════════════════════════════════════════════════════════════════════════

class TestNameNormalizer:
    """Non-person text never becomes a Record."""

    def test_locality_keyword_rejected(self, extractor, no_header):
        assert extractor.extract_person("ถนนสุขุมวิท 99", no_header) is None
        assert extractor.extract_person("หมู่ 5 ตำบลบางรัก", no_header) is None

    def test_short_name_rejected(self, extractor, no_header):
        assert extractor.extract_person("กข", no_header) is None

    def test_whitespace_and_marker(self):
        assert NameNormalizer({}).normalize("นายสมชาย   ใจดี  ญ") == "นายสมชาย ใจดี"

    def test_lone_marker_not_stripped(self):
        assert NameNormalizer({}).normalize("ร") is None

    def test_non_string(self):
        assert NameNormalizer({}).normalize(None) is None

    def test_accepted_person(self, extractor, no_header):
        assert extractor.extract_person("1 นายสมชาย ใจดี 12/3", no_header) == Record(name="นายสมชาย ใจดี", address="12/3")
