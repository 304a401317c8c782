"""Row building, noise filtering and row classification."""
from __future__ import annotations

import random

import pytest

from conftest import line_tokens, tok
from roster_engine.classifier import RowClassifier
from roster_engine.noise_filter import RowNoiseFilter
from roster_engine.row_builder import RowBuilder, average_height, make_text_row


# ═══════════════════════════════════════════════════════════════════════════════
# ROW BUILDER
# ═══════════════════════════════════════════════════════════════════════════════

class TestRowBuilder:
    """Clustering tokens into printed lines."""

    def test_empty_page_yields_no_rows(self):
        assert RowBuilder({}).build([]) == []

    def test_tolerance_boundary_same_row(self):
        """h=10 gives tolerance 8: a vertical offset of exactly 8 stays on the row."""
        rows = RowBuilder({}).build([tok("นาย", 0, 0), tok("สมชาย", 100, 8)])
        assert len(rows) == 1
        assert rows[0].text == "นาย สมชาย"

    def test_tolerance_boundary_new_row(self):
        rows = RowBuilder({}).build([tok("นาย", 0, 0), tok("สมชาย", 100, 9)])
        assert [r.text for r in rows] == ["นาย", "สมชาย"]

    def test_same_line_tokens_sorted_left_to_right(self):
        """Jitter within tolerance never reorders a line; x decides."""
        tokens = [tok("12/3", 300, 0), tok("ใจดี", 200, 3), tok("นายสมชาย", 100, 6), tok("1", 0, 2)]
        rows = RowBuilder({}).build(tokens)
        assert len(rows) == 1
        assert rows[0].text == "1 นายสมชาย ใจดี 12/3"
        assert [t.x for t in rows[0].tokens] == [0, 100, 200, 300]

    def test_rows_ordered_top_to_bottom(self):
        tokens = line_tokens(["2", "นางสมศรี"], y=50) + line_tokens(["1", "นายสมชาย"], y=10)
        rows = RowBuilder({}).build(tokens)
        assert [r.text for r in rows] == ["1 นายสมชาย", "2 นางสมศรี"]
        assert rows[0].y_anchor < rows[1].y_anchor

    def test_running_mean_anchor_follows_the_row(self):
        """The running mean drifts toward absorbed tokens; a fixed first anchor does not."""
        tokens = [tok("a", 0, 0)] + [tok("b", 10 * (i + 1), 8) for i in range(4)] + [tok("c", 60, 14)]
        assert len(RowBuilder({"anchor": "running_mean"}).build(tokens)) == 1
        assert len(RowBuilder({"anchor": "first"}).build(tokens)) == 2

    @pytest.mark.parametrize("anchor", ["running_mean", "first"])
    @pytest.mark.parametrize("seed", range(25))
    def test_dense_jittered_page_rows_ascend(self, anchor, seed):
        """Tightly packed lines with vertical jitter still come out top to bottom."""
        rng = random.Random(seed)
        tokens = [
            tok(f"ก{line}{col}", x=col * 100, y=line * 11 + rng.uniform(-2, 2))
            for line in range(20)
            for col in range(4)
        ]
        rng.shuffle(tokens)
        rows = RowBuilder({"anchor": anchor}).build(tokens)
        anchors = [r.y_anchor for r in rows]
        assert anchors == sorted(anchors)
        assert len(set(anchors)) == len(anchors)
        assert sum(len(r.tokens) for r in rows) == len(tokens)

    def test_row_counts(self):
        rows = RowBuilder({}).build(line_tokens(["1", "นายสมชาย", "ใจดี", "12/3"], y=0))
        assert rows[0].thai_word_count == 2
        assert rows[0].numeric_token_count == 3

    def test_unknown_anchor_mode_rejected(self):
        with pytest.raises(ValueError):
            RowBuilder({"anchor": "median"})

    def test_average_height_default(self):
        assert average_height([tok("x", 0, 0, h=0)], default=12) == 12.0
        assert average_height([tok("x", 0, 0, h=10), tok("y", 0, 0, h=20)]) == 15.0


# ═══════════════════════════════════════════════════════════════════════════════
# NOISE FILTER
# ═══════════════════════════════════════════════════════════════════════════════

class TestRowNoiseFilter:
    """Rows that can never be person rows are dropped with a reason."""

    def test_hard_header_keyword_case_insensitive(self):
        result = RowNoiseFilter({}).apply([make_text_row(0, "process 2024 ระบบ")])
        assert result.kept == []
        row, reason = result.dropped[0]
        assert "hard header keyword" in reason
        assert row.text == "process 2024 ระบบ"

    def test_thai_hard_keyword(self):
        result = RowNoiseFilter({}).apply([make_text_row(0, "บัญชีรายชื่อผู้มีสิทธิเลือกตั้ง")])
        assert result.kept == []

    def test_numeric_dominated_row_dropped(self):
        result = RowNoiseFilter({}).apply([make_text_row(0, "123 456 นาย")])
        assert result.kept == []
        assert "numeric tokens" in result.dropped[0][1]

    def test_balanced_row_kept(self):
        """One Thai word and one number is not numeric-dominated."""
        result = RowNoiseFilter({}).apply([make_text_row(0, "ถนนสุขุมวิท 99")])
        assert [r.text for r in result.kept] == ["ถนนสุขุมวิท 99"]

    def test_row_without_thai_or_numbers_kept(self):
        """Zero Thai words alone is not a reason to drop a row."""
        rows = [make_text_row(0, "abc"), make_text_row(1, "---")]
        result = RowNoiseFilter({}).apply(rows)
        assert [r.text for r in result.kept] == ["abc", "---"]
        assert result.dropped == []

    def test_drop_patterns_from_config(self):
        noise = RowNoiseFilter({"drop_patterns": [r"หน้า\s*\d+"]})
        result = noise.apply([make_text_row(0, "หน้า 3"), make_text_row(1, "นายสมชาย ใจดี")])
        assert [r.text for r in result.kept] == ["นายสมชาย ใจดี"]
        assert result.dropped[0][1] == "Matches drop pattern"

    def test_idempotent(self):
        rows = [
            make_text_row(0, "PROCESS"),
            make_text_row(1, "1 นายสมชาย ใจดี 12/3"),
            make_text_row(2, "11 22 33"),
            make_text_row(3, "ถนนสุขุมวิท 99"),
        ]
        noise = RowNoiseFilter({})
        once = noise.apply(rows).kept
        twice = noise.apply(once).kept
        assert once == twice
        assert len(once) == 2


# ═══════════════════════════════════════════════════════════════════════════════
# ROW CLASSIFIER
# ═══════════════════════════════════════════════════════════════════════════════

class TestRowClassifier:
    """Additive person-row score."""

    def test_typical_person_row_scores_three(self):
        row = make_text_row(0, "1 นายสมชาย ใจดี 12/3")
        result = RowClassifier({}).classify([row])
        assert [r.score for r in result.person_rows] == [3]
        assert result.uncertain_rows == []

    def test_address_continuation_is_uncertain(self):
        result = RowClassifier({}).classify([make_text_row(0, "ถนนสุขุมวิท 99")])
        assert result.person_rows == []
        assert result.uncertain_rows[0].score == 2

    def test_adding_a_feature_never_lowers_the_score(self):
        clf = RowClassifier({})
        base = make_text_row(0, "สมชาย ใจดี")
        with_number = make_text_row(0, "สมชาย ใจดี 12")
        with_more_words = make_text_row(0, "สมชาย ใจดี มาก 12")
        assert clf.score(base) <= clf.score(with_number) <= clf.score(with_more_words)

    def test_threshold_from_config(self):
        row = make_text_row(0, "1 นายสมชาย ใจดี 12/3")
        result = RowClassifier({"threshold": 4}).classify([row])
        assert result.person_rows == []
        assert len(result.uncertain_rows) == 1

    def test_weights_from_config(self):
        row = make_text_row(0, "1 นายสมชาย ใจดี 12/3")
        assert RowClassifier({"weights": {"honorific": 0}}).score(row) == 2

    def test_order_preserved(self):
        rows = [make_text_row(i, f"{i} นายสมชาย ใจดี 12/{i}") for i in range(1, 4)]
        result = RowClassifier({}).classify(rows)
        assert [r.y_anchor for r in result.person_rows] == [1.0, 2.0, 3.0]
