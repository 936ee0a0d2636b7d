"""Tests for scribe.core.stitching."""

from __future__ import annotations

from scribe.core.stitching import DedupSettings, find_split_point, merge_segments, stitch
from scribe.data_models import ChunkResult, StructuredSegment


def _chunk(
    index: int,
    text: str,
    start: float = 0.0,
    end: float = 620.0,
    before: bool = False,
    after: bool = False,
    segments: tuple[StructuredSegment, ...] | None = None,
) -> ChunkResult:
    return ChunkResult(
        index=index,
        text=text,
        start_time=start,
        end_time=end,
        has_overlap_before=before,
        has_overlap_after=after,
        segments=segments,
    )


def _words(prefix: str, count: int) -> str:
    return " ".join(f"{prefix}{i}" for i in range(count))


class TestFindSplitPoint:
    def test_overlap_found(self) -> None:
        shared = _words("shared", 10)
        left = f"{_words('left', 40)} {shared}"
        right = f"{shared} next0 next1"
        offset, matched = find_split_point(left, right)
        assert matched is True
        assert right[offset:].strip() == "next0 next1"

    def test_tolerates_whitespace_differences(self) -> None:
        left = "intro one two three four five six"
        right = "one two\nthree   four five six\n\ntail words"
        offset, matched = find_split_point(left, right)
        assert matched is True
        assert right[offset:].strip() == "tail words"

    def test_short_match_ignored(self) -> None:
        left = "alpha beta gamma"
        right = "alpha beta gamma delta epsilon zeta eta"
        offset, matched = find_split_point(left, right)
        assert matched is False
        assert right[offset:].strip() == "zeta eta"

    def test_fallback_skips_configured_words(self) -> None:
        settings = DedupSettings(fallback_skip_words=2)
        offset, matched = find_split_point("a b c d e", "v w x y z", settings)
        assert matched is False
        assert "v w x y z"[offset:].strip() == "x y z"

    def test_fallback_keeps_last_word_of_short_right_text(self) -> None:
        right = "only three words"
        offset, matched = find_split_point("unrelated left text here", right)
        assert matched is False
        assert right[offset:].strip() == "words"

    def test_fallback_keeps_single_word_right_text(self) -> None:
        assert find_split_point("unrelated left text here", "hello") == (0, False)

    def test_empty_left_skips_nothing(self) -> None:
        right = "first second third fourth fifth sixth"
        assert find_split_point("", right) == (0, False)
        assert find_split_point("   \n", right) == (0, False)

    def test_empty_right(self) -> None:
        assert find_split_point("left words", "") == (0, False)

    def test_longest_match_wins(self) -> None:
        left = "p q r s t u v w x y"
        # "p q r s" appears first but "t u v w x y" is longer.
        right = "p q r s z t u v w x y after"
        offset, matched = find_split_point(left, right)
        assert matched is True
        assert right[offset:].strip() == "after"


class TestStitch:
    def test_empty(self) -> None:
        assert stitch([]) == ""

    def test_single_chunk(self) -> None:
        assert stitch([_chunk(0, "hello world")]) == "hello world"

    def test_no_declared_seam_concatenates(self) -> None:
        chunks = [_chunk(0, "a b c d e f"), _chunk(1, "a b c d e f g")]
        assert stitch(chunks) == "a b c d e f\n\na b c d e f g"

    def test_overlap_appears_once(self) -> None:
        shared = _words("w", 10)
        chunks = [
            _chunk(0, f"{_words('x', 30)} {shared}", after=True),
            _chunk(1, f"{shared} {_words('y', 5)}", start=580, end=1220, before=True),
        ]
        result = stitch(chunks)
        assert result.count("w0 w1 w2") == 1
        assert result.endswith(f"{shared}\n\n{_words('y', 5)}")

    def test_fallback_drops_at_most_five_words(self) -> None:
        chunks = [
            _chunk(0, "one two three four", after=True),
            _chunk(1, "a b c d e f g h", before=True),
        ]
        assert stitch(chunks) == "one two three four\n\nf g h"

    def test_short_right_chunk_is_not_lost(self) -> None:
        chunks = [
            _chunk(0, "unrelated left text here", after=True),
            _chunk(1, "only three words", before=True),
        ]
        assert stitch(chunks) == "unrelated left text here\n\nwords"

    def test_silent_left_chunk_keeps_right_text(self) -> None:
        chunks = [
            _chunk(0, "", after=True),
            _chunk(1, "first second third fourth fifth sixth", before=True),
        ]
        assert stitch(chunks) == "first second third fourth fifth sixth"

    def test_fully_duplicated_right_chunk_adds_no_break(self) -> None:
        shared = _words("d", 8)
        chunks = [
            _chunk(0, f"lead {shared}", after=True),
            _chunk(1, shared, before=True),
        ]
        assert stitch(chunks) == f"lead {shared}"

    def test_three_chunks(self) -> None:
        s1 = _words("s", 6)
        s2 = _words("t", 6)
        chunks = [
            _chunk(0, f"begin {s1}", after=True),
            _chunk(1, f"{s1} middle {s2}", before=True, after=True),
            _chunk(2, f"{s2} end", before=True),
        ]
        assert stitch(chunks) == f"begin {s1}\n\nmiddle {s2}\n\nend"


class TestMergeSegments:
    def test_no_segments(self) -> None:
        assert merge_segments([_chunk(0, "x"), _chunk(1, "y")]) is None

    def test_seam_midpoint_cut(self) -> None:
        left = _chunk(
            0, "x", 0.0, 620.0, after=True,
            segments=(
                StructuredSegment(None, 500.0, 590.0, "a"),
                StructuredSegment(None, 605.0, 615.0, "dup"),
            ),
        )
        right = _chunk(
            1, "y", 580.0, 1220.0, before=True,
            segments=(
                StructuredSegment(None, 585.0, 599.0, "dup early"),
                StructuredSegment(None, 605.0, 615.0, "dup"),
                StructuredSegment(None, 700.0, 710.0, "b"),
            ),
        )
        merged = merge_segments([left, right])
        assert merged is not None
        assert [s.text for s in merged] == ["a", "dup", "b"]
        assert merged[1].start_time == 605.0

    def test_undeclared_seam_keeps_all(self) -> None:
        left = _chunk(0, "x", segments=(StructuredSegment(None, 610.0, 612.0, "a"),))
        right = _chunk(1, "y", 600.0, 900.0, segments=(StructuredSegment(None, 601.0, 602.0, "b"),))
        merged = merge_segments([left, right])
        assert merged is not None
        assert [s.text for s in merged] == ["a", "b"]
