"""Tests for report normalization -- the stored report always parses as JSON."""

from __future__ import annotations

import json

import pytest

from backtest_pipeline.narrative.envelope import (
    EMPTY_REPORT,
    extract_fenced_json,
    normalize_report,
)


class TestExtractFencedJson:
    def test_block_body(self) -> None:
        text = 'Here you go:\n```json\n{"a": 1}\n```\nThanks'
        assert extract_fenced_json(text) == '{"a": 1}'

    def test_unterminated_block_runs_to_end(self) -> None:
        assert extract_fenced_json('```json\n{"a": 1}') == '{"a": 1}'

    def test_no_block(self) -> None:
        assert extract_fenced_json("plain text") is None
        assert extract_fenced_json(None) is None

    def test_plain_fence_ignored(self) -> None:
        assert extract_fenced_json('```\n{"a": 1}\n```') is None


class TestNormalizeReport:
    def test_valid_json_unchanged(self) -> None:
        text = '{"summary": "ok", "risk": "low"}'
        assert normalize_report(text) == text

    def test_valid_json_trimmed(self) -> None:
        assert normalize_report('  {"a": 1}\n') == '{"a": 1}'

    def test_plain_text_wrapped(self) -> None:
        result = normalize_report("Returns were strong.\nRisk was contained.")
        assert json.loads(result) == {"content": "Returns were strong.\nRisk was contained."}

    def test_non_ascii_kept(self) -> None:
        result = normalize_report("수익률 8%")
        assert "수익률" in result
        assert json.loads(result)["content"] == "수익률 8%"

    def test_fenced_block_extracted(self) -> None:
        text = 'Report below.\n```json\n{"summary": "solid run"}\n```'
        assert json.loads(normalize_report(text)) == {"summary": "solid run"}

    def test_wrapper_with_raw_newlines(self) -> None:
        # Raw newlines inside the string make this invalid strict JSON.
        text = '{"content": "```json\n{\\"summary\\": \\"inner\\"}\n```"}'
        with pytest.raises(ValueError):
            json.loads(text)
        assert json.loads(normalize_report(text)) == {"summary": "inner"}

    def test_broken_fenced_block_wrapped(self) -> None:
        text = "```json\n{not json}\n```"
        assert json.loads(normalize_report(text)) == {"content": text}

    @pytest.mark.parametrize("text", [None, "", "   \n"])
    def test_blank(self, text) -> None:
        assert normalize_report(text) == EMPTY_REPORT

    @pytest.mark.parametrize(
        "text",
        [
            "plain",
            '{"a": 1}',
            "```json\n[1, 2]\n```",
            '{"content": "no fence here\n"}',
            "{{{",
        ],
    )
    def test_always_parses(self, text: str) -> None:
        json.loads(normalize_report(text))
