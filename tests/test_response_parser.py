"""Tests for parsing the grading model's reply."""

import json
import logging

import pytest

from rubriccheck.grading.models import Status
from rubriccheck.grading.response_parser import (
    derive_ai_analysis,
    load_json,
    normalize_status,
    parse_analysis,
    parse_rewrites,
)
from rubriccheck.libs.errors import InvalidModelOutput


def entry(score, evidence="", why="", exact_fix="", **extra):
    return {"score": score, "why": why, "evidence": evidence, "exact_fix": exact_fix, **extra}


@pytest.fixture
def mapping_reply():
    """Shape A: criterion name -> verdict, next to ai_score."""
    return json.dumps({
        "ai_score": 35,
        "criteria": {
            "Thesis Statement": entry("Met", evidence="the American Dream is unattainable"),
            "Evidence_and_Analysis": entry("Weak", why="Only one quote per paragraph",
                                           exact_fix="Add a second quote to paragraph two"),
            "Counter-Argument": entry("Met"),
            "Mechanics": entry("Missing", why="No citations"),
        },
    })


@pytest.fixture
def list_reply():
    """Shape B: summary plus a list of criterion records."""
    return json.dumps({
        "summary": {"score": 12, "ai_score": 80, "met": 0, "weak": 0, "missing": 0},
        "criteria": [
            {"criterion": "Thesis", "status": "met", "why": "", "evidence": "x" * 10},
            {"criterion": "Flow", "status": "weak", "why": "Abrupt transitions", "exact_fix": ""},
        ],
    })


class TestLoadJson:

    def test_plain(self):
        assert load_json('{"a": 1}') == {"a": 1}

    def test_code_fences(self):
        assert load_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_surrounding_prose(self):
        assert load_json('Here you go:\n{"a": {"b": 2}}\nHope that helps!') == {"a": {"b": 2}}

    def test_not_json(self):
        with pytest.raises(InvalidModelOutput) as exc_info:
            load_json("I could not grade this.")
        assert exc_info.value.raw_text == "I could not grade this."


class TestNormalizeStatus:

    @pytest.mark.parametrize("raw,expected", [
        ("Met", Status.MET),
        ("WEAK", Status.WEAK),
        (" missing ", Status.MISSING),
        (Status.WEAK, Status.WEAK),
    ])
    def test_case_folded(self, raw, expected):
        assert normalize_status(raw) == expected

    @pytest.mark.parametrize("raw", ["Excellent", "", None, 3])
    def test_unknown_defaults_to_missing(self, raw, caplog):
        with caplog.at_level(logging.WARNING):
            assert normalize_status(raw) == Status.MISSING
        assert "Unrecognized criterion status" in caplog.text


class TestParseMappingShape:

    def test_criteria_in_order(self, mapping_reply):
        result = parse_analysis(mapping_reply)

        assert [c.criterion for c in result.criteria] == [
            "Thesis Statement", "Evidence and Analysis", "Counter-Argument", "Mechanics"
        ]
        assert [c.status for c in result.criteria] == [
            Status.MET, Status.WEAK, Status.MET, Status.MISSING
        ]
        assert all(c.user_status is None for c in result.criteria)

    def test_summary_computed(self, mapping_reply):
        summary = parse_analysis(mapping_reply).summary

        assert (summary.met, summary.weak, summary.missing) == (2, 1, 1)
        assert summary.score == 63
        assert summary.ai_score == 35
        assert summary.ai_analysis.risk_level == "low"

    def test_top_fixes_skip_met_and_fall_back_to_why(self, mapping_reply):
        top_fixes = parse_analysis(mapping_reply).summary.top_fixes

        assert [(f.fix, f.reason) for f in top_fixes] == [
            ("Evidence and Analysis", "Add a second quote to paragraph two"),
            ("Mechanics", "No citations"),
        ]

    def test_top_level_mapping(self):
        reply = json.dumps({
            "Thesis": entry("met"),
            "Flow": entry("weak"),
            "ai_score": 55,
        })
        result = parse_analysis(reply)

        assert [c.criterion for c in result.criteria] == ["Thesis", "Flow"]
        assert result.summary.score == 75
        assert result.summary.ai_analysis.risk_level == "moderate"

    def test_status_key_accepted(self):
        reply = json.dumps({"criteria": {"Thesis": {"status": "Weak", "why": "thin"}}})
        assert parse_analysis(reply).criteria[0].status == Status.WEAK

    def test_unknown_status_counts_as_missing(self):
        reply = json.dumps({"criteria": {"Thesis": entry("Excellent"), "Flow": entry("Met")}})
        result = parse_analysis(reply)

        assert result.criteria[0].status == Status.MISSING
        assert result.summary.score == 50

    def test_underscored_key_becomes_name(self):
        reply = json.dumps({"criteria": {"Thesis_Statement": entry("met")}})
        assert parse_analysis(reply).criteria[0].criterion == "Thesis Statement"

    def test_keys_colliding_after_normalization_rejected(self):
        reply = json.dumps({"criteria": {
            "Thesis_Statement": entry("met"),
            "Thesis Statement": entry("weak"),
        }})
        with pytest.raises(InvalidModelOutput):
            parse_analysis(reply)

    def test_fenced_reply(self, mapping_reply):
        assert len(parse_analysis(f"```json\n{mapping_reply}\n```").criteria) == 4

    def test_visual_coordinates(self):
        reply = json.dumps({"criteria": {
            "Slide design": entry("Weak", visual_coordinates={"x": 40, "y": 120, "file_index": None}),
            "Title": entry("Met", visual_coordinates={"x": 10.5, "y": 5, "file_index": 2}),
            "Broken": entry("Met", visual_coordinates={"x": "left"}),
        }})
        criteria = parse_analysis(reply).criteria

        assert criteria[0].visual_coordinates.file_index == 0
        assert criteria[0].visual_coordinates.y == 100
        assert criteria[1].visual_coordinates.x == 10.5
        assert criteria[1].visual_coordinates.file_index == 2
        assert criteria[2].visual_coordinates is None


class TestParseListShape:

    def test_records(self, list_reply):
        result = parse_analysis(list_reply)

        assert [c.criterion for c in result.criteria] == ["Thesis", "Flow"]
        assert [c.status for c in result.criteria] == [Status.MET, Status.WEAK]

    def test_model_score_ignored(self, list_reply):
        summary = parse_analysis(list_reply).summary

        assert summary.score == 75
        assert (summary.met, summary.weak, summary.missing) == (1, 1, 0)
        assert summary.ai_score == 80
        assert summary.ai_analysis.risk_level == "high"

    def test_reason_falls_back_to_why(self, list_reply):
        top_fixes = parse_analysis(list_reply).summary.top_fixes
        assert [(f.fix, f.reason) for f in top_fixes] == [("Flow", "Abrupt transitions")]

    def test_model_ai_analysis_kept(self):
        reply = json.dumps({
            "summary": {
                "ai_score": 90,
                "ai_analysis": {
                    "risk_level": "moderate",
                    "verdict_summary": "Mixed signals.",
                    "indicators": [{"label": "Burstiness", "value": 30, "description": "even"}],
                },
            },
            "criteria": [{"criterion": "Thesis", "status": "met"}],
        })
        analysis = parse_analysis(reply).summary.ai_analysis

        assert analysis.risk_level == "moderate"
        assert analysis.indicators[0].label == "Burstiness"

    def test_duplicate_names_rejected(self):
        reply = json.dumps({"criteria": [
            {"criterion": "Thesis", "status": "met"},
            {"criterion": "Thesis", "status": "weak"},
        ]})
        with pytest.raises(InvalidModelOutput):
            parse_analysis(reply)


class TestRejectedReplies:

    def test_no_criteria(self):
        with pytest.raises(InvalidModelOutput):
            parse_analysis(json.dumps({"ai_score": 10}))

    def test_empty_list(self):
        with pytest.raises(InvalidModelOutput):
            parse_analysis(json.dumps({"criteria": []}))

    def test_unknown_shape(self):
        with pytest.raises(InvalidModelOutput):
            parse_analysis(json.dumps([{"criterion": "Thesis"}]))

    def test_malformed_entries(self):
        with pytest.raises(InvalidModelOutput):
            parse_analysis(json.dumps({"ai_score": 10, "note": "looks fine"}))


class TestAIAnalysis:

    @pytest.mark.parametrize("score,level", [
        (0, "low"), (40, "low"), (41, "moderate"), (70, "moderate"), (71, "high"), (100, "high"),
    ])
    def test_thresholds(self, score, level):
        assert derive_ai_analysis(score).risk_level == level

    def test_ai_score_clamped(self):
        reply = json.dumps({"ai_score": 150, "criteria": {"Thesis": entry("met")}})
        assert parse_analysis(reply).summary.ai_score == 100

    def test_ai_score_defaults_to_zero(self):
        reply = json.dumps({"ai_score": "n/a", "criteria": {"Thesis": entry("met")}})
        assert parse_analysis(reply).summary.ai_score == 0


class TestParseRewrites:

    def test_array(self):
        assert parse_rewrites('["one", "two", "three"]') == ["one", "two", "three"]

    def test_fenced(self):
        assert parse_rewrites('```json\n["one"]\n```') == ["one"]

    @pytest.mark.parametrize("reply", ['{"a": "b"}', '[1, 2]', 'no idea'])
    def test_rejected(self, reply):
        with pytest.raises(InvalidModelOutput):
            parse_rewrites(reply)
