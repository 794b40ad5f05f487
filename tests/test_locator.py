"""Tests for fuzzy evidence location and highlight splitting."""

import pytest

from rubriccheck.evidence.locator import (
    build_pattern,
    clean_evidence,
    is_locatable,
    locate,
    split_highlights,
)
from rubriccheck.grading.models import Status

ESSAY = ('When Nick Carraway warns him, Gatsby incredulously replies, '
         '"Can\'t repeat the past? Why of course you can!" (110). '
         'This moment highlights Gatsby\'s fatal flaw.')


class TestCleanEvidence:

    @pytest.mark.parametrize("raw,expected", [
        ('Quote: "Can\'t repeat the past?"', "Can't repeat the past?"),
        ("Topic Sentence 2: This moment highlights", "This moment highlights"),
        ("“curly quoted text”", "curly quoted text"),
        ("   padded   ", "padded"),
        ('Evidence: Quote: "nested labels"', "nested labels"),
        ("", ""),
        (None, ""),
    ])
    def test_strips_labels_quotes_and_whitespace(self, raw, expected):
        assert clean_evidence(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("quote: lower-case label", "lower-case label"),
        ("CONTEXT 3: upper-case label", "upper-case label"),
        ("Topic Sentence: no number", "no number"),
        ("Evidence 12 : spaced number", "spaced number"),
    ])
    def test_label_vocabulary_case_and_number(self, raw, expected):
        assert clean_evidence(raw) == expected

    @pytest.mark.parametrize("raw", [
        "The narrator says: the end",
        "Daisy: Gatsby: I love you so much",
        "Chapter 3: the party begins",
        "Quotes: plural is not a label",
    ])
    def test_other_colon_prefixes_kept(self, raw):
        assert clean_evidence(raw) == raw

    @pytest.mark.parametrize("raw", [
        'Quote: "Can\'t repeat the past?"',
        "'  Example: “x”  '",
        "plain text",
        "Evidence: Quote: Context 2: stacked",
        "Daisy: Gatsby: I love you so much",
    ])
    def test_idempotent(self, raw):
        once = clean_evidence(raw)
        assert clean_evidence(once) == once


class TestLocate:

    def test_verbatim(self):
        match = locate("Can't repeat the past? Why of course you can!", ESSAY)

        assert match is not None
        assert ESSAY[match.start:match.end] == match.matched_text
        assert match.matched_text == "Can't repeat the past? Why of course you can"

    def test_label_and_quotes(self):
        assert is_locatable('Quote: "Can\'t repeat the past? Why of course you can!"', ESSAY)

    def test_case_whitespace_and_punctuation(self):
        assert is_locatable("CAN’T   repeat the past --\nwhy of course you can", ESSAY)

    def test_unicode_tokens(self):
        source = "Il a commandé un café au lait, s'il vous plaît."
        match = locate("café au lait", source)
        assert match.matched_text == "café au lait"

    def test_not_present(self):
        assert locate("Daisy exists only in 1917", ESSAY) is None

    @pytest.mark.parametrize("evidence", [None, "", "past", "  ab  ", 'Quote: "abc"', "!!!!!!!"])
    def test_too_short_or_empty(self, evidence):
        assert build_pattern(evidence) is None
        assert not is_locatable(evidence, ESSAY)

    def test_exact_quote_with_speaker_anchors_on_itself(self):
        source = "I like the end of chapters. The narrator says: the end."

        match = locate("The narrator says: the end", source)

        assert match.start == 28
        assert match.matched_text == "The narrator says: the end"

    def test_dialogue_quote_not_shortened(self):
        source = "I love you so much, he wrote. Daisy: Gatsby: I love you so much"

        match = locate("Daisy: Gatsby: I love you so much", source)

        assert match.start == source.index("Daisy")
        assert match.end == len(source)

    def test_custom_min_length(self):
        assert is_locatable("past", ESSAY, min_length=3)

    def test_empty_source(self):
        assert locate("repeat the past", "") is None
        assert locate("repeat the past", None) is None


class TestSplitHighlights:

    def test_lossless_and_tagged(self):
        segments = split_highlights(ESSAY, "This moment highlights", Status.WEAK)

        assert "".join(s.text for s in segments) == ESSAY
        highlighted = [s for s in segments if s.highlighted]
        assert [s.text for s in highlighted] == ["This moment highlights"]
        assert highlighted[0].status == Status.WEAK

    def test_every_occurrence_highlighted(self):
        source = "Gatsby waits. Nick watches Gatsby waits again."
        segments = split_highlights(source, "gatsby waits", Status.MET)

        assert [s.text for s in segments] == [
            "Gatsby waits", ". Nick watches ", "Gatsby waits", " again."
        ]
        assert [s.highlighted for s in segments] == [True, False, True, False]

    def test_match_at_end(self):
        segments = split_highlights("start then finish line", "finish line")
        assert [s.text for s in segments] == ["start then ", "finish line"]

    def test_unlocatable_is_single_plain_segment(self):
        segments = split_highlights(ESSAY, "not in the essay at all")
        assert len(segments) == 1
        assert segments[0].text == ESSAY
        assert not segments[0].highlighted

    @pytest.mark.parametrize("source,evidence,highlighted", [
        ("the end the end", "the end", ["the end", "the end"]),
        ("the endthe end!", "the end", ["the end", "the end"]),
        ("na na na na", "na na na", ["na na na"]),
        (": the end of it", ": the end", ["the end"]),
        (":: leading colons, then the end", "then the end", ["then the end"]),
        ("I like the end. The narrator says: the end.", "The narrator says: the end",
         ["The narrator says: the end"]),
    ])
    def test_lossless_for_adjacent_overlapping_and_colon_text(self, source, evidence, highlighted):
        segments = split_highlights(source, evidence, Status.MET)

        assert "".join(s.text for s in segments) == source
        assert [s.text for s in segments if s.highlighted] == highlighted

    def test_empty_source(self):
        segments = split_highlights("", "anything here")
        assert [s.text for s in segments] == [""]
