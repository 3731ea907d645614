from __future__ import annotations

import pytest

from jobmatch.pipeline.normalize import (
    best_partial_match,
    normalize_company_name,
    significant_words,
    word_overlap_ratio,
)

SAMPLES = [
    "Acme, Inc.",
    "ACME INC",
    "  Jane Street Capital  ",
    "Ernst & Young LLP",
    "über-Tech GmbH",
    "!!!",
    "",
    "a---b___c",
]


@pytest.mark.parametrize("name", SAMPLES)
def test_normalize_is_idempotent(name: str) -> None:
    once = normalize_company_name(name)
    assert normalize_company_name(once) == once


def test_superficially_different_names_share_a_key() -> None:
    assert normalize_company_name("Acme, Inc.") == normalize_company_name("ACME INC") == "acme inc"


def test_non_alphanumerics_collapse_to_single_spaces() -> None:
    assert normalize_company_name("Ernst & Young  LLP") == "ernst young llp"
    assert normalize_company_name("a---b___c") == "a b c"


@pytest.mark.parametrize("garbage", ["", "!!!", "   ", None])
def test_degenerate_input_gives_empty_key(garbage) -> None:
    assert normalize_company_name(garbage) == ""


def test_generic_corporate_words_are_not_significant() -> None:
    assert significant_words("acme technologies inc") == {"acme"}


def test_word_overlap_ratio_counts_query_words() -> None:
    assert word_overlap_ratio("acme robotics", "acme robotics labs") == 1.0
    assert word_overlap_ratio("acme robotics", "acme") == 0.5
    assert word_overlap_ratio("global technologies inc", "global technologies") == 0.0


def test_best_partial_match_requires_half_the_significant_words() -> None:
    keys = ["initech", "acme robotics", "acme"]
    assert best_partial_match("acme robotics north america", keys) == "acme robotics"
    assert best_partial_match("umbrella corporation", keys) is None
    assert best_partial_match("", keys) is None
