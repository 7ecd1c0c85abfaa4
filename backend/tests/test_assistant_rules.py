"""Rule tables: each budget/zip/requirement rule exercised on its own."""

import pytest

from app.services.assistant import rules


def _budget_rule(name):
    return next(rule for rule in rules.BUDGET_RULES if rule.name == name)


def test_budget_rule_order():
    assert [rule.name for rule in rules.BUDGET_RULES] == [
        "dollar_prefix",
        "dollar_suffix",
        "dollars_word",
        "context_word",
    ]


@pytest.mark.parametrize(
    "name,text,expected",
    [
        ("dollar_prefix", "about $1,200 total", "1200"),
        ("dollar_prefix", "$ 75.50", "75.50"),
        ("dollar_suffix", "300$ max", "300"),
        ("dollars_word", "maybe 450 dollars", "450"),
        ("context_word", "my budget is 800", "800"),
        ("context_word", "Max: 90", "90"),
        ("context_word", "willing to spend 600", "600"),
    ],
)
def test_budget_rule_candidates(name, text, expected):
    assert _budget_rule(name).candidate(text) == expected


def test_budget_rules_ignore_plain_numbers():
    for rule in rules.BUDGET_RULES:
        assert rule.candidate("call me at 5 or 6") is None


@pytest.mark.parametrize(
    "text,expected",
    [
        ("zip 75001", "75001"),
        ("I live in 90210-1234 area", "90210"),
        ("75001, then later 30301", "75001"),
        ("00000", None),
        ("00100", None),
        ("99999", None),
        ("$25000", None),
        ("25000 dollars", None),
        ("order 123456", None),
        ("1.75001", None),
        ("1,75001", None),
        ("I'm in Dallas,75001 budget $200", "75001"),
        ("My budget is $ 10000", None),
        ("$ 25000 or zip 75001", "75001"),
    ],
)
def test_find_zipcode(text, expected):
    assert rules.find_zipcode(text) == expected


def test_only_first_zip_token_is_considered():
    # The first standalone token is implausible, so nothing is extracted.
    assert rules.find_zipcode("00000 or 75001") is None


def test_find_location_requires_capitalized_name():
    assert rules.find_location("I'm located in Dallas Texas") == "Dallas Texas"
    assert rules.find_location("somewhere near Austin") == "Austin"
    assert rules.find_location("in the kitchen") is None


def test_format_budget_strips_commas():
    assert rules.format_budget("1,500") == "$1500"


@pytest.mark.parametrize(
    "text",
    ["What does it cost?", "how soon can you come", "Can someone help", "is it licensed", "Do you clean ovens"],
)
def test_is_question(text):
    assert rules.is_question(text)


def test_statement_is_not_question():
    assert not rules.is_question("Licensed plumber please")


@pytest.mark.parametrize(
    "text,kind",
    [("75001", "zipcode"), ("$250", "amount"), ("250$", "amount"), ("250", "amount"), ("250 dollars", "dollars")],
)
def test_simple_value_kind(text, kind):
    assert rules.simple_value_kind(text) == kind


def test_simple_value_kind_rejects_sentences():
    assert rules.simple_value_kind("about 250 please") is None


def test_negates_requirements():
    assert rules.negates_requirements("No special requirements")
    assert rules.negates_requirements("nothing specific really")
    assert not rules.negates_requirements("licensed and insured")


def test_strip_trailing_references_loops_until_stable():
    clause = "an eco-friendly cleaner, budget is $200 in 75001"
    assert rules.strip_trailing_references(clause) == "an eco-friendly cleaner"


def test_isolate_requirement_clause_lead_ins():
    assert rules.isolate_requirement_clause("All I want is a licensed plumber, budget $300") == "a licensed plumber"
    assert rules.isolate_requirement_clause("I'm looking for same-day service in 75001") == "same-day service"
    assert rules.isolate_requirement_clause("It must have eco-friendly products") == "must have eco-friendly products"


def test_isolate_requirement_clause_fails_on_short_clause():
    assert rules.isolate_requirement_clause("I need $300") is None
    assert rules.isolate_requirement_clause("plumbing budget $300") is None


@pytest.mark.parametrize(
    "text",
    ["Should be licensed and insured, bathroom remodel", "Do not use harsh chemicals in the kitchen", "Can't start before noon"],
)
def test_auxiliary_instructions_are_not_questions(text):
    assert not rules.is_question(text)


@pytest.mark.parametrize(
    "text",
    ["No, I don't have any requirements", "I do not have any preference", "None", "n/a.", "No, I don’t have any requirements"],
)
def test_negation_variants(text):
    assert rules.negates_requirements(text)


def test_single_no_is_not_a_negation():
    assert not rules.negates_requirements("no")
    assert not rules.negates_requirements("none of the above vendors were good")
