import pytest

from ledger.runtime.state.extraction import (
    extract_entities,
    extract_interaction,
    importance_score,
    infer_context_type,
    match_terms,
)


def test_terms_are_reported_in_vocabulary_order():
    assert match_terms("use the webhook then stripe", ("stripe", "webhook", "python")) == ["stripe", "webhook"]


@pytest.mark.parametrize(
    "user_input, expected",
    [
        ("what is the roadmap", "planning"),
        ("let's deploy it", "implementation"),
        ("there is an ERROR in prod", "debugging"),
        ("we must choose a vendor", "decision"),
        ("how are sales", "analysis"),
    ],
)
def test_context_type_families(user_input, expected):
    assert infer_context_type(user_input, "") == expected


def test_first_matching_family_wins():
    assert infer_context_type("plan the fix", "") == "planning"


def test_entities_match_case_insensitively():
    entities = extract_entities("Configure Stripe for Python", "Unable to reach the API")

    assert entities.tasks_mentioned == ["configure"]
    assert entities.technologies_discussed == ["stripe", "api", "python"]
    assert entities.blockers_identified == ["unable"]


def test_importance_starts_at_base_and_is_capped():
    assert importance_score("hello", "hi") == 0.3
    assert importance_score("urgent payment decision blocker complete", "") == 1.0


def test_importance_adds_each_family_once():
    assert importance_score("revenue and money and payment", "") == 0.5


def test_mixed_exchange():
    insights = extract_interaction("The checkout page shows an error", "We decided to retry later")

    assert insights.context_type == "debugging"
    assert insights.entities.decisions_made == ["decided"]
    assert insights.entities.blockers_identified == ["error"]
    assert insights.entities.tasks_mentioned == []
    assert insights.entities.technologies_discussed == []
    assert insights.importance_score == 0.5
