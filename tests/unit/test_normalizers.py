"""Idea and phrasing normalization rules."""

from __future__ import annotations

from conceptdeck.jobs.normalizers import compute_conflict_score, compute_thin_score, is_multi_topic, prepare_concept_ideas, prepare_generated_phrasings

LONG_DESCRIPTION = "Describes how the idea works as one retrievable unit of knowledge for later review."


def _idea(title: str, description: str = LONG_DESCRIPTION) -> dict[str, str]:
  return {"title": title, "description": description, "rationale": "Matters for the request."}


def test_case_duplicate_titles_keep_first() -> None:
  ideas = prepare_concept_ideas([_idea("Grace as Gift"), _idea("grace as gift"), _idea("Sacramental Symbolism")])
  assert [idea.title for idea in ideas] == ["Grace as Gift", "Sacramental Symbolism"]


def test_caps_at_six_concepts() -> None:
  ideas = prepare_concept_ideas([_idea(f"Concept {index}", f"Detailed standalone explanation number {index} covering a single learning objective.") for index in range(10)])
  assert len(ideas) == 6
  assert ideas[0].title == "Concept 0"


def test_trims_and_drops_short_or_empty_fields() -> None:
  ideas = prepare_concept_ideas([_idea("  Padded Title  ", f"  {LONG_DESCRIPTION}  "), _idea("Short One", "Tiny."), _idea("", LONG_DESCRIPTION), _idea("Abc")])
  assert [idea.title for idea in ideas] == ["Padded Title"]
  assert ideas[0].description == LONG_DESCRIPTION


def test_rejects_ordinal_marker_bundles() -> None:
  bundle = _idea("Cell Division Steps", "First the chromosomes condense, second they align at the plate, then they separate.")
  assert prepare_concept_ideas([bundle]) == []


def test_rejects_versus_and_conjunction_heavy_bundles() -> None:
  assert is_multi_topic("Augustine vs Pelagius", LONG_DESCRIPTION)
  assert is_multi_topic("Grace, Merit, and Cooperation", "Define sanctifying grace and habitual grace and actual grace and then connect each to merit.")
  assert not is_multi_topic("Grace as Gift", "Describes how grace is both gift and ongoing invitation, highlighting a single retrievable unit.")


def test_rejects_comma_dense_descriptions() -> None:
  assert is_multi_topic("Organelles", "Covers nucleus, ribosomes, mitochondria, golgi, lysosomes and vacuoles in one sweep of the cell.")


def test_ignores_non_mapping_items() -> None:
  assert prepare_concept_ideas(["not a dict", None, _idea("Valid Title")])[0].title == "Valid Title"


def _phrasing(question: str, **overrides: object) -> dict[str, object]:
  item: dict[str, object] = {"question": question, "explanation": "Because the source text says so clearly.", "type": "multiple-choice", "options": ["Matthew", "Mark", "Luke"], "correctAnswer": "Matthew"}
  item.update(overrides)
  return item


def test_true_false_with_three_options_is_dropped() -> None:
  drafts = prepare_generated_phrasings([_phrasing("Is the statement about mitosis true?", type="true-false", options=["True", "False", "Maybe"], correctAnswer="True")], [], 4)
  assert drafts == []


def test_unmatched_correct_answer_is_dropped() -> None:
  assert prepare_generated_phrasings([_phrasing("Which gospel is listed first?", correctAnswer="John")], [], 4) == []


def test_correct_answer_takes_option_casing() -> None:
  drafts = prepare_generated_phrasings([_phrasing("Which gospel is listed first?", correctAnswer="matthew")], [], 4)
  assert drafts[0].correct_answer == "Matthew"


def test_truncates_to_target() -> None:
  drafts = prepare_generated_phrasings([_phrasing(f"Generated question number {index}?") for index in range(6)], [], 4)
  assert len(drafts) == 4


def test_drops_duplicates_of_existing_and_accepted_questions() -> None:
  raw = [_phrasing("Which gospel is listed first?"), _phrasing("WHICH GOSPEL IS LISTED FIRST?"), _phrasing("Who wrote the longest gospel?")]
  drafts = prepare_generated_phrasings(raw, ["who wrote the longest gospel?"], 4)
  assert [draft.question for draft in drafts] == ["Which gospel is listed first?"]


def test_option_duplicates_collapse_before_count_check() -> None:
  drafts = prepare_generated_phrasings([_phrasing("Which gospel is listed first?", options=["Matthew", "matthew", "Mark"])], [], 4)
  assert drafts == []

  drafts = prepare_generated_phrasings([_phrasing("Which gospel is listed first?", options=["Matthew", "matthew", "Mark", "Luke"])], [], 4)
  assert drafts[0].options == ["Matthew", "Mark", "Luke"]


def test_short_question_or_explanation_is_dropped() -> None:
  assert prepare_generated_phrasings([_phrasing("Too short?")], [], 4) == []
  assert prepare_generated_phrasings([_phrasing("Which gospel is listed first?", explanation="Because.")], [], 4) == []


def test_thin_and_conflict_scores() -> None:
  assert compute_thin_score(1, 4) == 3
  assert compute_thin_score(4, 4) is None
  assert compute_thin_score(9, 4) is None
  assert compute_conflict_score(["A question?", "a question?", "Other?"]) == 1
  assert compute_conflict_score(["A question?", "Other?"]) is None
