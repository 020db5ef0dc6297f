"""Validation and filtering of raw model output for both pipeline stages."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from conceptdeck.jobs.models import ConceptIdea, PhrasingDraft, PhrasingType

MAX_CONCEPTS_PER_JOB = 6
MIN_TITLE_LENGTH = 5
MAX_TITLE_LENGTH = 120
MIN_DESCRIPTION_LENGTH = 40
MAX_DESCRIPTION_LENGTH = 800
MAX_CONJUNCTIONS = 3
MAX_ORDINAL_MARKERS = 1

MIN_QUESTION_LENGTH = 12
MAX_QUESTION_LENGTH = 400
MIN_EXPLANATION_LENGTH = 12
OPTION_COUNT_BOUNDS: dict[PhrasingType, tuple[int, int]] = {"multiple-choice": (3, 5), "true-false": (2, 2)}

_ORDINAL_PATTERN = re.compile(r"\b(?:first(?:ly)?|second(?:ly)?|third(?:ly)?|fourth|fifth|step\s*\d+)\b|(?:^|\s)\d+[.)](?=\s)", re.IGNORECASE)
_VERSUS_PATTERN = re.compile(r"\svs\.?\s", re.IGNORECASE)


def _text(value: Any) -> str:
  """Coerce a raw model field into trimmed text."""
  if isinstance(value, str):
    return value.strip()
  return ""


def _count_ordinal_markers(text: str) -> int:
  return len(_ORDINAL_PATTERN.findall(text))


def _is_comma_dense(description: str) -> bool:
  """Detect descriptions that read like a comma separated list of sub-topics."""
  commas = description.count(",")
  if commas < 3:
    return False
  if commas >= 4:
    return True
  segments = [segment.split() for segment in description.split(",")]
  average_words = sum(len(words) for words in segments) / len(segments)
  return average_words < 6


def is_multi_topic(title: str, description: str) -> bool:
  """Return True when a concept proposal bundles several ideas into one."""
  combined = f"{title} {description}"
  lowered = f" {combined.lower()} "
  if lowered.count(" and ") > MAX_CONJUNCTIONS:
    return True
  if _VERSUS_PATTERN.search(combined):
    return True
  if _count_ordinal_markers(combined) > MAX_ORDINAL_MARKERS:
    return True
  return _is_comma_dense(description)


def prepare_concept_ideas(raw_ideas: Iterable[Any]) -> list[ConceptIdea]:
  """Normalize Stage A output into at most six single-topic concept ideas."""
  accepted: list[ConceptIdea] = []
  seen_titles: set[str] = set()

  for raw in raw_ideas:
    if len(accepted) >= MAX_CONCEPTS_PER_JOB:
      break
    if not isinstance(raw, Mapping):
      continue

    title = _text(raw.get("title"))
    description = _text(raw.get("description"))
    rationale = _text(raw.get("rationale")) or None
    if not title or not description:
      continue
    if not MIN_TITLE_LENGTH <= len(title) <= MAX_TITLE_LENGTH:
      continue
    if not MIN_DESCRIPTION_LENGTH <= len(description) <= MAX_DESCRIPTION_LENGTH:
      continue

    title_key = title.lower()
    if title_key in seen_titles:
      continue
    if is_multi_topic(title, description):
      continue

    seen_titles.add(title_key)
    accepted.append(ConceptIdea(title=title, description=description, rationale=rationale))

  return accepted


def _dedupe_options(raw_options: Any) -> list[str]:
  """Trim options and drop case-insensitive repeats, keeping the first spelling."""
  if not isinstance(raw_options, list):
    return []
  options: list[str] = []
  seen: set[str] = set()
  for raw_option in raw_options:
    option = _text(raw_option)
    if not option or option.lower() in seen:
      continue
    seen.add(option.lower())
    options.append(option)
  return options


def prepare_generated_phrasings(raw_phrasings: Iterable[Any], existing_questions: Iterable[str], target_count: int) -> list[PhrasingDraft]:
  """Normalize Stage B output against the concept's existing questions.

  Options are de-duplicated before the per-type count check so repeated options
  cannot satisfy the minimum. The correct answer is rewritten to the casing of the
  option it matches.
  """
  seen_questions = {question.strip().lower() for question in existing_questions if question and question.strip()}
  accepted: list[PhrasingDraft] = []

  for raw in raw_phrasings:
    if len(accepted) >= target_count:
      break
    if not isinstance(raw, Mapping):
      continue

    question = _text(raw.get("question"))
    explanation = _text(raw.get("explanation"))
    phrasing_type = _text(raw.get("type"))
    if not MIN_QUESTION_LENGTH <= len(question) <= MAX_QUESTION_LENGTH:
      continue
    if len(explanation) < MIN_EXPLANATION_LENGTH:
      continue
    if question.lower() in seen_questions:
      continue
    if phrasing_type not in OPTION_COUNT_BOUNDS:
      continue

    options = _dedupe_options(raw.get("options"))
    min_options, max_options = OPTION_COUNT_BOUNDS[phrasing_type]
    if not min_options <= len(options) <= max_options:
      continue

    answer_key = _text(raw.get("correctAnswer") or raw.get("correct_answer")).lower()
    correct_answer = next((option for option in options if option.lower() == answer_key), None)
    if correct_answer is None:
      continue

    seen_questions.add(question.lower())
    accepted.append(PhrasingDraft(question=question, explanation=explanation, type=phrasing_type, options=options, correct_answer=correct_answer))

  return accepted


def compute_thin_score(phrasing_count: int, target: int) -> int | None:
  """Return how many phrasings a concept is short of target, or None once it reaches it."""
  if phrasing_count >= target:
    return None
  delta = max(0, target - min(max(0, phrasing_count), target))
  return delta or None


def compute_conflict_score(questions: Iterable[str]) -> int | None:
  """Count exact case-insensitive repeats among question texts, or None when there are none."""
  seen: set[str] = set()
  duplicates = 0
  for question in questions:
    key = question.strip().lower()
    if not key:
      continue
    if key in seen:
      duplicates += 1
    else:
      seen.add(key)
  return duplicates or None
