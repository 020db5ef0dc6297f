"""Prompt builders and response schemas for the two generation stages."""

from __future__ import annotations

from typing import Any

CONCEPT_SYNTHESIS_SCHEMA: dict[str, Any] = {
  "title": "concept_synthesis",
  "type": "object",
  "properties": {
    "concepts": {
      "type": "array",
      "items": {
        "type": "object",
        "properties": {"title": {"type": "string"}, "description": {"type": "string"}, "rationale": {"type": "string"}},
        "required": ["title", "description", "rationale"],
        "additionalProperties": False,
      },
    }
  },
  "required": ["concepts"],
  "additionalProperties": False,
}

PHRASING_EXPANSION_SCHEMA: dict[str, Any] = {
  "title": "phrasing_expansion",
  "type": "object",
  "properties": {
    "phrasings": {
      "type": "array",
      "items": {
        "type": "object",
        "properties": {
          "question": {"type": "string"},
          "explanation": {"type": "string"},
          "type": {"type": "string", "enum": ["multiple-choice", "true-false"]},
          "options": {"type": "array", "items": {"type": "string"}},
          "correctAnswer": {"type": "string"},
        },
        "required": ["question", "explanation", "type", "options", "correctAnswer"],
        "additionalProperties": False,
      },
    }
  },
  "required": ["phrasings"],
  "additionalProperties": False,
}


def build_concept_synthesis_prompt(user_prompt: str) -> str:
  return f"""You are an expert learning designer. Break the learner's request into atomic concepts.

Learner request:
<request>
{user_prompt}
</request>

Rules:
- Return between 1 and 6 concepts.
- Each concept covers exactly one idea that can be tested on its own. Never bundle comparisons, lists or multi-step procedures into one concept.
- Titles are short noun phrases (5 to 120 characters).
- Descriptions explain the idea in 40 to 800 characters.
- Rationale states why the concept matters for the request.
"""


def build_phrasing_expansion_prompt(title: str, description: str, existing_questions: list[str], target_count: int) -> str:
  existing_block = "\n".join(f"- {question}" for question in existing_questions) or "- (none)"
  return f"""You write retrieval-practice questions for a single concept.

Concept: {title}
Description: {description}

Existing questions (do not repeat or trivially rephrase these):
{existing_block}

Write {target_count} new questions.
- Use "multiple-choice" with 3 to 5 distinct options, or "true-false" with exactly the options "True" and "False".
- correctAnswer must be exactly one of the options.
- Each explanation teaches why the answer is correct in at least one full sentence.
"""
