"""Storage interface for concepts and their phrasings."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from conceptdeck.jobs.models import ConceptIdea, ConceptRecord, PhrasingDraft, PhrasingRecord


class ConceptsRepository(Protocol):
  """Repository contract for concept and phrasing persistence."""

  async def create_many(self, owner_id: str, job_id: str, ideas: Sequence[ConceptIdea]) -> list[str]:
    """Create concepts that are not already in the owner's library; returns the new ids."""

  async def get_concept(self, concept_id: str) -> ConceptRecord | None:
    """Fetch a concept by identifier."""

  async def list_recent_phrasings(self, owner_id: str, concept_id: str, limit: int = 20) -> list[PhrasingRecord]:
    """Return the concept's most recent phrasings, newest first."""

  async def list_question_texts(self, owner_id: str, concept_id: str) -> list[str]:
    """Return every stored question text of the concept."""

  async def insert_phrasings(self, owner_id: str, concept_id: str, drafts: Sequence[PhrasingDraft]) -> list[str]:
    """Insert phrasings, skipping questions the concept already has; returns the inserted ids."""

  async def apply_phrasing_metrics(self, concept_id: str, *, inserted: int, target: int, conflict_score: int | None) -> ConceptRecord | None:
    """Increment phrasing_count by `inserted` and recompute thin_score against target."""
