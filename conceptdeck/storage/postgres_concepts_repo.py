"""Postgres-backed repository for concepts and phrasings."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert

from conceptdeck.core.database import get_session_factory
from conceptdeck.jobs.models import ConceptIdea, ConceptRecord, PhrasingDraft, PhrasingRecord
from conceptdeck.jobs.normalizers import compute_thin_score
from conceptdeck.schema.concepts import Concept, Phrasing
from conceptdeck.storage.concepts_repo import ConceptsRepository
from conceptdeck.utils.ids import generate_concept_id, generate_phrasing_id


def _normalize_text(value: str) -> str:
  return " ".join(value.split()).lower()


class PostgresConceptsRepository(ConceptsRepository):
  """Persist concepts and phrasings to Postgres using SQLAlchemy."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_many(self, owner_id: str, job_id: str, ideas: Sequence[ConceptIdea]) -> list[str]:
    keys = [_normalize_text(idea.title) for idea in ideas]
    if not keys:
      return []

    async with self._session_factory() as session, session.begin():
      # Titles already in the owner's library are treated as duplicates.
      stmt = select(Concept.normalized_title).where(Concept.owner_id == owner_id, Concept.normalized_title.in_(keys))
      seen = set((await session.execute(stmt)).scalars().all())
      new_ids: list[str] = []
      for idea, key in zip(ideas, keys, strict=True):
        if key in seen:
          continue
        seen.add(key)
        concept_id = generate_concept_id()
        session.add(Concept(concept_id=concept_id, owner_id=owner_id, title=idea.title, normalized_title=key, description=idea.description, phrasing_count=0, generation_job_id=job_id))
        new_ids.append(concept_id)
      return new_ids

  async def get_concept(self, concept_id: str) -> ConceptRecord | None:
    async with self._session_factory() as session:
      row = await session.get(Concept, concept_id)
      if row is None:
        return None
      return self._concept_to_record(row)

  async def list_recent_phrasings(self, owner_id: str, concept_id: str, limit: int = 20) -> list[PhrasingRecord]:
    async with self._session_factory() as session:
      stmt = select(Phrasing).where(Phrasing.owner_id == owner_id, Phrasing.concept_id == concept_id).order_by(Phrasing.created_at.desc()).limit(limit)
      rows = (await session.execute(stmt)).scalars().all()
      return [self._phrasing_to_record(row) for row in rows]

  async def list_question_texts(self, owner_id: str, concept_id: str) -> list[str]:
    async with self._session_factory() as session:
      stmt = select(Phrasing.question).where(Phrasing.owner_id == owner_id, Phrasing.concept_id == concept_id)
      return list((await session.execute(stmt)).scalars().all())

  async def insert_phrasings(self, owner_id: str, concept_id: str, drafts: Sequence[PhrasingDraft]) -> list[str]:
    values = [
      {
        "phrasing_id": generate_phrasing_id(),
        "owner_id": owner_id,
        "concept_id": concept_id,
        "question": draft.question,
        "normalized_question": _normalize_text(draft.question),
        "explanation": draft.explanation,
        "type": draft.type,
        "options": list(draft.options),
        "correct_answer": draft.correct_answer,
        "embedding": draft.embedding,
      }
      for draft in drafts
    ]
    if not values:
      return []

    async with self._session_factory() as session:
      stmt = pg_insert(Phrasing).values(values).on_conflict_do_nothing(index_elements=["concept_id", "normalized_question"]).returning(Phrasing.phrasing_id)
      inserted = list((await session.execute(stmt)).scalars().all())
      await session.commit()
      return inserted

  async def apply_phrasing_metrics(self, concept_id: str, *, inserted: int, target: int, conflict_score: int | None) -> ConceptRecord | None:
    async with self._session_factory() as session, session.begin():
      stmt = select(Concept).where(Concept.concept_id == concept_id).with_for_update()
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        return None
      row.phrasing_count = (row.phrasing_count or 0) + inserted
      row.thin_score = compute_thin_score(row.phrasing_count, target)
      row.conflict_score = conflict_score
      return self._concept_to_record(row)

  def _concept_to_record(self, row: Concept) -> ConceptRecord:
    return ConceptRecord(
      concept_id=row.concept_id,
      owner_id=row.owner_id,
      title=row.title,
      description=row.description,
      phrasing_count=row.phrasing_count or 0,
      thin_score=row.thin_score,
      conflict_score=row.conflict_score,
      embedding=row.embedding,
      generation_job_id=row.generation_job_id,
      created_at=row.created_at,
    )

  def _phrasing_to_record(self, row: Phrasing) -> PhrasingRecord:
    return PhrasingRecord(
      phrasing_id=row.phrasing_id,
      owner_id=row.owner_id,
      concept_id=row.concept_id,
      question=row.question,
      explanation=row.explanation,
      type=row.type,
      options=list(row.options or []),
      correct_answer=row.correct_answer,
      embedding=row.embedding,
      created_at=row.created_at,
    )
