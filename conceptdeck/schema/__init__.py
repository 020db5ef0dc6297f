"""ORM models registered on the shared declarative base."""

from conceptdeck.schema.concepts import Concept, Phrasing
from conceptdeck.schema.jobs import GenerationJob
from conceptdeck.schema.rate_limits import RateLimitAttempt

__all__ = ["Concept", "GenerationJob", "Phrasing", "RateLimitAttempt"]
