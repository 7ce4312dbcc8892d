"""Options for slug generation."""

from pydantic import BaseModel, Field

from curation.core.config import settings


class SlugOptions(BaseModel):
    """Tuning knobs for SlugService.generate.

    Attributes:
        max_length: Hard cap on the base slug before numbering
        max_words: Words kept after stop-word removal
        max_attempts: Numbered candidates tried before the timestamp fallback
        remove_stop_words: Drop articles and short prepositions
    """

    max_length: int = Field(default=settings.SLUG_DEFAULT_LENGTH, ge=3)
    max_words: int = Field(default=settings.SLUG_MAX_WORDS, gt=0)
    max_attempts: int = Field(default=settings.SLUG_MAX_ATTEMPTS, gt=0)
    remove_stop_words: bool = True
