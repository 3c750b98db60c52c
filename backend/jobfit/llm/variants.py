"""Cover-letter variants and random variant selection."""

import random
from enum import Enum
from typing import Collection, Optional

from jobfit.prompts.cover_letter import (
    COVER_LETTER_DIRECT,
    COVER_LETTER_EXECUTIVE,
    COVER_LETTER_STORYTELLING,
)

from .config import GeminiModel


class CoverLetterVariant(Enum):
    """Named prompt templates producing different voices of cover letter."""

    V1_DIRECT = "v1_direct"
    V2_STORYTELLING = "v2_storytelling"
    V3_EXPERIMENTAL_PRO = "v3_experimental_pro"

    @property
    def template(self) -> str:
        return _TEMPLATES[self]

    @property
    def model_override(self) -> Optional[GeminiModel]:
        """Model pinned by the variant; None means route as an analysis task."""
        if self is CoverLetterVariant.V3_EXPERIMENTAL_PRO:
            return GeminiModel.PRO
        return None


_TEMPLATES: dict[CoverLetterVariant, str] = {
    CoverLetterVariant.V1_DIRECT: COVER_LETTER_DIRECT,
    CoverLetterVariant.V2_STORYTELLING: COVER_LETTER_STORYTELLING,
    CoverLetterVariant.V3_EXPERIMENTAL_PRO: COVER_LETTER_EXECUTIVE,
}

ALL_VARIANTS: tuple[CoverLetterVariant, ...] = tuple(CoverLetterVariant)


def select_variant(
    available: Collection[CoverLetterVariant] = ALL_VARIANTS,
    used: Collection[CoverLetterVariant] = (),
    rng: Optional[random.Random] = None,
) -> CoverLetterVariant:
    """Pick a uniformly random variant not yet used in this run.

    Falls back to a uniformly random variant from ``available`` once every
    variant has been used.

    Args:
        available: Candidate variants
        used: Variants already tried in the current run
        rng: Random source (module-level ``random`` when omitted)

    Raises:
        ValueError: If ``available`` is empty
    """
    candidates = list(dict.fromkeys(available))
    if not candidates:
        raise ValueError("No variants available to select from")
    unused = [variant for variant in candidates if variant not in used]
    chooser = rng or random
    return chooser.choice(unused or candidates)
