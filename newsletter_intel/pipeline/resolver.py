"""Entity resolution: exact-name find-or-create of a Company plus one Mention per extraction."""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime

from newsletter_intel.clock import utc_now
from newsletter_intel.db.schemas import CompanyDTO
from newsletter_intel.pipeline.contracts import WorkStorePort
from newsletter_intel.pipeline.models import ExtractedCompany
from newsletter_intel.pipeline.settings import PipelineSettings

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalized_slug(name: str, now: datetime) -> str:
    """Lower-case, non-alphanumerics collapsed to '-', trimmed, suffixed with epoch millis.

    The timestamp makes the slug unique per row, so it is never a dedup key.
    """
    base = _NON_ALNUM.sub("-", name.lower()).strip("-")
    millis = int(now.timestamp() * 1000)
    return f"{base}-{millis}" if base else str(millis)


@dataclass(frozen=True)
class Resolution:
    company: CompanyDTO
    created: bool


class EntityResolver:
    """
    Matches by exact display name (surrounding whitespace ignored) within a user.
    Existing companies get an in-SQL mention_count increment; new ones are written with
    an upsert on (user_id, name), so two concurrent resolutions of the same new name
    converge on one row with both mentions counted.
    """

    def __init__(self, store: WorkStorePort, settings: PipelineSettings) -> None:
        self._store = store
        self._settings = settings

    async def resolve(self, user_id: str, entity: ExtractedCompany, item_id: str) -> Resolution:
        name = entity.name.strip()
        if not name:
            raise ValueError("Cannot resolve a company without a name")
        now = utc_now()

        company: CompanyDTO | None = None
        created = False
        existing = await asyncio.to_thread(self._store.find_company_by_name, user_id, name)
        if existing is not None:
            company = await asyncio.to_thread(self._store.increment_company_mentions, existing.id, now)
        if company is None:
            company, created = await asyncio.to_thread(
                self._store.upsert_company,
                user_id,
                name,
                normalized_slug(name, now),
                now,
                description=entity.description,
                industry=entity.industry_tags,
            )

        confidence = entity.confidence if entity.confidence is not None else self._settings.default_confidence
        await asyncio.to_thread(
            self._store.insert_mention,
            user_id,
            company.id,
            item_id,
            context=entity.context or self._settings.default_mention_context,
            sentiment=self._settings.default_sentiment,
            confidence=confidence,
            extracted_at=now,
        )
        logger.debug(
            "resolved company: user_id=%s name=%r company_id=%s created=%s",
            user_id,
            name,
            company.id,
            created,
        )
        return Resolution(company=company, created=created)
