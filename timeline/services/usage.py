"""Daily usage quotas"""

from datetime import datetime, time
from typing import Callable, Dict, Optional
import enum
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from timeline.config import Settings
from timeline.exceptions import AuthException, QuotaExceededException
from timeline.models.usage_counter import UsageCounter

logger = logging.getLogger(__name__)


class UsageKind(str, enum.Enum):
    """Metered resources"""
    SEARCHES = "searches"
    EMBED_CHUNKS = "embed_chunks"
    CHAT_MESSAGES = "chat_messages"
    LLM_TOKENS = "llm_tokens"


COUNTER_COLUMNS = {
    UsageKind.SEARCHES: "search_count",
    UsageKind.EMBED_CHUNKS: "embed_chunk_count",
    UsageKind.CHAT_MESSAGES: "chat_message_count",
    UsageKind.LLM_TOKENS: "llm_token_estimate",
}


def start_of_utc_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min)


def require_owner(owner_id: Optional[str]) -> str:
    """Every metered or owner-scoped operation needs a principal"""
    if not owner_id:
        raise AuthException()
    return owner_id


class UsageLedger:
    """Per-owner counters that reset at UTC midnight"""

    def __init__(self, db: Session, settings: Settings, now: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.settings = settings
        self.now = now

    def limits(self) -> Dict[UsageKind, int]:
        return {
            UsageKind.SEARCHES: self.settings.MAX_SEARCHES_PER_DAY,
            UsageKind.EMBED_CHUNKS: self.settings.MAX_EMBED_CHUNKS_PER_DAY,
            UsageKind.CHAT_MESSAGES: self.settings.MAX_CHAT_MESSAGES_PER_DAY,
            UsageKind.LLM_TOKENS: self.settings.MAX_LLM_TOKENS_PER_DAY,
        }

    def ensure_counter(self, owner_id: str) -> UsageCounter:
        """
        Load the owner's counter, creating it or resetting it for a new UTC day

        Args:
            owner_id: Owner id

        Returns:
            Counter for the current day
        """
        require_owner(owner_id)
        period_start = start_of_utc_day(self.now())

        counter = self.db.query(UsageCounter).filter(UsageCounter.owner_id == owner_id).first()
        if counter is None:
            counter = UsageCounter(owner_id=owner_id, period_start=period_start)
            self.db.add(counter)
            try:
                self.db.commit()
            except IntegrityError:
                # Created concurrently by another request
                self.db.rollback()
                counter = self.db.query(UsageCounter).filter(UsageCounter.owner_id == owner_id).one()
            self.db.refresh(counter)

        if counter.period_start < period_start:
            logger.info(f"Resetting usage counters for owner {owner_id}")
            counter.period_start = period_start
            for column in COUNTER_COLUMNS.values():
                setattr(counter, column, 0)
            self.db.commit()
            self.db.refresh(counter)

        return counter

    def used(self, owner_id: str, kind: UsageKind) -> int:
        counter = self.ensure_counter(owner_id)
        return getattr(counter, COUNTER_COLUMNS[kind]) or 0

    def remaining(self, owner_id: str, kind: UsageKind) -> int:
        return self.limits()[kind] - self.used(owner_id, kind)

    def assert_remaining(self, owner_id: str, kind: UsageKind, requested: int = 1):
        """
        Fail before spending when the request would exceed today's quota

        Raises:
            QuotaExceededException: remaining < requested
        """
        limit = self.limits()[kind]
        remaining = limit - self.used(owner_id, kind)
        if remaining < requested:
            logger.warning(
                f"Quota exceeded for owner {owner_id}: {kind.value} requested={requested} remaining={remaining}"
            )
            raise QuotaExceededException(limit=limit, remaining=max(0, remaining), kind=kind.value)

    def record(self, owner_id: str, kind: UsageKind, amount: int = 1):
        """Add to today's counter"""
        if amount <= 0:
            return
        counter = self.ensure_counter(owner_id)
        column = COUNTER_COLUMNS[kind]
        self.db.query(UsageCounter).filter(UsageCounter.id == counter.id).update(
            {column: getattr(UsageCounter, column) + amount},
            synchronize_session=False
        )
        self.db.commit()
        self.db.refresh(counter)

    def snapshot(self, owner_id: str) -> Dict[str, object]:
        counter = self.ensure_counter(owner_id)
        limits = self.limits()
        usage = {kind.value: getattr(counter, column) or 0 for kind, column in COUNTER_COLUMNS.items()}
        return {
            "period_start": counter.period_start,
            "usage": usage,
            "limits": {kind.value: limit for kind, limit in limits.items()},
            "remaining": {kind.value: max(0, limits[kind] - usage[kind.value]) for kind in UsageKind},
        }
