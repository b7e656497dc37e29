"""
Activity verification from raw channel history.

History is walked backwards a page at a time. Once the oldest message seen is
at or before the cutoff, nothing further back can change any count, so paging
stops there. ``MAX_PAGES`` bounds the walk for channels whose history never
ends within the window.
"""

import datetime
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Collection, Dict, List, Optional, Tuple

from .errors import RetrievalError
from .interfaces import MessageHistory
from .models import ChannelRef, HistoryMessage, Member

log = logging.getLogger(__name__)

PAGE_SIZE = 100
MAX_PAGES = 50


@dataclass
class VerificationResult:
    passed: List[Member] = field(default_factory=list)
    counts: Dict[int, int] = field(default_factory=dict)
    pages: int = 0


class ActivityVerifier:
    def __init__(self, history: MessageHistory, page_size: int = PAGE_SIZE, max_pages: int = MAX_PAGES):
        self.history = history
        self.page_size = page_size
        self.max_pages = max_pages

    async def collect(self, channel: ChannelRef, cutoff: datetime.datetime) -> List[HistoryMessage]:
        """Fetch history newest-first until the cutoff is passed; returns it sorted newest-first."""
        messages, _ = await self._walk(channel, cutoff)
        return messages

    async def _walk(self, channel: ChannelRef, cutoff: datetime.datetime) -> Tuple[List[HistoryMessage], int]:
        messages: List[HistoryMessage] = []
        before: Optional[int] = None
        pages = 0
        while pages < self.max_pages:
            try:
                page = await self.history.fetch_page(channel, before=before, limit=self.page_size)
            except Exception as exc:
                log.exception("collect: fetching history for #%s (%s) failed", channel.name, channel.id)
                raise RetrievalError(f"Could not read history of #{channel.name}", channel_id=channel.id) from exc
            pages += 1
            if not page:
                break
            messages.extend(page)
            messages.sort(key=lambda m: m.timestamp, reverse=True)
            oldest = messages[-1]
            if oldest.timestamp <= cutoff:
                break
            if len(page) < self.page_size:
                break
            before = oldest.id
        else:
            log.warning("collect: stopped at %d pages in #%s before reaching cutoff %s", pages, channel.name, cutoff.isoformat())

        log.debug("collect: #%s pages=%d messages=%d", channel.name, pages, len(messages))
        return messages, pages

    async def verify(
        self,
        channel: ChannelRef,
        candidates: List[Member],
        min_messages: int,
        cutoff: datetime.datetime,
        exempt: Collection[int] = (),
    ) -> VerificationResult:
        """Keep the candidates with at least ``min_messages`` messages newer than ``cutoff``."""
        result = VerificationResult()
        if not candidates:
            return result

        messages, result.pages = await self._walk(channel, cutoff)
        wanted = {m.id for m in candidates}
        tally = Counter(m.author_id for m in messages if m.timestamp > cutoff and m.author_id in wanted)

        for member in candidates:
            count = tally.get(member.id, 0)
            result.counts[member.id] = count
            if member.id in exempt or count >= min_messages:
                result.passed.append(member)
            else:
                log.info(
                    "verify: %s has %d/%d messages in #%s, skipping promotion",
                    member.display_name, count, min_messages, channel.name,
                )
        return result
