"""
Reaction-based confirmation of a batch action.

A prompt is posted listing the affected members, the reject and accept
reactions are attached (in that order) and exactly one qualifying reaction
from the initiating user is awaited. The pending entry is popped before
anything is applied, so one prompt can only ever apply its action once.
"""

import asyncio
import datetime
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from .interfaces import ApplyFn, ReactionUI
from .models import Member, Outcome

log = logging.getLogger(__name__)

REJECT_EMOJI = "🚫"
ACCEPT_EMOJI = "✅"
DEFAULT_TIMEOUT = 300.0

INSTRUCTIONS = f"***React {ACCEPT_EMOJI} to proceed, or {REJECT_EMOJI} to cancel.***"
OUTCOME_FOOTERS = {
    Outcome.CONFIRMED: "Changes confirmed and applied",
    Outcome.CANCELLED: "Changes cancelled",
    Outcome.TIMED_OUT: "Changes cancelled (timeout)",
}


@dataclass
class PendingConfirmation:
    initiator_id: int
    members: List[Member]
    apply_fn: ApplyFn
    deadline: datetime.datetime


def describe(members: List[Member], footer: Optional[str] = None) -> str:
    lines = [f"This action will affect {len(members)} members:"]
    lines.append(", ".join(f"{m.mention} ({m.display_name})" for m in members))
    lines.append(footer if footer else INSTRUCTIONS)
    return "\n".join(lines)


class ConfirmationBroker:
    def __init__(self, ui: ReactionUI, timeout: float = DEFAULT_TIMEOUT):
        self.ui = ui
        self.timeout = timeout
        self.pending: Dict[int, PendingConfirmation] = {}
        self._seen: Set[int] = set()

    async def propose(self, title: str, members: List[Member], apply_fn: ApplyFn, initiator_id: int) -> Optional[Outcome]:
        """
        Ask ``initiator_id`` to confirm ``apply_fn`` for every member in ``members``.

        Returns ``None`` without posting anything when ``members`` is empty.
        """
        if not members:
            return None
        members = list(members)

        prompt = await self.ui.post(title, describe(members))
        message_id = self.ui.message_id(prompt)
        if message_id in self._seen:
            raise RuntimeError(f"confirmation prompt {message_id} was already used")
        self._seen.add(message_id)

        deadline = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(seconds=self.timeout)
        self.pending[message_id] = PendingConfirmation(initiator_id, members, apply_fn, deadline)

        try:
            await self.ui.add_reaction(prompt, REJECT_EMOJI)
            await self.ui.add_reaction(prompt, ACCEPT_EMOJI)

            def check(emoji: str, user_id: int) -> bool:
                return emoji in (REJECT_EMOJI, ACCEPT_EMOJI) and user_id == initiator_id

            try:
                emoji = await self.ui.await_reaction(prompt, check, self.timeout)
            except asyncio.TimeoutError:
                outcome = Outcome.TIMED_OUT
            else:
                outcome = Outcome.CONFIRMED if emoji == ACCEPT_EMOJI else Outcome.CANCELLED
        finally:
            entry = self.pending.pop(message_id, None)

        await self._finish(prompt, title, members, outcome)
        log.info("propose: '%s' -> %s (%d members)", title, outcome.value, len(members))

        if outcome is Outcome.CONFIRMED and entry is not None:
            await self._apply(title, entry)
        return outcome

    async def _finish(self, prompt, title: str, members: List[Member], outcome: Outcome) -> None:
        try:
            await self.ui.clear_reactions(prompt)
        except Exception:
            log.warning("propose: could not clear reactions on '%s'", title, exc_info=True)
        try:
            await self.ui.edit(prompt, title, describe(members, OUTCOME_FOOTERS[outcome]))
        except Exception:
            log.warning("propose: could not rewrite prompt '%s'", title, exc_info=True)

    async def _apply(self, title: str, entry: PendingConfirmation) -> None:
        results = await asyncio.gather(*(entry.apply_fn(m) for m in entry.members), return_exceptions=True)
        for member, result in zip(entry.members, results):
            if isinstance(result, BaseException):
                log.error("propose: '%s' failed for %s (%s): %r", title, member.display_name, member.id, result)
