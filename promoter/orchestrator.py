"""
Promotion run: validate config, scan the roster, verify activity, then ask
the operator to confirm each non-empty batch before any role is touched.
"""

import asyncio
import datetime
import logging
from typing import Callable, List, Optional, Tuple

from .activity import ActivityVerifier
from .confirm import DEFAULT_TIMEOUT, ConfirmationBroker
from .errors import ConfigurationError, ResolutionError, RetrievalError
from .interfaces import ConfigStore, Directory, MessageHistory, ReactionUI, RoleMutator
from .models import ChannelRef, Member, PromotionReport, PromotionStatus, RoleRef
from .mutator import TierMutator
from .scanner import classify
from .tiers import TierConfig

log = logging.getLogger(__name__)

ERROR_PREFIX = "***Something went wrong...***"
NOTHING_TO_DO = "All up-to-date, no changes required :)"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class PromotionOrchestrator:
    def __init__(
        self,
        directory: Directory,
        history: MessageHistory,
        config_store: ConfigStore,
        ui: ReactionUI,
        roles: RoleMutator,
        confirm_timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ):
        self.directory = directory
        self.config_store = config_store
        self.ui = ui
        self.clock = clock
        self.verifier = ActivityVerifier(history)
        self.broker = ConfirmationBroker(ui, timeout=confirm_timeout)
        self.mutator = TierMutator(roles)

    async def run_promotion(self, group: int, initiator: int, force_member: Optional[int] = None) -> PromotionReport:
        """
        Run one promotion pass for ``group`` on behalf of ``initiator``.

        Configuration and resolution problems are reported to the operator and
        returned as the report status. Retrieval failures are reported
        best-effort and re-raised as ``RetrievalError``. Returns once every
        proposal has been confirmed, cancelled or timed out.
        """
        config, problems = self._load_config(group)
        if config is None:
            for problem in problems:
                await self.ui.notify(problem)
            log.warning("run_promotion: guild %s not configured: %s", group, problems)
            return PromotionReport(PromotionStatus.CONFIGURATION_ERROR, problems=problems)

        log.info("run_promotion: guild %s new=%s junior=%s full=%s", group, config.new_role, config.junior_role, config.full_role)
        status = await self.ui.post("Calculating promotions...")

        try:
            try:
                new_role, junior_role, full_role, new_chat, junior_chat = await self._resolve(group, config)
            except ResolutionError as e:
                for problem in e.problems:
                    await self.ui.notify(f"{ERROR_PREFIX}\n{problem}")
                log.error("run_promotion: failed to resolve roles/channels: %s", e.problems)
                return PromotionReport(PromotionStatus.RESOLUTION_ERROR, problems=e.problems)

            roster = await self._fetch_roster(group)
            now = self.clock()
            bucket = classify(roster, config, now, exempt_member_id=force_member)
            exempt = (force_member,) if force_member is not None else ()
            cutoff = now - datetime.timedelta(days=config.new_message_max_age_days)

            if bucket.new_to_junior:
                await self._status(status, f"Checking #{new_chat.name} message counts to assess @{new_role.name} participation (>= {config.new_min_messages})")
                result = await self.verifier.verify(new_chat, bucket.new_to_junior, config.new_min_messages, cutoff, exempt)
                bucket.new_to_junior = result.passed

            if bucket.junior_to_full:
                await self._status(status, f"Checking #{junior_chat.name} message counts to assess @{junior_role.name} participation (>= {config.junior_min_messages})")
                result = await self.verifier.verify(junior_chat, bucket.junior_to_full, config.junior_min_messages, cutoff, exempt)
                bucket.junior_to_full = result.passed
        except RetrievalError as e:
            await self._best_effort_notify(f"{ERROR_PREFIX}\n{e}")
            raise
        finally:
            await self._cleanup(status)

        report = PromotionReport(PromotionStatus.PROPOSED, buckets=bucket, scanned=len(roster))
        if bucket.is_empty():
            report.status = PromotionStatus.NOTHING_TO_DO
            await self.ui.notify(NOTHING_TO_DO)
            log.info("run_promotion: nothing to do")
            return report

        proposals = [
            ("dangling_new", f"Cleaning up unneeded @{new_role.name} roles", bucket.dangling_new, self.mutator.remover(new_role)),
            ("dangling_junior", f"Cleaning up unneeded @{junior_role.name} roles", bucket.dangling_junior, self.mutator.remover(junior_role)),
            ("new_to_junior", f"Swapping @{new_role.name} role to @{junior_role.name}", bucket.new_to_junior, self.mutator.swapper(new_role, junior_role)),
            ("junior_to_full", f"Swapping @{junior_role.name} role to @{full_role.name}", bucket.junior_to_full, self.mutator.swapper(junior_role, full_role)),
        ]
        outcomes = await asyncio.gather(
            *(self.broker.propose(title, members, action, initiator) for _, title, members, action in proposals),
            return_exceptions=True,
        )
        for (name, title, _, _), outcome in zip(proposals, outcomes):
            if isinstance(outcome, BaseException):
                log.error("run_promotion: proposal '%s' failed: %r", title, outcome)
                report.outcomes[name] = None
            else:
                report.outcomes[name] = outcome

        log.info("run_promotion: %s", report.summary())
        return report

    def _load_config(self, group: int) -> Tuple[Optional[TierConfig], List[str]]:
        try:
            config = self.config_store.get_tier_config(group)
        except ConfigurationError as e:
            return None, e.problems
        if config is None:
            return None, ["promotion is not configured for this server"]
        return config, []

    async def _resolve(self, group: int, config: TierConfig) -> Tuple[RoleRef, RoleRef, RoleRef, ChannelRef, ChannelRef]:
        problems: List[str] = []

        async def role(role_id: int, name: str) -> Optional[RoleRef]:
            found = await self.directory.resolve_role(group, role_id)
            if found is None:
                problems.append(f"Failed to lookup {name} role ({role_id})")
            return found

        async def channel(channel_id: int, name: str) -> Optional[ChannelRef]:
            found = await self.directory.resolve_channel(group, channel_id)
            if found is None:
                problems.append(f"Failed to lookup {name} channel ({channel_id})")
            return found

        resolved = (
            await role(config.new_role, "new_role"),
            await role(config.junior_role, "junior_role"),
            await role(config.full_role, "full_role"),
            await channel(config.new_chat_channel, "new_chat_channel"),
            await channel(config.junior_chat_channel, "junior_chat_channel"),
        )
        if problems:
            raise ResolutionError(problems)
        return resolved

    async def _fetch_roster(self, group: int) -> List[Member]:
        try:
            return await self.directory.fetch_roster(group)
        except Exception as exc:
            log.exception("run_promotion: fetching roster for guild %s failed", group)
            raise RetrievalError(f"Could not fetch the member list: {exc}") from exc

    async def _status(self, status, text: str) -> None:
        try:
            await self.ui.edit(status, text)
        except Exception:
            log.warning("run_promotion: could not update status message", exc_info=True)

    async def _cleanup(self, status) -> None:
        try:
            await self.ui.delete(status)
        except Exception:
            log.warning("run_promotion: could not delete status message", exc_info=True)

    async def _best_effort_notify(self, text: str) -> None:
        try:
            await self.ui.notify(text)
        except Exception:
            log.warning("run_promotion: could not report error to operator", exc_info=True)
