import datetime
import logging
from typing import Iterable, Optional

from .models import ActionBucket, Member
from .tiers import TierConfig

log = logging.getLogger(__name__)

# default role + new role; anything beyond means self-assigned roles were picked
NEW_MEMBER_BASE_ROLES = 2


def classify(
    members: Iterable[Member],
    config: TierConfig,
    now: datetime.datetime,
    exempt_member_id: Optional[int] = None,
) -> ActionBucket:
    """
    Partition the roster into cleanup and promotion-candidate lists.

    Dangling roles are cleaned up before anything else: a member placed in a
    dangling list is never also a promotion candidate in the same pass.
    ``exempt_member_id`` skips the role-count and minimum-age tests for one
    member (force upgrade) but never the dangling checks.
    """
    bucket = ActionBucket()
    junior_cutoff = now - datetime.timedelta(days=config.junior_min_age_days)

    for member in members:
        if member.bot:
            continue
        is_new = member.has_role(config.new_role)
        is_junior = member.has_role(config.junior_role)
        is_full = member.has_role(config.full_role)
        exempt = exempt_member_id is not None and member.id == exempt_member_id

        if is_full and is_junior:
            bucket.dangling_junior.append(member)
            continue
        if is_new and (is_junior or is_full):
            bucket.dangling_new.append(member)
            continue

        if is_new:
            if exempt or len(member.role_ids) > NEW_MEMBER_BASE_ROLES:
                bucket.new_to_junior.append(member)
            else:
                log.debug("classify: %s (%s) has not picked any roles yet", member.display_name, member.id)
        elif is_junior:
            # unknown join date counts as old enough
            if exempt or member.joined_at is None or member.joined_at < junior_cutoff:
                bucket.junior_to_full.append(member)
            else:
                log.debug("classify: %s (%s) has not been a member long enough", member.display_name, member.id)

    log.info("classify: buckets %s", bucket.counts())
    return bucket
