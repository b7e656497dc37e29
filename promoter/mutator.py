import logging

from .interfaces import RoleMutator
from .models import Member, RoleRef

log = logging.getLogger(__name__)


class TierMutator:
    """Best-effort role changes; failures are logged per member and never raised."""

    def __init__(self, roles: RoleMutator):
        self.roles = roles

    async def remove(self, role: RoleRef, member: Member) -> bool:
        log.info("remove: removing @%s from %s...", role.name, member.display_name)
        try:
            await self.roles.remove_role(member, role)
        except Exception as e:
            log.error("remove: error removing @%s (%s) from %s (%s): %r", role.name, role.id, member.display_name, member.id, e)
            return False
        log.info("remove:   ...done removing @%s from %s", role.name, member.display_name)
        return True

    async def swap(self, remove_role: RoleRef, add_role: RoleRef, member: Member) -> bool:
        """Add ``add_role`` and, only once that succeeded, remove ``remove_role``."""
        log.info("swap: swapping @%s to @%s for %s...", remove_role.name, add_role.name, member.display_name)
        try:
            await self.roles.add_role(member, add_role)
        except Exception as e:
            log.error("swap: error adding @%s (%s) to %s (%s): %r", add_role.name, add_role.id, member.display_name, member.id, e)
            return False
        try:
            await self.roles.remove_role(member, remove_role)
        except Exception as e:
            log.error("swap: error removing @%s (%s) from %s (%s): %r", remove_role.name, remove_role.id, member.display_name, member.id, e)
            return False
        log.info("swap:   ...done swapping @%s to @%s for %s", remove_role.name, add_role.name, member.display_name)
        return True

    def remover(self, role: RoleRef):
        async def apply(member: Member) -> bool:
            return await self.remove(role, member)
        return apply

    def swapper(self, remove_role: RoleRef, add_role: RoleRef):
        async def apply(member: Member) -> bool:
            return await self.swap(remove_role, add_role, member)
        return apply
