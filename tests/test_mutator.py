import logging

import pytest

from conftest import FULL, JUNIOR, NEW, make_member

from promoter.models import RoleRef
from promoter.mutator import TierMutator

NEW_ROLE = RoleRef(id=NEW, name="New")
JUNIOR_ROLE = RoleRef(id=JUNIOR, name="Junior")
FULL_ROLE = RoleRef(id=FULL, name="Member")


@pytest.mark.asyncio
async def test_swap_adds_before_removing(roles):
    member = make_member(1, JUNIOR)
    assert await TierMutator(roles).swap(JUNIOR_ROLE, FULL_ROLE, member)
    assert roles.calls == [("add", 1, FULL), ("remove", 1, JUNIOR)]


@pytest.mark.asyncio
async def test_failed_add_keeps_old_role(roles, caplog):
    roles.fail.add(("add", 1, FULL))
    member = make_member(1, JUNIOR)
    with caplog.at_level(logging.ERROR, logger="promoter.mutator"):
        ok = await TierMutator(roles).swap(JUNIOR_ROLE, FULL_ROLE, member)
    assert not ok
    assert roles.calls == [("add", 1, FULL)]
    assert "error adding @Member (12)" in caplog.text


@pytest.mark.asyncio
async def test_failed_remove_after_add_reports_failure(roles):
    roles.fail.add(("remove", 1, NEW))
    member = make_member(1, NEW)
    ok = await TierMutator(roles).swap(NEW_ROLE, JUNIOR_ROLE, member)
    assert not ok
    # the new role was added, so the member is never left with neither
    assert roles.calls == [("add", 1, JUNIOR), ("remove", 1, NEW)]


@pytest.mark.asyncio
async def test_remove_failure_is_logged_not_raised(roles, caplog):
    roles.fail.add(("remove", 3, NEW))
    with caplog.at_level(logging.ERROR, logger="promoter.mutator"):
        ok = await TierMutator(roles).remove(NEW_ROLE, make_member(3, NEW, JUNIOR))
    assert not ok
    assert "error removing @New (10) from user3 (3)" in caplog.text


@pytest.mark.asyncio
async def test_remover_and_swapper_bind_roles(roles):
    mutator = TierMutator(roles)
    await mutator.remover(JUNIOR_ROLE)(make_member(1, JUNIOR, FULL))
    await mutator.swapper(NEW_ROLE, JUNIOR_ROLE)(make_member(2, NEW))
    assert roles.calls == [("remove", 1, JUNIOR), ("add", 2, JUNIOR), ("remove", 2, NEW)]
