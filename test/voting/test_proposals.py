import datetime
import threading

import pytest

from ata_governance.exceptions import (
    AuthorizationError,
    InfrastructureError,
    ValidationError,
)
from ata_governance.voting.proposals import ProposalCreation


@pytest.fixture
def creation(store, position_source, admin, clock):
    return ProposalCreation(store, position_source, [admin.address], clock=clock)


async def create(creation, creator, **overrides):
    params = dict(
        title="Treasury allocation",
        description="How should the treasury be used?",
        options=["Buyback", "Grants"],
        category=None,
        creator=creator,
    )
    params.update(overrides)
    return await creation.create_proposal(**params)


@pytest.mark.asyncio
async def test_admin_creates_proposal(creation, store, admin, clock, position_source):
    proposal = await create(creation, admin.address)

    assert proposal.id is not None
    assert proposal.snapshot_block == position_source.height
    assert proposal.voting_start == clock.now
    assert proposal.voting_end == clock.now + datetime.timedelta(days=7)
    assert proposal.category == "general"
    assert proposal.created_by == admin.address
    stored = store.get_proposal(proposal.id)
    assert stored.options == ["Buyback", "Grants"]
    assert stored.title == "Treasury allocation"


@pytest.mark.asyncio
async def test_admin_check_ignores_case(creation, admin):
    proposal = await create(creation, admin.address.lower())
    assert proposal.created_by == admin.address


@pytest.mark.asyncio
async def test_voting_days(creation, admin, clock):
    proposal = await create(creation, admin.address, voting_days=3, category="dev")
    assert proposal.voting_end - proposal.voting_start == datetime.timedelta(
        seconds=3 * 86400
    )
    assert proposal.category == "dev"


@pytest.mark.asyncio
@pytest.mark.parametrize("creator", [None, "", "0x0000000000000000000000000000000000000001"])
async def test_non_admin_is_forbidden(creation, store, creator):
    with pytest.raises(AuthorizationError) as e:
        await create(creation, creator)
    assert e.value.status_code == 403
    assert store.list_proposals_with_votes() == []


@pytest.mark.asyncio
async def test_authorization_is_checked_before_payload(creation, voter):
    with pytest.raises(AuthorizationError):
        await create(creation, voter.address, title=None, options=["only"])


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"title": None},
        {"title": "   "},
        {"options": None},
        {"options": []},
        {"options": ["only one"]},
        {"options": ["yes", ""]},
        {"voting_days": 0},
        {"voting_days": -2},
        {"voting_days": 366},
    ],
)
async def test_invalid_proposal_is_rejected(creation, store, admin, overrides):
    with pytest.raises(ValidationError) as e:
        await create(creation, admin.address, **overrides)
    assert e.value.status_code == 400
    assert store.list_proposals_with_votes() == []


@pytest.mark.asyncio
async def test_chain_outage_blocks_creation(creation, store, admin, position_source):
    position_source.down = True
    with pytest.raises(InfrastructureError):
        await create(creation, admin.address)
    assert store.list_proposals_with_votes() == []


@pytest.mark.asyncio
async def test_store_is_written_off_the_event_loop(
    recording_store, store, position_source, admin, clock
):
    creation = ProposalCreation(
        recording_store, position_source, [admin.address], clock=clock
    )
    proposal = await create(creation, admin.address)

    assert [name for name, _ in recording_store.threads] == ["create_proposal"]
    assert recording_store.threads[0][1] != threading.get_ident()
    assert store.get_proposal(proposal.id).title == "Treasury allocation"
