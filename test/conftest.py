import datetime
import threading
from typing import Dict, List, Optional

import pytest
from eth_account import Account

from ata_governance.api.db_models import connect_database
from ata_governance.api.db_queries.proposals import ProposalStore
from ata_governance.api.util import normalize_address
from ata_governance.exceptions import InfrastructureError
from ata_governance.voting.signature import BallotVerifier, create_vote_message
from ata_governance.voting.types import Position

VOTER_KEY = "0x" + "11" * 32
OTHER_KEY = "0x" + "22" * 32
ADMIN_KEY = "0x" + "33" * 32

START = datetime.datetime(2026, 1, 1, 12, 0, 0)
SNAPSHOT_BLOCK = 1_000_000
CURRENT_BLOCK = 1_000_500


class FakeClock:
    def __init__(self, now: datetime.datetime = START):
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += datetime.timedelta(seconds=seconds)


class FakePositionSource:
    """
    In memory staking contract, counts how often it was asked
    """

    def __init__(self, height: int = CURRENT_BLOCK):
        self.height = height
        self.positions: Dict[str, List[Position]] = {}
        self.calls = []
        self.down = False

    def set_positions(self, address: str, positions: List[Position]):
        self.positions[normalize_address(address)] = positions

    async def get_positions(
        self, address: str, block_number: Optional[int] = None
    ) -> List[Position]:
        self.calls.append((address, block_number))
        if self.down:
            raise InfrastructureError("rpc down")
        return list(self.positions.get(address, []))

    async def block_number(self) -> int:
        if self.down:
            raise InfrastructureError("rpc down")
        return self.height


class ThreadRecordingStore:
    """
    Passes calls through to a store and remembers the thread each ran on
    """

    def __init__(self, store: ProposalStore):
        self.store = store
        self.threads = []

    def __getattr__(self, name):
        method = getattr(self.store, name)

        def call(*args, **kwargs):
            self.threads.append((name, threading.get_ident()))
            return method(*args, **kwargs)

        return call


@pytest.fixture
def voter():
    return Account.from_key(VOTER_KEY)


@pytest.fixture
def other_voter():
    return Account.from_key(OTHER_KEY)


@pytest.fixture
def admin():
    return Account.from_key(ADMIN_KEY)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def position_source():
    return FakePositionSource()


@pytest.fixture
def verifier():
    return BallotVerifier()


@pytest.fixture
def store(tmp_path):
    store = ProposalStore(connect_database(f"sqlite:///{tmp_path / 'governance.db'}"))
    store.create_tables()
    yield store
    store.database.close()


@pytest.fixture
def proposal(store, clock):
    """
    A three option proposal whose voting window opens now and lasts 7 days
    """
    return store.create_proposal(
        title="Which feature should we prioritize next?",
        description="Vote on the next major feature",
        options=["Mobile App", "Advanced Analytics", "Social Features"],
        category="development",
        created_by=Account.from_key(ADMIN_KEY).address,
        snapshot_block=SNAPSHOT_BLOCK,
        voting_start=clock.now,
        voting_end=clock.now + datetime.timedelta(days=7),
        created_at=clock.now,
    )


@pytest.fixture
def sign_ballot(verifier):
    """
    Sign a ballot like a wallet would, returns (message, signature)
    """

    def _sign(account, proposal_id: int, choice: int, timestamp: int = 1767268800):
        message = create_vote_message(
            proposal_id, account.address, choice, timestamp=timestamp
        ).to_typed_data()
        return message, verifier.sign(message, account.key)

    return _sign


@pytest.fixture
def recording_store(store):
    return ThreadRecordingStore(store)
