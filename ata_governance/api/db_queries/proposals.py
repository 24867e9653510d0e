import datetime
import functools
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

import peewee

from ...exceptions import InfrastructureError
from ..db_models import MODELS, Proposal, Vote
from ..util import utcnow

_LOGGER = logging.getLogger(__name__)

# errors meaning the database could not be used at all
CONNECTION_ERRORS = (peewee.OperationalError, peewee.InterfaceError)


def _translate_errors(f):
    """
    Run a store method against the database of the store.
    Connection failures of the database surface as InfrastructureError
    """

    @functools.wraps(f)
    def wrapper(self: "ProposalStore", *args, **kwargs):
        try:
            with self.database.bind_ctx(MODELS):
                return f(self, *args, **kwargs)
        except CONNECTION_ERRORS as e:
            _LOGGER.warning(f"Database query {f.__name__} failed: {e!r}")
            raise InfrastructureError("Database unavailable") from e

    return wrapper


class ProposalStore:
    """
    Persistent proposals and their votes
    """

    def __init__(self, database: peewee.Database):
        self.database = database
        # the models are declared without database, every query binds them to the
        # one of the store. The initial bind makes concurrent bind_ctx exits restore
        # a usable database instead of none.
        database.bind(MODELS)

    @_translate_errors
    def create_tables(self):
        self.database.create_tables(MODELS, safe=True)

    @_translate_errors
    def ping(self) -> bool:
        self.database.execute_sql("SELECT 1")
        return True

    @_translate_errors
    def create_proposal(
        self,
        title: str,
        description: str,
        options: List[str],
        category: str,
        created_by: str,
        snapshot_block: int,
        voting_start: datetime.datetime,
        voting_end: datetime.datetime,
        created_at: Optional[datetime.datetime] = None,
    ) -> Proposal:
        return Proposal.create(
            title=title,
            description=description,
            options=options,
            category=category,
            created_by=created_by,
            snapshot_block=snapshot_block,
            voting_start=voting_start,
            voting_end=voting_end,
            created_at=created_at or utcnow(),
        )

    @_translate_errors
    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        return Proposal.get_or_none(Proposal.id == proposal_id)

    @_translate_errors
    def get_votes(self, proposal_id: int) -> List[Vote]:
        return list(
            Vote.select().where(Vote.proposal == proposal_id).order_by(Vote.voted_at)
        )

    @_translate_errors
    def get_proposal_with_votes(
        self, proposal_id: int
    ) -> Optional[Tuple[Proposal, List[Vote]]]:
        proposal = self.get_proposal(proposal_id)
        if proposal is None:
            return None
        return proposal, self.get_votes(proposal_id)

    @_translate_errors
    def list_proposals_with_votes(self) -> List[Tuple[Proposal, List[Vote]]]:
        """
        All proposals, newest first, each with its recorded votes
        """
        proposals = list(
            Proposal.select().order_by(Proposal.created_at.desc(), Proposal.id.desc())
        )
        votes: Dict[int, List[Vote]] = defaultdict(list)
        if proposals:
            for vote in (
                Vote.select()
                .where(Vote.proposal.in_([p.id for p in proposals]))
                .order_by(Vote.voted_at)
            ):
                votes[vote.proposal_id].append(vote)
        return [(p, votes[p.id]) for p in proposals]

    @_translate_errors
    def upsert_vote(
        self,
        proposal_id: int,
        voter_address: str,
        choice: int,
        voting_power: int,
        signature: str,
        voted_at: datetime.datetime,
    ):
        """
        Record a vote in one statement: insert it, or overwrite the previous vote
        of the same voter on the same proposal
        """
        Vote.insert(
            proposal=proposal_id,
            voter_address=voter_address,
            choice=choice,
            voting_power=str(voting_power),
            signature=signature,
            voted_at=voted_at,
        ).on_conflict(
            conflict_target=[Vote.proposal, Vote.voter_address],
            preserve=[Vote.choice, Vote.voting_power, Vote.signature, Vote.voted_at],
        ).execute()

    @_translate_errors
    def get_vote(self, proposal_id: int, voter_address: str) -> Optional[Vote]:
        return Vote.get_or_none(
            (Vote.proposal == proposal_id) & (Vote.voter_address == voter_address)
        )

    @_translate_errors
    def has_voted(self, proposal_id: int, voter_address: str) -> bool:
        return (
            Vote.select()
            .where(
                (Vote.proposal == proposal_id) & (Vote.voter_address == voter_address)
            )
            .exists()
        )

    @_translate_errors
    def count_votes(self, proposal_id: int) -> int:
        return Vote.select().where(Vote.proposal == proposal_id).count()
