import logging
from typing import Callable, Union

from starlette.concurrency import run_in_threadpool

from ..api.db_queries.proposals import ProposalStore
from ..api.util import normalize_address, utcnow
from ..exceptions import (
    NotFoundError,
    PowerError,
    SignatureError,
    ValidationError,
    WindowError,
)
from .power import VotingPowerService
from .signature import BallotVerifier
from .types import VoteMessage, VoteReceipt

_LOGGER = logging.getLogger(__name__)


def _message_field(message: Union[VoteMessage, dict], name: str, attr: str):
    if isinstance(message, VoteMessage):
        return getattr(message, attr)
    return message.get(name)


class VoteSubmission:
    """
    Accepts signed ballots and records at most one vote per voter and proposal
    """

    def __init__(
        self,
        store: ProposalStore,
        voting_power: VotingPowerService,
        verifier: BallotVerifier,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.voting_power = voting_power
        self.verifier = verifier
        self.clock = clock

    def _check_ballot(
        self,
        proposal_id: int,
        voter_address: str,
        choice: int,
        signature: str,
        message: Union[VoteMessage, dict],
    ):
        if not self.verifier.verify(message, signature, voter_address):
            raise SignatureError("Invalid signature")
        # the signature only vouches for what was signed
        signed = (
            _message_field(message, "proposalId", "proposal_id"),
            str(_message_field(message, "voter", "voter")).lower(),
            _message_field(message, "choice", "choice"),
        )
        if signed != (proposal_id, voter_address.lower(), choice):
            raise SignatureError("Signed ballot does not match the submitted vote")

    async def submit_vote(
        self,
        proposal_id: int,
        voter_address: str,
        choice: int,
        signature: str,
        message: Union[VoteMessage, dict],
    ) -> VoteReceipt:
        """
        Verify and record a vote, checks short-circuit in this order:
        signature, proposal existence, voting window, choice range, voting power.
        Re-submitting replaces the previous vote of the voter.
        :param proposal_id: proposal voted on
        :param voter_address: claimed voter
        :param choice: index into the options of the proposal
        :param signature: EIP-712 signature of message
        :param message: the signed ballot
        :return: receipt with the voting power the vote was recorded with
        """
        self._check_ballot(proposal_id, voter_address, choice, signature, message)
        voter_address = normalize_address(voter_address)

        # peewee blocks, store calls stay off the event loop
        proposal = await run_in_threadpool(self.store.get_proposal, proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal not found")

        now = self.clock()
        if now < proposal.voting_start:
            raise WindowError("Voting has not started", code="VotingNotStarted")
        if now > proposal.voting_end:
            raise WindowError("Voting has ended", code="VotingEnded")

        if not 0 <= choice < len(proposal.options):
            raise ValidationError("Invalid choice", code="InvalidChoice")

        power = await self.voting_power.get_voting_power(
            voter_address, proposal.snapshot_block
        )
        if power.total_power <= 0:
            raise PowerError("No voting power at snapshot")

        await run_in_threadpool(
            self.store.upsert_vote,
            proposal_id=proposal.id,
            voter_address=voter_address,
            choice=choice,
            voting_power=power.total_power,
            signature=signature,
            voted_at=now,
        )
        _LOGGER.info(
            f"Recorded vote of {voter_address} on proposal {proposal.id}: "
            f"choice {choice} with power {power.total_power}"
        )
        return VoteReceipt(success=True, voting_power=power.total_power)
