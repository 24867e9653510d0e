import datetime
from typing import Iterable

from ...voting.results import aggregate_results
from ..db_models import Proposal, Vote
from ..util import to_iso


def serialize_proposal(proposal: Proposal) -> dict:
    """
    Serialize a proposal row
    :param proposal: The proposal
    :return: A json compatible dict
    """
    return {
        "id": proposal.id,
        "title": proposal.title,
        "description": proposal.description,
        "options": proposal.options,
        "category": proposal.category,
        "created_by": proposal.created_by,
        "snapshot_block": proposal.snapshot_block,
        "voting_start": to_iso(proposal.voting_start),
        "voting_end": to_iso(proposal.voting_end),
        "created_at": to_iso(proposal.created_at),
    }


def serialize_vote(vote: Vote) -> dict:
    return {
        "proposal_id": vote.proposal_id,
        "voter_address": vote.voter_address,
        "choice": vote.choice,
        "voting_power": vote.voting_power,
        "signature": vote.signature,
        "voted_at": to_iso(vote.voted_at),
    }


def serialize_proposal_with_results(
    proposal: Proposal, votes: Iterable[Vote], now: datetime.datetime
) -> dict:
    """
    Serialize a proposal together with its votes and the tally of the votes
    :param proposal: The proposal
    :param votes: All votes recorded for the proposal
    :param now: Time the status is derived for
    :return: A json compatible dict, summed power per option as decimal strings
    """
    votes = list(votes)
    tally = aggregate_results(
        len(proposal.options),
        ({"choice": v.choice, "voting_power": v.voting_power} for v in votes),
        proposal.voting_end,
        now,
    )
    return {
        **serialize_proposal(proposal),
        "votes": [
            {
                "voter_address": v.voter_address,
                "choice": v.choice,
                "voting_power": v.voting_power,
            }
            for v in votes
        ],
        "results": [str(r) for r in tally.results],
        "totalVotes": tally.total_votes,
        "status": tally.status,
    }
