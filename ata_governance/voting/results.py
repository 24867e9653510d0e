import datetime
import logging
from typing import Iterable

from .types import ProposalResults

_LOGGER = logging.getLogger(__name__)

STATUS_ACTIVE = "active"
STATUS_ENDED = "ended"


def proposal_status(voting_end: datetime.datetime, now: datetime.datetime) -> str:
    return STATUS_ACTIVE if now < voting_end else STATUS_ENDED


def aggregate_results(
    options_count: int,
    votes: Iterable[dict],
    voting_end: datetime.datetime,
    now: datetime.datetime,
) -> ProposalResults:
    """
    Fold the recorded votes of a proposal into per option tallies
    :param options_count: number of options of the proposal
    :param votes: dicts with at least "choice" and "voting_power"
    :param voting_end: end of the voting window
    :param now: time to derive the status for
    :return: summed power per option (index aligned), number of votes, status
    """
    results = [0] * options_count
    total_votes = 0
    for vote in votes:
        total_votes += 1
        choice = vote["choice"]
        if not 0 <= choice < options_count:
            _LOGGER.warning(f"Ignoring vote with out of range choice {choice}")
            continue
        results[choice] += int(vote["voting_power"])
    return ProposalResults(
        results=results,
        total_votes=total_votes,
        status=proposal_status(voting_end, now),
    )
