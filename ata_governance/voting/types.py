import dataclasses
from typing import List, Optional

# multipliers are fixed point integers with 4 decimals
MULTIPLIER_SCALE = 10000


@dataclasses.dataclass(frozen=True)
class Position:
    """
    A lock position in the staking contract, amounts in the smallest token unit
    """

    amount: int
    lock_duration_weeks: int
    start: int
    end: int


@dataclasses.dataclass(frozen=True)
class PowerBreakdown:
    amount: int
    weeks: int
    # scaled by MULTIPLIER_SCALE
    multiplier: int
    power: int

    def to_dict(self) -> dict:
        return {
            "amount": str(self.amount),
            "weeks": self.weeks,
            "multiplier": self.multiplier / MULTIPLIER_SCALE,
            "power": str(self.power),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PowerBreakdown":
        return cls(
            amount=int(d["amount"]),
            weeks=int(d["weeks"]),
            multiplier=round(float(d["multiplier"]) * MULTIPLIER_SCALE),
            power=int(d["power"]),
        )


@dataclasses.dataclass(frozen=True)
class VotingPower:
    """
    Voting weight of an address derived from its lock positions at a block.
    Token amounts may exceed 64 bit, so they are exchanged as decimal strings.
    """

    address: str
    total_power: int
    breakdown: List[PowerBreakdown]
    block_number: int

    def to_dict(self) -> dict:
        return {
            "totalPower": str(self.total_power),
            "breakdown": [b.to_dict() for b in self.breakdown],
            "address": self.address,
            "blockNumber": self.block_number,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "VotingPower":
        return cls(
            address=d["address"],
            total_power=int(d["totalPower"]),
            breakdown=[PowerBreakdown.from_dict(b) for b in d["breakdown"]],
            block_number=int(d["blockNumber"]),
        )

    @classmethod
    def zero(cls, address: str, block_number: Optional[int] = None) -> "VotingPower":
        return cls(
            address=address,
            total_power=0,
            breakdown=[],
            block_number=block_number or 0,
        )


@dataclasses.dataclass(frozen=True)
class VoteMessage:
    """
    The typed ballot a voter signs
    """

    proposal_id: int
    voter: str
    choice: int
    timestamp: int

    def to_typed_data(self) -> dict:
        return {
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "choice": self.choice,
            "timestamp": self.timestamp,
        }


@dataclasses.dataclass(frozen=True)
class VoteReceipt:
    success: bool
    voting_power: int

    def to_dict(self) -> dict:
        return {"success": self.success, "votingPower": str(self.voting_power)}


@dataclasses.dataclass(frozen=True)
class ProposalResults:
    results: List[int]
    total_votes: int
    status: str
