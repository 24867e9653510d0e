"""
Voting power of a wallet, derived from its lock positions in the staking contract.

Longer locks weigh more: each position contributes its amount times a multiplier
that depends on the lock duration. Multipliers are fixed point integers with
four decimals so that weighting never goes through floating point.
"""
import logging
from typing import Iterable, Optional, Union

from ..api.util import normalize_address
from ..exceptions import InfrastructureError, ValidationError
from .cache import NoCache, VotingPowerCache
from .types import MULTIPLIER_SCALE, Position, PowerBreakdown, VotingPower

_LOGGER = logging.getLogger(__name__)

# (minimum lock weeks, scaled multiplier), highest matching tier wins
MULTIPLIER_TIERS = (
    (12, 20000),
    (8, 15000),
    (4, 12500),
    (0, 10000),
)

DEFAULT_CACHE_TTL = 300


def multiplier_for_weeks(weeks: int) -> int:
    """
    Scaled multiplier for a lock duration, e.g. 12 weeks -> 20000 (x2.0)
    """
    for min_weeks, multiplier in MULTIPLIER_TIERS:
        if weeks >= min_weeks:
            return multiplier
    return MULTIPLIER_SCALE


def calculate_voting_power(
    address: str, positions: Iterable[Position], block_number: int
) -> VotingPower:
    """
    Weight every position by its duration tier and sum up
    :param address: owner of the positions
    :param positions: lock positions read at block_number
    :param block_number: block the positions were read at
    :return: total power and per position breakdown
    """
    breakdown = []
    for position in positions:
        multiplier = multiplier_for_weeks(position.lock_duration_weeks)
        breakdown.append(
            PowerBreakdown(
                amount=position.amount,
                weeks=position.lock_duration_weeks,
                multiplier=multiplier,
                power=position.amount * multiplier // MULTIPLIER_SCALE,
            )
        )
    return VotingPower(
        address=address,
        total_power=sum(b.power for b in breakdown),
        breakdown=breakdown,
        block_number=block_number,
    )


class VotingPowerService:
    """
    Looks up voting power through the cache and computes it from the position
    source on a miss. Chain failures degrade to zero power instead of raising.
    """

    def __init__(
        self,
        position_source,
        cache: Union[VotingPowerCache, NoCache] = None,
        latest_ttl: int = DEFAULT_CACHE_TTL,
        historical_ttl: int = DEFAULT_CACHE_TTL,
    ):
        self.position_source = position_source
        self.cache = cache if cache is not None else NoCache()
        self.latest_ttl = latest_ttl
        self.historical_ttl = historical_ttl

    async def get_voting_power(
        self, address: str, block_number: Optional[int] = None
    ) -> VotingPower:
        try:
            address = normalize_address(address)
        except ValidationError:
            _LOGGER.info(f"Voting power requested for invalid address {address!r}")
            return VotingPower.zero(address, block_number)

        cached = await self.cache.get(address, block_number)
        if cached is not None:
            return cached

        try:
            # pin latest lookups to one block so positions and block number agree
            block = (
                block_number
                if block_number is not None
                else await self.position_source.block_number()
            )
            positions = await self.position_source.get_positions(address, block)
        except InfrastructureError as e:
            _LOGGER.warning(f"Could not compute voting power of {address}: {e}")
            return VotingPower.zero(address, block_number)

        power = calculate_voting_power(address, positions, block)
        ttl = self.latest_ttl if block_number is None else self.historical_ttl
        await self.cache.put(address, block_number, power, ttl)
        return power

    async def invalidate(self, address: str) -> None:
        await self.cache.invalidate(normalize_address(address))
