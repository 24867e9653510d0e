"""
Read access to the staking contract.
The positions of a wallet at a given block determine its voting power, the current
block height becomes the snapshot block of new proposals.
"""
import asyncio
import logging
from typing import List, Optional, Protocol

import aiohttp
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from ..exceptions import InfrastructureError
from ..voting.types import Position
from .config import Settings

_LOGGER = logging.getLogger(__name__)

# the parts of the staked token abi that are needed to reconstruct lock positions
STAKED_TOKEN_ABI = [
    {
        "name": "numPositions",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "getPositions",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "user", "type": "address"},
            {"name": "start", "type": "uint256"},
            {"name": "end", "type": "uint256"},
        ],
        "outputs": [
            {
                "name": "",
                "type": "tuple[]",
                "components": [
                    {"name": "amount", "type": "uint256"},
                    {"name": "start", "type": "uint256"},
                    {"name": "end", "type": "uint256"},
                    {"name": "numWeeks", "type": "uint16"},
                    {"name": "autoRenew", "type": "bool"},
                    {"name": "id", "type": "uint256"},
                ],
            }
        ],
    },
]

# errors that mean "the chain could not be asked", everything else is a bug
CHAIN_ERRORS = (
    Web3Exception,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    ConnectionError,
    ValueError,
)


class PositionSource(Protocol):
    async def get_positions(
        self, address: str, block_number: Optional[int] = None
    ) -> List[Position]:
        ...

    async def block_number(self) -> int:
        ...


class UnconfiguredPositionSource:
    """
    Stand-in when no rpc url or contract is configured, every lookup fails as unavailable
    """

    async def get_positions(
        self, address: str, block_number: Optional[int] = None
    ) -> List[Position]:
        raise InfrastructureError("No RPC endpoint configured")

    async def block_number(self) -> int:
        raise InfrastructureError("No RPC endpoint configured")


class Web3PositionSource:
    def __init__(self, rpc_url: str, contract_address: str, timeout: float = 10.0):
        self.timeout = timeout
        self.w3 = AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": timeout})
        )
        self.contract = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(contract_address),
            abi=STAKED_TOKEN_ABI,
        )

    async def _call(self, awaitable, what: str):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except CHAIN_ERRORS as e:
            _LOGGER.warning(f"Chain query {what} failed: {e!r}")
            raise InfrastructureError(f"Chain query {what} failed") from e

    async def block_number(self) -> int:
        return await self._call(self.w3.eth.block_number, "block_number")

    async def get_positions(
        self, address: str, block_number: Optional[int] = None
    ) -> List[Position]:
        """
        Fetch all lock positions of an address
        :param address: checksummed wallet address
        :param block_number: historical block to read, latest if None
        :return: positions in contract order
        """
        block = block_number if block_number is not None else "latest"
        num_positions = await self._call(
            self.contract.functions.numPositions(address).call(block_identifier=block),
            "numPositions",
        )
        if num_positions == 0:
            return []
        raw_positions = await self._call(
            self.contract.functions.getPositions(address, 0, num_positions).call(
                block_identifier=block
            ),
            "getPositions",
        )
        return [
            Position(
                amount=int(amount),
                lock_duration_weeks=int(num_weeks),
                start=int(start),
                end=int(end),
            )
            for amount, start, end, num_weeks, _auto_renew, _id in raw_positions
        ]


def build_position_source(settings: Settings) -> PositionSource:
    if not settings.rpc_url or not settings.staking_contract_address:
        _LOGGER.warning(
            "No RPC url or staking contract configured, voting power will be zero"
        )
        return UnconfiguredPositionSource()
    return Web3PositionSource(
        settings.rpc_url,
        settings.staking_contract_address,
        timeout=settings.rpc_timeout,
    )
