"""
EIP-712 typed-data ballots.

Voters sign a ``Vote`` struct with their wallet, the API recovers the signer and
only accepts the ballot if it was signed by the claimed voter.
"""
import logging
import time
from typing import Optional, Union

from eth_account import Account
from eth_account.messages import encode_typed_data

from .types import VoteMessage

_LOGGER = logging.getLogger(__name__)

DOMAIN_NAME = "ATA Voting"
DOMAIN_VERSION = "1"
CHAIN_ID = 8453

VOTE_TYPES = {
    "Vote": [
        {"name": "proposalId", "type": "uint256"},
        {"name": "voter", "type": "address"},
        {"name": "choice", "type": "uint256"},
        {"name": "timestamp", "type": "uint256"},
    ],
}


def create_vote_message(
    proposal_id: int, voter: str, choice: int, timestamp: Optional[int] = None
) -> VoteMessage:
    """
    Build the ballot for a vote, stamped with the current time by default
    """
    return VoteMessage(
        proposal_id=proposal_id,
        voter=voter,
        choice=choice,
        timestamp=int(time.time()) if timestamp is None else timestamp,
    )


def _as_typed_message(message: Union[VoteMessage, dict]) -> dict:
    if isinstance(message, VoteMessage):
        return message.to_typed_data()
    return {field["name"]: message[field["name"]] for field in VOTE_TYPES["Vote"]}


class BallotVerifier:
    def __init__(
        self,
        name: str = DOMAIN_NAME,
        version: str = DOMAIN_VERSION,
        chain_id: int = CHAIN_ID,
    ):
        self.domain = {"name": name, "version": version, "chainId": chain_id}

    def encode(self, message: Union[VoteMessage, dict]):
        return encode_typed_data(
            domain_data=self.domain,
            message_types=VOTE_TYPES,
            message_data=_as_typed_message(message),
        )

    def recover(self, message: Union[VoteMessage, dict], signature: str) -> str:
        return Account.recover_message(self.encode(message), signature=signature)

    def verify(
        self, message: Union[VoteMessage, dict], signature: str, claimed_address: str
    ) -> bool:
        """
        Check that the ballot was signed by the claimed address.
        Malformed messages or signatures are an ordinary negative outcome.
        :param message: the signed ballot
        :param signature: 65 byte hex encoded signature
        :param claimed_address: address the caller claims to vote as
        :return: True iff the recovered signer equals the claimed address
        """
        try:
            recovered = self.recover(message, signature)
        except Exception as e:
            _LOGGER.info(f"Signature verification failed: {e!r}")
            return False
        return recovered.lower() == str(claimed_address).lower()

    def sign(self, message: Union[VoteMessage, dict], private_key) -> str:
        """
        Sign a ballot the way a wallet's signTypedData does
        :return: hex encoded signature
        """
        signed = Account.sign_message(self.encode(message), private_key=private_key)
        return "0x" + signed.signature.hex().removeprefix("0x")
