import pytest

from ata_governance.voting.signature import (
    CHAIN_ID,
    BallotVerifier,
    create_vote_message,
)
from ata_governance.voting.types import VoteMessage


def test_domain_defaults(verifier):
    assert verifier.domain == {"name": "ATA Voting", "version": "1", "chainId": 8453}
    assert CHAIN_ID == 8453


def test_create_vote_message_stamps_time():
    message = create_vote_message(3, "0xAb", 1)
    assert message.proposal_id == 3
    assert message.choice == 1
    assert message.timestamp > 1_600_000_000
    assert create_vote_message(3, "0xAb", 1, timestamp=5).timestamp == 5


def test_signed_ballot_verifies(verifier, voter, sign_ballot):
    message, signature = sign_ballot(voter, 1, 2)
    assert verifier.verify(message, signature, voter.address)
    assert verifier.recover(message, signature) == voter.address


@pytest.mark.parametrize("casing", [str.lower, lambda a: "0x" + a[2:].upper()])
def test_claimed_address_is_case_insensitive(verifier, voter, sign_ballot, casing):
    message, signature = sign_ballot(voter, 1, 0)
    assert verifier.verify(message, signature, casing(voter.address))


def test_dataclass_and_dict_messages_are_equivalent(verifier, voter):
    message = VoteMessage(proposal_id=4, voter=voter.address, choice=1, timestamp=99)
    signature = verifier.sign(message, voter.key)
    assert verifier.verify(message.to_typed_data(), signature, voter.address)


def test_other_signer_is_rejected(verifier, voter, other_voter, sign_ballot):
    message, signature = sign_ballot(other_voter, 1, 0)
    message["voter"] = voter.address
    assert not verifier.verify(message, signature, voter.address)


@pytest.mark.parametrize(
    "field,value", [("proposalId", 2), ("choice", 1), ("timestamp", 1)]
)
def test_altered_ballot_is_rejected(verifier, voter, sign_ballot, field, value):
    message, signature = sign_ballot(voter, 1, 0)
    message[field] = value
    assert not verifier.verify(message, signature, voter.address)


def test_altered_voter_is_rejected(verifier, voter, other_voter, sign_ballot):
    message, signature = sign_ballot(voter, 1, 0)
    message["voter"] = other_voter.address
    assert not verifier.verify(message, signature, voter.address)


def test_wrong_domain_is_rejected(voter):
    mainnet = BallotVerifier(chain_id=1)
    base = BallotVerifier()
    message = create_vote_message(1, voter.address, 0, timestamp=10)
    signature = mainnet.sign(message, voter.key)
    assert mainnet.verify(message, signature, voter.address)
    assert not base.verify(message, signature, voter.address)
    renamed = BallotVerifier(name="Other Voting")
    assert not renamed.verify(message, base.sign(message, voter.key), voter.address)


@pytest.mark.parametrize(
    "signature", ["", "0x", "0x1234", "not hex", "0x" + "00" * 65, None]
)
def test_malformed_signature_is_false(verifier, voter, signature):
    message = create_vote_message(1, voter.address, 0, timestamp=10)
    assert verifier.verify(message, signature, voter.address) is False


def test_malformed_message_is_false(verifier, voter, sign_ballot):
    message, signature = sign_ballot(voter, 1, 0)
    del message["timestamp"]
    assert verifier.verify(message, signature, voter.address) is False
    assert verifier.verify({**message, "timestamp": -1}, signature, voter.address) is False
    assert verifier.verify(
        {**message, "timestamp": 10, "voter": "0x1234"}, signature, voter.address
    ) is False
