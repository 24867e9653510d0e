from ..util import utcnow
from .db import *


class Proposal(BaseModel):
    """
    A governance proposal, voting power of all its votes is read at snapshot_block
    """

    title = CharField(max_length=256)
    description = TextField(default="")
    options = JSONListField()
    category = CharField(max_length=50, default="general")
    created_by = EvmAddress()
    snapshot_block = BigIntegerField()
    voting_start = DateTimeField()
    voting_end = DateTimeField()
    created_at = DateTimeField(default=utcnow, index=True)


class Vote(BaseModel):
    """
    The vote of a wallet on a proposal, re-voting overwrites the previous vote
    """

    proposal = ForeignKeyField(Proposal, backref="votes", on_delete="CASCADE")
    voter_address = EvmAddress()
    choice = IntegerField()
    voting_power = BigUIntField()
    signature = TextField()
    voted_at = DateTimeField()

    class Meta:
        indexes = ((("proposal", "voter_address"), True),)
