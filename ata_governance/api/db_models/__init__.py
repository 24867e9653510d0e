from .db import BaseModel, connect_database
from .voting import Proposal, Vote

MODELS = [Proposal, Vote]
