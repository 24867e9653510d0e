import datetime
import logging
from typing import Callable, Iterable, List, Optional

from starlette.concurrency import run_in_threadpool

from ..api.db_models import Proposal
from ..api.db_queries.proposals import ProposalStore
from ..api.util import normalize_address, utcnow
from ..exceptions import AuthorizationError, ValidationError

_LOGGER = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
DEFAULT_CATEGORY = "general"


class ProposalCreation:
    """
    Creates proposals on behalf of the allow-listed admins.
    The current block height is fixed as snapshot, votes are weighted by the
    stake at that block even if positions change later.
    """

    def __init__(
        self,
        store: ProposalStore,
        position_source,
        admin_addresses: Iterable[str],
        clock: Callable = utcnow,
        default_voting_days: int = 7,
        max_voting_days: int = 365,
    ):
        self.store = store
        self.position_source = position_source
        self.admin_addresses = {a.lower() for a in admin_addresses}
        self.clock = clock
        self.default_voting_days = default_voting_days
        self.max_voting_days = max_voting_days

    def is_admin(self, address: Optional[str]) -> bool:
        return bool(address) and address.lower() in self.admin_addresses

    def _voting_days(self, voting_days) -> int:
        if voting_days is None:
            return self.default_voting_days
        if isinstance(voting_days, bool) or not isinstance(voting_days, int):
            raise ValidationError("votingDays must be an integer", code="InvalidProposal")
        if not 0 < voting_days <= self.max_voting_days:
            raise ValidationError(
                f"votingDays must be between 1 and {self.max_voting_days}",
                code="InvalidProposal",
            )
        return voting_days

    async def create_proposal(
        self,
        title: Optional[str],
        description: Optional[str],
        options: Optional[List[str]],
        category: Optional[str],
        creator: Optional[str],
        voting_days: Optional[int] = None,
    ) -> Proposal:
        if not self.is_admin(creator):
            raise AuthorizationError("Only admin can create proposals")
        if not title or not title.strip():
            raise ValidationError("Invalid proposal data: title missing", code="InvalidProposal")
        if not options or len(options) < 2:
            raise ValidationError(
                "Invalid proposal data: at least two options required",
                code="InvalidProposal",
            )
        if any(not isinstance(o, str) or not o.strip() for o in options):
            raise ValidationError(
                "Invalid proposal data: options must be non-empty strings",
                code="InvalidProposal",
            )
        days = self._voting_days(voting_days)

        snapshot_block = await self.position_source.block_number()
        voting_start = self.clock()
        voting_end = voting_start + datetime.timedelta(seconds=days * SECONDS_PER_DAY)
        proposal = await run_in_threadpool(
            self.store.create_proposal,
            title=title,
            description=description or "",
            options=list(options),
            category=category or DEFAULT_CATEGORY,
            created_by=normalize_address(creator),
            snapshot_block=snapshot_block,
            voting_start=voting_start,
            voting_end=voting_end,
            created_at=voting_start,
        )
        _LOGGER.info(
            f"Created proposal {proposal.id} '{title}' with snapshot block {snapshot_block}"
        )
        return proposal
