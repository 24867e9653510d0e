import dataclasses
import logging
from contextlib import asynccontextmanager
from typing import Callable, List, Optional, Union

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response

from ..exceptions import GovernanceError, InfrastructureError, NotFoundError
from ..voting.cache import NoCache, VotingPowerCache, build_backend, build_cache
from ..voting.power import VotingPowerService
from ..voting.proposals import ProposalCreation
from ..voting.signature import BallotVerifier
from ..voting.submission import VoteSubmission
from .chain_querier import PositionSource, build_position_source
from .config import Settings
from .db_models import connect_database
from .db_queries.proposals import ProposalStore
from .db_queries.util import (
    serialize_proposal,
    serialize_proposal_with_results,
    serialize_vote,
)
from .util import normalize_address, utcnow

# logger setup
_LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass
class Services:
    """
    Everything the endpoints need, wired once per application
    """

    settings: Settings
    store: Optional[ProposalStore]
    position_source: PositionSource
    cache: Union[VotingPowerCache, NoCache]
    voting_power: VotingPowerService
    verifier: BallotVerifier
    clock: Callable = utcnow

    @property
    def submission(self) -> VoteSubmission:
        return VoteSubmission(
            self.require_store(), self.voting_power, self.verifier, clock=self.clock
        )

    @property
    def creation(self) -> ProposalCreation:
        return ProposalCreation(
            self.require_store(),
            self.position_source,
            self.settings.admin_addresses,
            clock=self.clock,
            default_voting_days=self.settings.default_voting_days,
            max_voting_days=self.settings.max_voting_days,
        )

    def require_store(self) -> ProposalStore:
        if self.store is None:
            raise InfrastructureError("No database configured")
        return self.store


def build_services(
    settings: Settings,
    store: Optional[ProposalStore] = None,
    position_source: Optional[PositionSource] = None,
    cache: Union[VotingPowerCache, NoCache, None] = None,
    clock: Callable = utcnow,
) -> Services:
    """
    Wire the components from the settings, explicitly given components take precedence
    """
    if store is None and settings.database_url:
        store = ProposalStore(
            connect_database(settings.database_url, debug_sql=settings.debug_sql)
        )
    if position_source is None:
        position_source = build_position_source(settings)
    if cache is None:
        cache = build_cache(build_backend(settings.cache_url))
    return Services(
        settings=settings,
        store=store,
        position_source=position_source,
        cache=cache,
        voting_power=VotingPowerService(
            position_source,
            cache,
            latest_ttl=settings.voting_power_cache_ttl,
            historical_ttl=settings.historical_voting_power_cache_ttl,
        ),
        verifier=BallotVerifier(
            name=settings.signing_domain_name,
            version=settings.signing_domain_version,
            chain_id=settings.chain_id,
        ),
        clock=clock,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def add_cachecontrol(response: Response, max_age: int, directive: str = "public"):
    # see https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/Cache-Control
    response.headers["Cache-Control"] = f"{directive}, max-age={max_age}"
    return response


#################################################################################################
#                                         Request bodies                                        #
#################################################################################################


class CreateProposalBody(BaseModel):
    # all optional, missing fields are reported after the admin check
    title: Optional[str] = None
    description: Optional[str] = None
    options: Optional[List[str]] = None
    category: Optional[str] = None
    creator: Optional[str] = None
    votingDays: Optional[int] = None


class BallotMessage(BaseModel):
    proposalId: int
    voter: str
    choice: int
    timestamp: int


class VoteBody(BaseModel):
    proposalId: int
    voter: str
    choice: int
    signature: str
    message: BallotMessage


#################################################################################################
#                                            Endpoints                                          #
#################################################################################################

router = APIRouter()


@router.get("/health")
async def health(services: Services = Depends(get_services)):
    database = False
    if services.store is not None:
        try:
            database = await run_in_threadpool(services.store.ping)
        except InfrastructureError:
            database = False
    cache = await services.cache.ping()
    return ORJSONResponse(
        {
            "status": "ok" if database else "degraded",
            "database": database,
            "cache": cache,
        }
    )


@router.get("/voting/proposals")
def list_proposals(services: Services = Depends(get_services)):
    """
    All proposals, newest first, with their current results.
    Empty if the database is not configured or not reachable.
    """
    now = services.clock()
    proposals = []
    if services.store is not None:
        try:
            proposals = [
                serialize_proposal_with_results(proposal, votes, now)
                for proposal, votes in services.store.list_proposals_with_votes()
            ]
        except InfrastructureError as e:
            _LOGGER.warning(f"Listing proposals failed, returning none: {e}")
    return add_cachecontrol(ORJSONResponse(proposals), 0, "no-store")


@router.post("/voting/proposals")
async def create_proposal(
    body: CreateProposalBody, services: Services = Depends(get_services)
):
    """
    Create a proposal, only admins may do so
    """
    proposal = await services.creation.create_proposal(
        title=body.title,
        description=body.description,
        options=body.options,
        category=body.category,
        creator=body.creator,
        voting_days=body.votingDays,
    )
    return ORJSONResponse(serialize_proposal(proposal))


@router.get("/voting/proposals/{proposal_id}")
def proposal_detail(proposal_id: int, services: Services = Depends(get_services)):
    """
    A single proposal with its votes and results
    """
    found = services.require_store().get_proposal_with_votes(proposal_id)
    if found is None:
        raise NotFoundError("Proposal not found")
    proposal, votes = found
    return add_cachecontrol(
        ORJSONResponse(serialize_proposal_with_results(proposal, votes, services.clock())),
        0,
        "no-store",
    )


@router.get("/voting/proposals/{proposal_id}/votes/{address}")
def proposal_vote_of(
    proposal_id: int, address: str, services: Services = Depends(get_services)
):
    """
    Whether and how an address voted on a proposal
    """
    vote = services.require_store().get_vote(proposal_id, normalize_address(address))
    return ORJSONResponse(
        {
            "hasVoted": vote is not None,
            "vote": serialize_vote(vote) if vote is not None else None,
        }
    )


@router.get("/voting/power/{address}")
async def voting_power(
    address: str,
    block: Optional[int] = Query(
        None,
        ge=0,
        description="Historical block to compute the voting power at, latest if omitted",
        examples=[12000000],
    ),
    services: Services = Depends(get_services),
):
    """
    Voting power of an address. Never fails, zero power if it cannot be determined.
    """
    power = await services.voting_power.get_voting_power(address, block)
    return ORJSONResponse(power.to_dict())


@router.post("/voting/power/{address}/invalidate")
async def invalidate_voting_power(
    address: str, services: Services = Depends(get_services)
):
    """
    Drop cached voting power of an address, call after its lock positions changed
    """
    await services.voting_power.invalidate(address)
    return ORJSONResponse({"invalidated": True})


@router.post("/voting/vote")
async def vote(body: VoteBody, services: Services = Depends(get_services)):
    """
    Submit a signed ballot, re-voting replaces the previous vote
    """
    receipt = await services.submission.submit_vote(
        proposal_id=body.proposalId,
        voter_address=body.voter,
        choice=body.choice,
        signature=body.signature,
        message=body.message.model_dump(),
    )
    return ORJSONResponse(receipt.to_dict())


async def governance_error_handler(request: Request, exc: GovernanceError):
    return ORJSONResponse(
        {"error": exc.message, "code": exc.code}, status_code=exc.status_code
    )


def create_app(
    settings: Optional[Settings] = None, services: Optional[Services] = None
) -> FastAPI:
    """
    Application factory, run with uvicorn --factory ata_governance.api.server:create_app
    """
    if services is None:
        services = build_services(settings or Settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services.store is not None:
            try:
                services.store.create_tables()
            except InfrastructureError as e:
                _LOGGER.warning(f"Could not create tables, reads will be empty: {e}")
        else:
            _LOGGER.warning("No database configured, proposals will be empty")
        yield

    app = FastAPI(
        default_response_class=ORJSONResponse,
        title="ATA Governance API.",
        description="The ATA Governance API computes voting power from staked positions and records signed votes on proposals.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services
    app.add_middleware(
        CORSMiddleware,
        allow_origins=services.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(GovernanceError, governance_error_handler)
    app.include_router(router)
    return app
