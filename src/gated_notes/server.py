import logging
import math
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from gated_notes.application.recalculation import is_recalculating
from gated_notes.consts import VERSION
from gated_notes.domain.exceptions import CardNotFoundError, NoteAccessError
from gated_notes.domain.models import Rating, StudyMode

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("gated_notes.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"gated-notes server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("gated-notes server shutting down...")


app = FastAPI(
    title="gated-notes",
    description="Review queue and gating API for gated notes.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float
    recalculating: bool


class PoolCard(BaseModel):
    id: str
    deck: str
    chapter: str
    front: str
    back: str
    status: str
    para_idx: int | None
    due: int


class RateRequest(BaseModel):
    deck_path: str
    card_id: str
    rating: Rating
    vault_root: str | None = None


class RateResponse(BaseModel):
    card_id: str
    status: str
    due: int
    blocked: bool
    boundary_before: int | None
    boundary_after: int | None
    rerender: bool


class GateResponse(BaseModel):
    chapter: str
    boundary: int | None
    gating_enabled: bool


def _boundary(value: float) -> int | None:
    return None if math.isinf(value) else int(value)


def _services(vault_root: str | None):
    from gated_notes.application.config import resolve_config
    from gated_notes.application.factory import build_services

    config = resolve_config({"vault_root": vault_root})
    return config, build_services(config)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(
        status="ok",
        version=VERSION,
        uptime_seconds=time.time() - start_time,
        recalculating=is_recalculating(),
    )


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.get("/pool", response_model=list[PoolCard])
async def get_pool(chapter: str, mode: StudyMode | None = None, vault_root: str | None = None):
    """
    Ordered review queue for the note being read.
    """
    config, services = _services(vault_root)
    pool = await services.decks.review_pool(
        mode or config.study_mode, chapter, new_cards_first=config.new_cards_first
    )
    return [
        PoolCard(
            id=e.card.id,
            deck=e.deck_path,
            chapter=e.card.chapter,
            front=e.card.front,
            back=e.card.back,
            status=e.card.status.value,
            para_idx=e.card.para_idx,
            due=e.card.due,
        )
        for e in pool
    ]


@app.post("/rate", response_model=RateResponse)
async def rate_card(req: RateRequest):
    """
    Apply a rating. `rerender` is true only when the unlock boundary moved.
    """
    config, services = _services(req.vault_root)
    try:
        outcome = await services.decks.rate_card(
            req.deck_path, req.card_id, req.rating, config.scheduler_config()
        )
    except CardNotFoundError as e:
        logger.warning(f"Rating aborted: {e}")
        raise HTTPException(status_code=404, detail=str(e))

    return RateResponse(
        card_id=outcome.card.id,
        status=outcome.card.status.value,
        due=outcome.card.due,
        blocked=outcome.card.blocked,
        boundary_before=_boundary(outcome.boundary_before),
        boundary_after=_boundary(outcome.boundary_after),
        rerender=outcome.boundary_changed,
    )


@app.get("/gate", response_model=GateResponse)
async def get_gate(chapter: str, vault_root: str | None = None):
    config, services = _services(vault_root)
    boundary = await services.decks.chapter_boundary(chapter) if config.gating_enabled else math.inf
    return GateResponse(
        chapter=chapter, boundary=_boundary(boundary), gating_enabled=config.gating_enabled
    )


class NewCardModel(BaseModel):
    front: str
    back: str
    tag: str


class AddCardsRequest(BaseModel):
    chapter: str
    cards: list[NewCardModel]
    vault_root: str | None = None


class AddedCard(BaseModel):
    id: str
    para_idx: int | None


@app.post("/cards", response_model=list[AddedCard])
async def add_cards(req: AddCardsRequest):
    """
    Create cards for a note. Each tag is aligned to its paragraph on insert;
    `para_idx` is null for tags that matched nothing.
    """
    from gated_notes.application.deck_service import NewCard
    from gated_notes.application.recalculation import build_image_index
    from gated_notes.infrastructure.utils.note_format import extract_paragraphs

    _, services = _services(req.vault_root)
    try:
        paragraphs = extract_paragraphs(await services.notes.read_note(req.chapter))
    except NoteAccessError as e:
        raise HTTPException(status_code=404, detail=str(e))
    index = await build_image_index(paragraphs, req.chapter, services.images)

    created = await services.decks.add_cards(
        req.chapter,
        [NewCard(front=c.front, back=c.back, tag=c.tag) for c in req.cards],
        paragraphs,
        index,
    )
    return [AddedCard(id=c.id, para_idx=c.para_idx) for c in created]


class RecalcRequest(BaseModel):
    chapter: str | None = None
    vault_root: str | None = None


class RecalcResponse(BaseModel):
    chapters: int
    updated: int
    not_found: list[str]
    failed: dict[str, str]


@app.post("/recalc", response_model=RecalcResponse)
async def recalc(req: RecalcRequest):
    """
    Realign paragraph indexes for one note, or for every note when `chapter`
    is omitted. A vault-wide run already in progress answers 409.
    """
    from gated_notes.application.recalculation import recalculate_all, recalculate_chapter

    _, services = _services(req.vault_root)

    if req.chapter is None:
        bulk = await recalculate_all(services.store, services.notes, services.images)
        if bulk is None:
            raise HTTPException(status_code=409, detail="Recalculation already in progress")
        return RecalcResponse(
            chapters=len(bulk.chapters),
            updated=bulk.updated,
            not_found=[card_id for r in bulk.chapters for card_id in r.not_found],
            failed=bulk.failed,
        )

    try:
        result = await recalculate_chapter(
            req.chapter, services.store, services.notes, services.images
        )
    except NoteAccessError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if not result.finalized:
        raise HTTPException(status_code=422, detail=f"{req.chapter} is not finalized")
    return RecalcResponse(chapters=1, updated=result.updated, not_found=result.not_found, failed={})
