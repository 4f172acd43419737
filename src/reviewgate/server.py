import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, field_validator

from reviewgate.application.factory import GateServices, build_services
from reviewgate.application.gate import utc_now
from reviewgate.consts import VERSION
from reviewgate.domain.decisions import Allow, Deny, GateDecision, PresentReview
from reviewgate.domain.errors import (
    CardNotFound,
    DuplicateWordError,
    InvalidVocabularyError,
    SchedulingStateCorrupt,
    StorageUnavailable,
)
from reviewgate.domain.models import VocabularyCard

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("reviewgate.server")

_services: GateServices | None = None


def get_services() -> GateServices:
    """Build the process-wide services on first use."""
    global _services
    if _services is None:
        from reviewgate.application.config import resolve_config

        _services = build_services(resolve_config())
    return _services


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"reviewgate server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("reviewgate server shutting down...")


app = FastAPI(
    title="reviewgate",
    description="Review gate decisions for launch interceptors.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class CardModel(BaseModel):
    id: str
    word: str
    translation: str
    kind: str
    correct_count: int
    incorrect_count: int
    due_at: datetime

    @classmethod
    def from_card(cls, card: VocabularyCard) -> "CardModel":
        return cls(
            id=card.id,
            word=card.word,
            translation=card.translation,
            kind=card.kind.value,
            correct_count=card.correct_count,
            incorrect_count=card.incorrect_count,
            due_at=card.due_at,
        )


class DecisionResponse(BaseModel):
    decision: str  # allow | present_review | deny
    reason: str | None = None
    detail: str | None = None
    card: CardModel | None = None


def to_response(decision: GateDecision) -> DecisionResponse:
    match decision:
        case Allow(reason=reason):
            return DecisionResponse(decision="allow", reason=reason.value)
        case PresentReview(card=card):
            return DecisionResponse(decision="present_review", card=CardModel.from_card(card))
        case Deny(reason=reason, detail=detail):
            return DecisionResponse(decision="deny", reason=reason.value, detail=detail)


class LaunchRequest(BaseModel):
    app_id: str
    at: datetime | None = None

    @field_validator("at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class AnswerRequest(LaunchRequest):
    correct: bool


class AppRequest(BaseModel):
    app_id: str


class CardRequest(BaseModel):
    word: str
    translation: str


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.post("/launch", response_model=DecisionResponse)
async def launch(req: LaunchRequest, services: GateServices = Depends(get_services)):
    """
    Report a launch attempt. Storage failures come back as a deny decision.
    """
    decision = await services.gate.on_launch_attempt(req.app_id, req.at)
    return to_response(decision)


@app.post("/answer", response_model=DecisionResponse)
async def answer(req: AnswerRequest, services: GateServices = Depends(get_services)):
    try:
        decision = await services.gate.on_answer(req.app_id, req.correct, req.at)
    except (SchedulingStateCorrupt, CardNotFound) as e:
        logger.error(f"Answer for {req.app_id} failed: {e}")
        raise HTTPException(status_code=409, detail=str(e)) from e
    except StorageUnavailable as e:
        logger.error(f"Answer for {req.app_id} failed: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e
    return to_response(decision)


@app.post("/abandon", response_model=DecisionResponse)
async def abandon(req: AppRequest, services: GateServices = Depends(get_services)):
    return to_response(await services.gate.on_abandon(req.app_id))


@app.post("/lock")
async def lock(req: AppRequest, services: GateServices = Depends(get_services)):
    try:
        await services.gate.force_lock(req.app_id)
    except StorageUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return {"ok": True}


@app.get("/counters")
async def counters(services: GateServices = Depends(get_services)):
    """Today's ledger with the configured caps."""
    try:
        prefs = await services.config.learning_preferences()
        current = await services.counters.current_counters(utc_now())
    except StorageUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return {
        "day_key": current.day_key,
        "new_shown": current.new_shown,
        "review_shown": current.review_shown,
        "reviews_since_last_new": current.reviews_since_last_new,
        "new_per_day": prefs.new_per_day,
        "review_per_day": prefs.review_per_day,
    }


@app.post("/cards", response_model=CardModel, status_code=201)
async def add_card(req: CardRequest, services: GateServices = Depends(get_services)):
    try:
        card = await services.vocabulary.add_card(req.word, req.translation, utc_now())
    except InvalidVocabularyError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except DuplicateWordError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except StorageUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return CardModel.from_card(card)


@app.put("/cards/{card_id}", response_model=CardModel)
async def override_card(
    card_id: str, req: CardRequest, services: GateServices = Depends(get_services)
):
    """Replace word and translation; the card starts over as new."""
    try:
        card = await services.vocabulary.override_card(
            card_id, req.word, req.translation, utc_now()
        )
    except CardNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidVocabularyError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except DuplicateWordError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except StorageUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return CardModel.from_card(card)


@app.get("/cards/flagged")
async def flagged_cards(services: GateServices = Depends(get_services)):
    return {"card_ids": services.processor.flagged()}


@app.post("/cards/{card_id}/reset", response_model=CardModel)
async def reset_card(card_id: str, services: GateServices = Depends(get_services)):
    """Explicit recovery for a card with corrupt scheduling state."""
    try:
        card = await services.processor.reset_scheduling_state(card_id, utc_now())
    except CardNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except StorageUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return CardModel.from_card(card)
