"""API routers for stateless professionalism scoring endpoints."""
import logging

from fastapi import APIRouter, Depends

from api.schemas.professionalism import (
    AggregateRequest,
    AggregateResponse,
    ObservationIn,
    ScoreResponse,
)
from engine.aggregator import MetricsAggregator
from engine.config import EngineConfig, get_config
from engine.feedback import AdviceGenerator, recent_pattern, score_band, score_label
from engine.scorer import InstantaneousScorer
from engine.window import TemporalWindowStore

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Professionalism"])

_advice = AdviceGenerator()


def get_engine_config() -> EngineConfig:
    """Engine configuration dependency (overridable in tests)."""
    return get_config()


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.post("/v1/professionalism/score", response_model=ScoreResponse)
async def score_observation(
    body: ObservationIn,
    config: EngineConfig = Depends(get_engine_config),
) -> ScoreResponse:
    observation = body.to_observation()
    score = InstantaneousScorer(config).score(observation)

    dominant = None
    if observation.expressions is not None:
        dominant, _ = observation.expressions.dominant()

    return ScoreResponse(
        score=score,
        label=score_label(score),
        band=score_band(score),
        dominant_expression=dominant,
    )


@router.post("/v1/professionalism/aggregate", response_model=AggregateResponse)
async def aggregate_samples(
    body: AggregateRequest,
    config: EngineConfig = Depends(get_engine_config),
) -> AggregateResponse:
    # Client timestamps: anchor the window on the newest sample unless told otherwise
    now = body.now
    if now is None:
        now = max((s.timestamp for s in body.samples), default=0.0)

    store = TemporalWindowStore(config.retention_horizon_sec, clock=lambda: now)
    for sample in body.samples:
        store.push(sample)
    retained = store.samples()

    snapshot = MetricsAggregator(config).aggregate(retained, now=now)
    summary = _advice.summarize(snapshot)

    logger.debug(
        f"Aggregated {len(retained)}/{len(body.samples)} samples -> overall={snapshot.overall_score}"
    )

    return AggregateResponse(
        snapshot=snapshot,
        label=summary["label"],
        band=summary["band"],
        tips=summary["tips"],
        samples_used=len(retained),
        recent_expressions=recent_pattern(retained, config.recent_pattern_size),
    )
