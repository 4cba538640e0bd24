"""
FastAPI server: HTTP surface over the decision engine.

Stateless scoring endpoints (biometrics, risk, anomalies, liquidity) plus
POST /transactions/assess, which fetches history and recipient trust from
Aptos, assesses and decides a transfer, and records it in the audit log.
Collaborator failures map to 502, invalid inputs to 422.
"""

from __future__ import annotations

import asyncio
import math
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from backend_aether import __version__
from backend_aether.aether_logging import get_logger
from backend_aether.agent_worker.monitor import TransactionMonitor, run_monitor_loop
from backend_aether.agent_worker.orchestrator import (
    DecisionOrchestrator,
    HistoryProvider,
    PoolStateProvider,
    TrustProvider,
    record_audit,
)
from backend_aether.analysis_engine.anomaly import AnomalyDetector, aggregate_anomaly_score
from backend_aether.analysis_engine.features import TransactionFeatures
from backend_aether.analysis_engine.liquidity import LiquidityMetrics, OptimalRange
from backend_aether.aptos_client import (
    AptosHistoryProvider,
    AptosPoolStateProvider,
    AptosRestClient,
    AptosTrustProvider,
)
from backend_aether.biometrics.models import BiometricSample
from backend_aether.config.env import get_monitor_addresses, get_monitor_interval_sec
from backend_aether.config.settings import Settings, get_settings
from backend_aether.core.exceptions import CollaboratorError, InvalidFeatures
from backend_aether.database.audit import AuditLog

logger = get_logger(__name__)

MONITOR_HISTORY_LIMIT = 100


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class KeystrokeModel(_CamelModel):
    key: str = Field(..., max_length=32)
    press_time: float = Field(..., alias="pressTime", description="Key down, ms")
    release_time: float = Field(..., alias="releaseTime", description="Key up, ms")


class MouseMovementModel(_CamelModel):
    x: float
    y: float
    timestamp: float = Field(..., description="ms")
    velocity: float = Field(..., description="px/s")
    acceleration: float = Field(..., description="px/s^2")


class TransactionTimingModel(_CamelModel):
    start_time: float = Field(..., alias="startTime")
    confirm_time: float = Field(..., alias="confirmTime")
    total_duration: float = Field(..., alias="totalDuration")


class BiometricSampleModel(_CamelModel):
    """Capture payload as sent by the dashboard (camelCase) or snake_case."""

    keystroke_patterns: list[KeystrokeModel] = Field(default_factory=list, alias="keystrokePatterns")
    mouse_movements: list[MouseMovementModel] = Field(default_factory=list, alias="mouseMovements")
    transaction_timing: list[TransactionTimingModel] = Field(default_factory=list, alias="transactionTiming")

    def to_sample(self) -> BiometricSample:
        return BiometricSample.from_dict(self.model_dump(by_alias=True))


class BiometricVerifyResponse(BaseModel):
    verified: bool
    keystroke: float
    mouse: float
    timing: float
    aggregate: float
    sufficient: bool = Field(..., description="False when a stream had too few samples")


class BiometricHashResponse(BaseModel):
    hash: str = Field(..., description="SHA-256 of the canonical sample, hex")


class TransactionFeaturesModel(BaseModel):
    amount: float = Field(..., ge=0)
    historical_volume: float = Field(..., ge=0)
    avg_transaction_size: float = Field(..., ge=0)
    recipient_trust_score: float = Field(..., ge=0, le=1)
    biometric_confidence: float = Field(..., ge=0, le=1)
    time_of_day: int = Field(..., ge=0, le=23)
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday")

    def to_features(self) -> TransactionFeatures:
        return TransactionFeatures.build(**self.model_dump())


class RiskScoreResponse(BaseModel):
    risk_score: float = Field(..., ge=0, le=1)


class AnomalyDetectRequest(BaseModel):
    current: TransactionFeaturesModel
    historical: TransactionFeaturesModel


class AnomalyResponse(BaseModel):
    type: str
    severity: float
    details: str


class AnomalyDetectResponse(BaseModel):
    anomalies: list[AnomalyResponse]
    anomaly_score: float


class LiquidityMetricsModel(BaseModel):
    pool_depth: float
    volatility: float
    volume_24h: float
    current_price: float
    price_change_24h: float

    def to_metrics(self) -> LiquidityMetrics:
        return LiquidityMetrics(**self.model_dump())


class RangeModel(BaseModel):
    min: float = Field(..., ge=0)
    max: float = Field(..., ge=0)


class LiquidityOptimizeRequest(BaseModel):
    """Give either explicit metrics or a pool address to read from chain."""

    metrics: LiquidityMetricsModel | None = None
    pool_address: str | None = Field(None, min_length=3, max_length=66)
    current_range: RangeModel | None = None


class LiquidityOptimizeResponse(BaseModel):
    optimal_range: RangeModel
    min_price: float
    max_price: float
    target_utilization: float
    valid_metrics: bool
    adjust: bool | None = Field(None, description="Only set when pool_address was given")
    reasons: list[str] = Field(default_factory=list)


class AssessTransactionRequest(BaseModel):
    from_address: str = Field(..., min_length=3, max_length=66)
    to_address: str = Field(..., min_length=3, max_length=66)
    amount: float = Field(..., ge=0)
    biometrics: BiometricSampleModel | None = None


class AssessTransactionResponse(BaseModel):
    accepted: bool
    risk_score: float
    anomaly_score: float
    recommendations: list[str]
    anomalies: list[AnomalyResponse]
    biometric_verified: bool
    timestamp: str


class AssessmentRecordResponse(BaseModel):
    id: int
    to_address: str
    amount: float
    risk_score: float | None
    anomaly_score: float
    accepted: bool
    biometric_verified: bool
    assessed_at: str


class AuditResponse(BaseModel):
    address: str
    assessments: list[AssessmentRecordResponse]
    anomalies: list[AnomalyResponse]


# -----------------------------------------------------------------------------
# Lifespan and dependencies
# -----------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open one Aptos client for the app's lifetime; start the account monitor when configured."""
    settings = get_settings()
    client = AptosRestClient(settings.node_url)
    app.state.aptos_client = client
    logger.info("api_started", node_url=settings.node_url, module_address=settings.module_address)

    stop_event = asyncio.Event()
    monitor_task: asyncio.Task | None = None
    addresses = get_monitor_addresses()
    if addresses:
        monitor = TransactionMonitor(
            AptosHistoryProvider(client, limit=MONITOR_HISTORY_LIMIT),
            anomaly_detector=AnomalyDetector(settings.anomaly),
        )
        monitor_task = asyncio.create_task(
            run_monitor_loop(monitor, addresses, get_monitor_interval_sec(), stop_event),
            name="account-monitor",
        )
    try:
        yield
    finally:
        stop_event.set()
        if monitor_task is not None:
            await monitor_task
        await client.aclose()
        logger.info("api_stopped")


def get_app_settings() -> Settings:
    return get_settings()


def get_orchestrator(settings: Settings = Depends(get_app_settings)) -> DecisionOrchestrator:
    return DecisionOrchestrator.from_settings(settings)


def get_aptos_client(request: Request) -> AptosRestClient | None:
    """App-scoped client; None outside the lifespan (routes that need chain data answer 503)."""
    return getattr(request.app.state, "aptos_client", None)


def get_history_provider(client: AptosRestClient | None = Depends(get_aptos_client)) -> HistoryProvider | None:
    return AptosHistoryProvider(client) if client is not None else None


def get_trust_provider(
    client: AptosRestClient | None = Depends(get_aptos_client),
    settings: Settings = Depends(get_app_settings),
) -> TrustProvider | None:
    return AptosTrustProvider(client, settings.module_address) if client is not None else None


def get_pool_provider(
    client: AptosRestClient | None = Depends(get_aptos_client),
    settings: Settings = Depends(get_app_settings),
) -> PoolStateProvider | None:
    return AptosPoolStateProvider(client, settings.module_address) if client is not None else None


def _require(provider: Any) -> Any:
    if provider is None:
        raise HTTPException(status_code=503, detail="Aptos client not initialized")
    return provider


def get_audit_log(settings: Settings = Depends(get_app_settings)) -> AuditLog:
    return AuditLog(settings.audit_db_path)


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------

app = FastAPI(
    title="Backend Aether API",
    description="Behavioral biometrics, transfer risk, anomaly detection and liquidity range decisions.",
    version=__version__,
    lifespan=lifespan,
)


def _anomaly_models(anomalies: Any) -> list[AnomalyResponse]:
    return [AnomalyResponse(type=a.type.value, severity=a.severity, details=a.details) for a in anomalies]


@app.get("/health")
def health() -> dict[str, str]:
    """Liveness probe: API is up."""
    return {"status": "ok"}


@app.post("/biometrics/verify", response_model=BiometricVerifyResponse)
def verify_biometrics(
    body: BiometricSampleModel,
    orchestrator: DecisionOrchestrator = Depends(get_orchestrator),
) -> BiometricVerifyResponse:
    score = orchestrator.verifier.score(body.to_sample())
    return BiometricVerifyResponse(**score.to_dict())


@app.post("/biometrics/hash", response_model=BiometricHashResponse)
def hash_biometrics(
    body: BiometricSampleModel,
    orchestrator: DecisionOrchestrator = Depends(get_orchestrator),
) -> BiometricHashResponse:
    return BiometricHashResponse(hash=orchestrator.verifier.hash_hex(body.to_sample()))


@app.post("/risk/score", response_model=RiskScoreResponse)
def score_risk(
    body: TransactionFeaturesModel,
    orchestrator: DecisionOrchestrator = Depends(get_orchestrator),
) -> RiskScoreResponse:
    return RiskScoreResponse(risk_score=orchestrator.risk_engine.predict(body.to_features()))


@app.post("/anomalies/detect", response_model=AnomalyDetectResponse)
def detect_anomalies(
    body: AnomalyDetectRequest,
    orchestrator: DecisionOrchestrator = Depends(get_orchestrator),
) -> AnomalyDetectResponse:
    anomalies = orchestrator.anomaly_detector.detect(body.current.to_features(), body.historical.to_features())
    return AnomalyDetectResponse(
        anomalies=_anomaly_models(anomalies),
        anomaly_score=aggregate_anomaly_score(anomalies),
    )


@app.post("/liquidity/optimize", response_model=LiquidityOptimizeResponse)
async def optimize_liquidity(
    body: LiquidityOptimizeRequest,
    orchestrator: DecisionOrchestrator = Depends(get_orchestrator),
    pool_provider: PoolStateProvider | None = Depends(get_pool_provider),
) -> LiquidityOptimizeResponse:
    """
    With `metrics`: pure range computation. With `pool_address`: read the
    pool from chain and also decide whether to adjust `current_range`.
    """
    if body.metrics is None and not body.pool_address:
        raise HTTPException(status_code=400, detail="metrics or pool_address is required")

    if body.metrics is not None:
        optimizer = orchestrator.liquidity_optimizer
        metrics = body.metrics.to_metrics()
        optimal = optimizer.optimize_range(metrics)
        params = optimizer.optimize_parameters(metrics)
        return LiquidityOptimizeResponse(
            optimal_range=RangeModel(min=optimal.min, max=optimal.max),
            min_price=params.min_price,
            max_price=params.max_price,
            target_utilization=params.target_utilization,
            valid_metrics=optimizer.validate(metrics),
        )

    current = (
        OptimalRange(min=body.current_range.min, max=body.current_range.max) if body.current_range else None
    )
    decision = await orchestrator.optimize_pool(body.pool_address, _require(pool_provider), current_range=current)
    return LiquidityOptimizeResponse(
        optimal_range=RangeModel(min=decision.optimal_range.min, max=decision.optimal_range.max),
        min_price=decision.parameters.min_price,
        max_price=decision.parameters.max_price,
        target_utilization=decision.parameters.target_utilization,
        valid_metrics=decision.valid_metrics,
        adjust=decision.adjust,
        reasons=list(decision.reasons),
    )


@app.post("/transactions/assess", response_model=AssessTransactionResponse)
async def assess_transaction(
    body: AssessTransactionRequest,
    orchestrator: DecisionOrchestrator = Depends(get_orchestrator),
    history_provider: HistoryProvider | None = Depends(get_history_provider),
    trust_provider: TrustProvider | None = Depends(get_trust_provider),
    audit: AuditLog = Depends(get_audit_log),
) -> AssessTransactionResponse:
    """Assess and decide a transfer without submitting it; the outcome is audited."""
    sample = body.biometrics.to_sample() if body.biometrics is not None else None
    assessment = await orchestrator.assess(
        body.from_address,
        body.to_address,
        body.amount,
        sample,
        _require(history_provider),
        _require(trust_provider),
    )
    accepted = orchestrator.decide_transfer(assessment)
    await asyncio.to_thread(record_audit, audit, body.from_address, body.to_address, body.amount, assessment, accepted)
    return AssessTransactionResponse(
        accepted=accepted,
        risk_score=assessment.risk_score,
        anomaly_score=assessment.anomaly_score,
        recommendations=list(assessment.recommendations),
        anomalies=_anomaly_models(assessment.anomalies),
        biometric_verified=assessment.biometric_verified,
        timestamp=assessment.timestamp.isoformat(),
    )


@app.get("/audit/{address}", response_model=AuditResponse)
def get_audit(address: str, limit: int = 50, audit: AuditLog = Depends(get_audit_log)) -> AuditResponse:
    """Recent audited assessments and anomalies for transfers sent by `address`."""
    address = address.strip()
    if not address:
        raise HTTPException(status_code=400, detail="address must be non-empty")
    limit = max(1, min(limit, 500))
    assessments = audit.list_assessments(address, limit=limit)
    anomalies = audit.list_anomalies(address, limit=limit)
    return AuditResponse(
        address=address,
        assessments=[
            AssessmentRecordResponse(
                id=r.id,
                to_address=r.to_address,
                amount=r.amount,
                risk_score=None if math.isnan(r.risk_score) else r.risk_score,
                anomaly_score=r.anomaly_score,
                accepted=r.accepted,
                biometric_verified=r.biometric_verified,
                assessed_at=r.assessed_at,
            )
            for r in assessments
        ],
        anomalies=[AnomalyResponse(type=a.anomaly_type, severity=a.severity, details=a.details) for a in anomalies],
    )


@app.exception_handler(CollaboratorError)
def collaborator_error_handler(request: Request, exc: CollaboratorError) -> JSONResponse:
    logger.warning(
        "api_collaborator_failed",
        path=request.url.path,
        collaborator=exc.collaborator,
        error=str(exc),
    )
    return JSONResponse(status_code=502, content={"detail": str(exc), "collaborator": exc.collaborator})


@app.exception_handler(InvalidFeatures)
def invalid_features_handler(request: Request, exc: InvalidFeatures) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(HTTPException)
def http_exception_handler(request: Any, exc: HTTPException) -> JSONResponse:
    """Consistent JSON error response for HTTPException."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
