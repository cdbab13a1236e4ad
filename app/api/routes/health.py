from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.dependencies import get_runtime
from app.core.runtime import KeeperRuntime

router = APIRouter()


class HealthResponse(BaseModel):
    ok: bool
    service: str
    bot_key: str
    program_id: str
    strategy: str


class MigrationFailureInfo(BaseModel):
    user: str
    outcome: str
    error: Optional[str] = None


class LastEvaluationInfo(BaseModel):
    kamino_apy: float
    marginfi_apy: float
    current: str
    desired: str
    flipped: bool
    outcomes: Dict[str, int]
    failures: List[MigrationFailureInfo]


class TrackerHealthResponse(BaseModel):
    scheduler: str  # running, stopped, disabled
    evaluating: bool
    strategy: str
    strategy_changed_at: Optional[str] = None
    tracked_accounts: int
    last_run_at: Optional[str] = None
    last_error: Optional[str] = None
    last_result: Optional[LastEvaluationInfo] = None


@router.get("/health", response_model=HealthResponse)
async def health(runtime: KeeperRuntime = Depends(get_runtime)):
    strategy = runtime.state.current
    return HealthResponse(
        ok=True,
        service=strategy.service_name,
        bot_key=runtime.operator.pubkey,
        program_id=runtime.program_id,
        strategy=strategy.value,
    )


@router.get("/health/tracker", response_model=TrackerHealthResponse)
async def tracker_health(runtime: KeeperRuntime = Depends(get_runtime)):
    """Last rebalance evaluation, for operators."""
    return runtime.tracker_status()
