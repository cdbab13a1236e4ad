"""
Keeper API Routes
Route a single account's deposit or withdraw to the active venue
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.dependencies import get_runtime
from app.core.runtime import KeeperRuntime
from app.infrastructure.solana.keys import vault_pda

router = APIRouter()
logger = logging.getLogger(__name__)


class DepositRequest(BaseModel):
    user: str
    # Range is checked by the controller so a zero amount is a 400
    amount: int


class WithdrawRequest(BaseModel):
    user: str


class DepositResponse(BaseModel):
    ok: bool
    tx: str
    user: str
    vault: str
    protocol: str
    requested: int


class WithdrawResponse(BaseModel):
    ok: bool
    tx: str
    user: str


@router.post("/deposit", response_model=DepositResponse)
async def deposit(request: DepositRequest, runtime: KeeperRuntime = Depends(get_runtime)):
    op = await runtime.controller.route_deposit(request.user, request.amount)
    vault = vault_pda(op.account, runtime.program_id)

    logger.info(f"✅ Deposit routed: user={op.account} protocol={op.venue.value} tx={op.tx}")
    return DepositResponse(
        ok=True,
        tx=op.tx,
        user=op.account,
        vault=vault,
        protocol=op.venue.value,
        requested=request.amount,
    )


@router.post("/withdraw", response_model=WithdrawResponse)
async def withdraw(request: WithdrawRequest, runtime: KeeperRuntime = Depends(get_runtime)):
    op = await runtime.controller.route_withdraw(request.user)

    logger.info(f"✅ Withdraw routed: user={op.account} protocol={op.venue.value} tx={op.tx}")
    return WithdrawResponse(ok=True, tx=op.tx, user=op.account)
