from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator, Dict, List

import base58
import nacl.signing
import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.errors import register_exception_handlers
from app.api.routes import health, keeper
from app.core.errors import RateHTTPError
from app.core.runtime import KeeperRuntime
from app.domain.models import RateSample, Strategy
from app.domain.services.rebalance_controller import RebalanceController
from app.domain.services.strategy_state import StrategyState
from app.domain.services.tracked_accounts import TrackedAccountSet
from app.infrastructure.db.database import build_engine, build_session_factory, create_tables
from app.infrastructure.ledger.executor import LedgerExecutor
from app.infrastructure.ledger.paper_ledger import PaperLedger
from app.infrastructure.solana.keys import OperatorKey

PROGRAM_ID = "5urWt3YZS2aXYPhr7LbkQxTHB9o9FDPevV8N1PEeYkYu"


class FakeOracle:
    """Returns canned APYs; `fail` makes the next samples raise."""

    def __init__(self, kamino: str = "0.05", marginfi: str = "0.03"):
        self.rates: Dict[Strategy, Decimal] = {
            Strategy.KAMINO: Decimal(kamino),
            Strategy.MARGINFI: Decimal(marginfi),
        }
        self.fail = False

    def set(self, kamino: str, marginfi: str) -> None:
        self.rates = {Strategy.KAMINO: Decimal(kamino), Strategy.MARGINFI: Decimal(marginfi)}

    async def sample_all(self) -> Dict[Strategy, RateSample]:
        if self.fail:
            raise RateHTTPError("Kamino", "HTTP 503")
        now = datetime.now(timezone.utc)
        return {venue: RateSample(venue=venue, apy=apy, fetched_at=now) for venue, apy in self.rates.items()}


class MemoryAccountStore:
    def __init__(self, accounts: List[str] = None):
        self.accounts: List[str] = list(accounts or [])

    async def list_accounts(self) -> List[str]:
        return list(self.accounts)

    async def add_account(self, account: str) -> None:
        if account not in self.accounts:
            self.accounts.append(account)


@pytest.fixture()
def operator() -> OperatorKey:
    signing_key = nacl.signing.SigningKey(bytes(range(32)))
    pubkey = base58.b58encode(signing_key.verify_key.encode()).decode("ascii")
    return OperatorKey(signing_key=signing_key, pubkey=pubkey)


@pytest.fixture()
def memory_store() -> MemoryAccountStore:
    return MemoryAccountStore()


@pytest.fixture()
def paper_ledger() -> PaperLedger:
    return PaperLedger()


@pytest.fixture()
def fake_oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture()
async def ledger_executor(paper_ledger) -> AsyncGenerator[LedgerExecutor, None]:
    executor = LedgerExecutor(paper_ledger, max_workers=2, timeout_seconds=5)
    yield executor
    executor.shutdown()


@pytest.fixture()
def strategy_state() -> StrategyState:
    return StrategyState(Strategy.MARGINFI)


@pytest.fixture()
def tracked_accounts() -> TrackedAccountSet:
    return TrackedAccountSet()


@pytest.fixture()
def controller(fake_oracle, ledger_executor, strategy_state, tracked_accounts) -> RebalanceController:
    return RebalanceController(
        oracle=fake_oracle,
        ledger=ledger_executor,
        state=strategy_state,
        accounts=tracked_accounts,
    )


@pytest.fixture()
def runtime(operator, controller, ledger_executor, strategy_state, tracked_accounts) -> KeeperRuntime:
    return KeeperRuntime(
        operator=operator,
        program_id=PROGRAM_ID,
        state=strategy_state,
        accounts=tracked_accounts,
        ledger=ledger_executor,
        controller=controller,
        scheduler=None,
    )


@pytest.fixture()
async def db_engine(tmp_path):
    # Plain sqlite:// also exercises the async driver mapping
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(db_engine) -> async_sessionmaker:
    return build_session_factory(db_engine)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def app(runtime) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(health.router, tags=["Health"])
    app.include_router(keeper.router, tags=["Keeper"])
    app.state.keeper = runtime
    return app


@pytest.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
