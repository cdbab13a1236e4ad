"""
Database Models (SQLAlchemy ORM)
Keeper only persists which accounts it manages; balances live on the ledger.
"""

from sqlalchemy import Column, Integer, String, DateTime

from app.infrastructure.db.database import Base
from app.utils.time import now_utc_naive


class TrackedAccountModel(Base):
    """Depositor account under keeper management"""
    __tablename__ = "tracked_account"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pubkey = Column(String(44), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, nullable=False, default=now_utc_naive)
