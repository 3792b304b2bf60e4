"""SQLAlchemy ORM model for the referral_edges table.

Kept in sync with alembic/versions/006_create_referral_edges.py.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.iv_common.database import Base


class ReferralEdgeORM(Base):
    __tablename__ = "referral_edges"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    referrer_account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    referred_account_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    bonus_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    awarded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
