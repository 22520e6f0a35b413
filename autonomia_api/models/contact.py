import sqlalchemy as sa
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from autonomia_api.core.database import Base


class Contact(Base):
    __tablename__ = "contact"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True, index=True)
    contact_data = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)
    campaign_id = Column(String(64), nullable=True)
    external_code = Column(String(128), nullable=True, unique=True, index=True)
    external_status = Column(String(64), nullable=False, default="pending")
    account_id = Column(Integer, ForeignKey("account.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    account = relationship("Account")
