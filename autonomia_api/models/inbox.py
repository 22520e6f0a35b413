from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from autonomia_api.core.database import Base


class Inbox(Base):
    __tablename__ = "inbox"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("account.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
