"""Deal and deal stage models."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.persistence.database import Base

# Stage names after which a deal no longer counts as open
TERMINAL_STAGE_NAMES = frozenset({"won", "lost"})


class DealStage(Base):
    """Pipeline stage definition for the kanban board."""

    __tablename__ = "deal_stages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    deals = relationship("Deal", back_populates="stage")

    def __repr__(self) -> str:
        return f"<DealStage(id={self.id}, name={self.name}, position={self.position})>"


class Deal(Base):
    """Deal in the sales pipeline."""

    __tablename__ = "deals"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    contact_id = Column(
        Integer, ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    stage_id = Column(
        Integer, ForeignKey("deal_stages.id", ondelete="SET NULL"), nullable=True, index=True
    )
    amount = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    # Relationships
    contact = relationship("Contact", back_populates="deals")
    stage = relationship("DealStage", back_populates="deals", lazy="joined")

    @property
    def stage_name(self) -> str | None:
        return self.stage.name if self.stage else None

    def __repr__(self) -> str:
        return f"<Deal(id={self.id}, title={self.title}, contact_id={self.contact_id})>"
