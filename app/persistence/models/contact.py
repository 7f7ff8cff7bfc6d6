"""Contact model."""

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.persistence.database import Base


class Contact(Base):
    """CRM contact. Only the fields call matching reads are modelled."""

    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    deals = relationship("Deal", back_populates="contact")

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, phone={self.phone})>"
