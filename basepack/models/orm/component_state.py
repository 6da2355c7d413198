"""
Persisted UI state ORM model.

One row per (user, component identity); the state document holds column
order, widths, hidden columns, filters and the pagination cursor.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from basepack.models.orm.base import Base


class ComponentStateRecord(Base):
    """Component state database table."""

    __tablename__ = "component_states"

    user_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    component_id: Mapped[str] = mapped_column(String(512), primary_key=True)
    state: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=datetime.utcnow,
    )

    __table_args__ = (
        Index("ix_component_states_component_id", "component_id"),
    )
