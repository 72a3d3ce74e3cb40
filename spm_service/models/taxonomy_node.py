"""TaxonomyNode model - portfolio / line / category hierarchy."""

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from spm_service.models.base import Base, FlexJSON, TimestampMixin


class TaxonomyNodeRecord(Base, TimestampMixin):
    """One node of the taxonomy tree, stored flat with a parent pointer.

    parent_id is not a foreign key. Hierarchy rules live in the service
    layer, and orphaned rows stay loadable for the maintenance checks.
    """

    __tablename__ = "taxonomy_nodes"
    __table_args__ = (
        Index("by_parent_and_type", "parent_id", "type"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    strategy: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_id: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    change_history: Mapped[list[dict[str, Any]]] = mapped_column(
        FlexJSON, nullable=False, default=list
    )
    created_by: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    updated_by: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    last_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<TaxonomyNodeRecord(id='{self.id}', type='{self.type}', name='{self.name}')>"
