"""Product model - catalogue entry, optionally classified under a category node."""

from sqlalchemy import Float, String
from sqlalchemy.orm import Mapped, mapped_column

from spm_service.models.base import Base, TimestampMixin


class ProductRecord(Base, TimestampMixin):
    """Product - flat catalogue record."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    price: Mapped[float | None] = mapped_column(Float, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    taxonomy_node_id: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    product_owner: Mapped[str | None] = mapped_column(String(100), nullable=True)
    product_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lifecycle_status: Mapped[str | None] = mapped_column(String(100), nullable=True)
    modernity: Mapped[str | None] = mapped_column(String(20), nullable=True)
    business_criticality: Mapped[str | None] = mapped_column(String(20), nullable=True)
    lifecycle_stage: Mapped[str | None] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<ProductRecord(id='{self.id}', name='{self.name}')>"
