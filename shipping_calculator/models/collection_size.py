"""
Package dimensions per artwork collection and size.

Read-only from this service's point of view; rows are maintained by the
catalog admin tooling.
"""
from sqlalchemy import Column, Integer, String, Float, UniqueConstraint

from shipping_calculator.core.database import Base


class CollectionSize(Base):
    """Shipping weight and box dimensions for one size of a collection."""
    __tablename__ = "sizes"
    __table_args__ = (
        UniqueConstraint("collection_id", "size", name="uq_sizes_collection_size"),
    )

    id = Column(Integer, primary_key=True, index=True)
    collection_id = Column(String(64), nullable=False, index=True)
    size = Column(String(32), nullable=False)

    weight_kg = Column(Float, nullable=True)
    length_cm = Column(Float, nullable=True)
    width_cm = Column(Float, nullable=True)
    height_cm = Column(Float, nullable=True)
