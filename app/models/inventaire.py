# ===================================
# app/models/inventaire.py
# ===================================
import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.sql import func

from app.core.database import Base


class InventaireStatus(str, enum.Enum):
    """États d'une session de comptage"""
    IN_PROGRESS = "EN_COURS"
    FINISHED = "TERMINE"
    ARCHIVED = "ARCHIVE"


class Inventaire(Base):
    __tablename__ = "inventaires"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        Enum(
            InventaireStatus,
            name="inventaire_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=InventaireStatus.IN_PROGRESS,
        index=True,
    )

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)

    # Relations
    items = relationship(
        "InventaireItem",
        back_populates="inventaire",
        cascade="all, delete-orphan",
        order_by=lambda: InventaireItem.position.desc(),
    )

    def __repr__(self):
        return f"<Inventaire(id={self.id}, name='{self.name}', status={self.status})>"

    @hybrid_property
    def is_editable(self):
        """Seul un inventaire en cours accepte des produits"""
        return self.status == InventaireStatus.IN_PROGRESS

    @property
    def items_count(self) -> int:
        return len(self.items)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def distinct_products(self) -> int:
        return len({item.ean_code for item in self.items})


class InventaireItem(Base):
    __tablename__ = "inventaire_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="check_inventaire_item_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    inventaire_id = Column(Integer, ForeignKey("inventaires.id", ondelete="CASCADE"), nullable=False, index=True)
    ean_code = Column(String(20), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False)  # Ordre de scan

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    inventaire = relationship("Inventaire", back_populates="items")

    def __repr__(self):
        return f"<InventaireItem(id={self.id}, ean='{self.ean_code}', qty={self.quantity})>"
