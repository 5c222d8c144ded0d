# ===================================
# app/models/rotation.py
# ===================================
from sqlalchemy import Column, Integer, String, DateTime, Numeric, CheckConstraint
from sqlalchemy.orm import validates
from sqlalchemy.sql import func

from app.core.database import Base
from app.utils.codes import normalize_code


class ProductRotation(Base):
    """Rotation mensuelle moyenne (ventes) d'un code produit"""
    __tablename__ = "product_rotations"
    __table_args__ = (
        CheckConstraint(
            "monthly_rotation >= 0 AND monthly_rotation <= 1000",
            name="check_rotation_range",
        ),
        CheckConstraint(
            "unit_purchase_price IS NULL OR unit_purchase_price >= 0",
            name="check_rotation_price_positive",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Code tel qu'enregistré ; normalized_code est recalculé à chaque écriture et unique
    ean_code = Column(String(20), unique=True, nullable=False, index=True)
    normalized_code = Column(String(20), unique=True, nullable=False, index=True)

    monthly_rotation = Column(Numeric(10, 2), nullable=False)
    unit_purchase_price = Column(Numeric(10, 2), nullable=True)

    last_updated = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<ProductRotation(id={self.id}, ean='{self.ean_code}', rotation={self.monthly_rotation})>"

    @validates("ean_code")
    def _sync_normalized_code(self, key, value):
        value = value.strip()
        self.normalized_code = normalize_code(value)
        return value
