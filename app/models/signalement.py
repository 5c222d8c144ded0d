# ===================================
# app/models/signalement.py
# ===================================
import enum

from sqlalchemy import Column, Integer, String, Date, DateTime, Text, Numeric, Enum, CheckConstraint
from sqlalchemy.sql import func

from app.core.database import Base


class SignalementStatus(str, enum.Enum):
    """Cycle de vie d'un signalement de péremption"""
    PENDING = "EN_ATTENTE"          # En attente de traitement
    IN_PROGRESS = "EN_COURS"        # Action en cours
    TO_DESTOCK = "A_DESTOCKER"      # À transférer vers une autre pharmacie
    TO_VERIFY = "A_VERIFIER"        # Vérification terrain nécessaire
    SELLING_THROUGH = "ECOULEMENT"  # On laisse s'écouler
    DESTROYED = "DETRUIT"           # Détruit définitivement


# Statuts repris par le recalcul en masse
OPEN_STATUSES = (SignalementStatus.PENDING, SignalementStatus.IN_PROGRESS)


class UrgencyTier(str, enum.Enum):
    """Niveau d'urgence calculé, distinct du statut"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _TIER_RANKS[self]


_TIER_RANKS = {
    UrgencyTier.LOW: 0,
    UrgencyTier.MEDIUM: 1,
    UrgencyTier.HIGH: 2,
    UrgencyTier.CRITICAL: 3,
}


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Signalement(Base):
    __tablename__ = "signalements"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="check_signalement_quantity_positive"),
        CheckConstraint(
            "sell_through_probability IS NULL OR "
            "(sell_through_probability >= 0 AND sell_through_probability <= 100)",
            name="check_signalement_probability_range",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_code = Column(String(20), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    expiration_date = Column(Date, nullable=False, index=True)
    comment = Column(Text, nullable=True)

    status = Column(
        Enum(SignalementStatus, name="signalement_status", values_callable=_enum_values),
        nullable=False,
        default=SignalementStatus.PENDING,
        index=True,
    )

    # Champs dérivés, écrits uniquement par SignalementService.update_urgency
    computed_urgency = Column(
        Enum(UrgencyTier, name="urgency_tier", values_callable=_enum_values),
        nullable=True,
        index=True,
    )
    sell_through_probability = Column(Numeric(5, 2), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Signalement(id={self.id}, code='{self.product_code}', status={self.status})>"

    @property
    def is_open(self) -> bool:
        """Signalement encore concerné par le recalcul automatique"""
        return self.status in OPEN_STATUSES
