# ===================================
# app/services/financial_loss.py
# ===================================
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from app.models.signalement import UrgencyTier

# Seuils de perte en euros
LOSS_MEDIUM = 50
LOSS_HIGH = 200
LOSS_CRITICAL = 500


@dataclass(frozen=True)
class FinancialLoss:
    lost_quantity: float
    unit_price: float
    amount: float
    level: UrgencyTier


def loss_level(amount: float) -> UrgencyTier:
    if amount < LOSS_MEDIUM:
        return UrgencyTier.LOW
    if amount < LOSS_HIGH:
        return UrgencyTier.MEDIUM
    if amount < LOSS_CRITICAL:
        return UrgencyTier.HIGH
    return UrgencyTier.CRITICAL


def estimate_financial_loss(surplus: float,
                            unit_price: Optional[Union[float, Decimal]]) -> Optional[FinancialLoss]:
    """
    Valorise l'excédent invendu au prix d'achat.

    Purement informatif : n'influence ni le niveau d'urgence ni le statut.
    Retourne None si le prix d'achat n'est pas connu.
    """
    if unit_price is None:
        return None

    price = float(unit_price)
    amount = round(surplus * price, 2)
    return FinancialLoss(
        lost_quantity=round(surplus, 2),
        unit_price=price,
        amount=amount,
        level=loss_level(amount),
    )
