# ===================================
# app/services/urgency_engine.py
# ===================================
"""
Calcul de l'urgence d'un lot proche de la péremption.

Deux chemins :
- classique (pas de rotation connue) : fonction de la quantité et du nombre
  de jours calendaires restants ;
- avec rotation : prévision d'écoulement sur les mois calendaires restants,
  pondérée par le respect imparfait du FIFO en rayon.

Les jours (chemin classique) et les mois calendaires (chemin rotation) sont
deux unités distinctes et ne doivent pas être unifiées.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Union

from app.core.exceptions import InvalidInputError
from app.models.signalement import UrgencyTier

# Part des ventes théoriques réellement créditée (FIFO imparfait)
FIFO_COMPLIANCE = 0.65
AUTO_VERIFY_THRESHOLD = 85.0
AUTO_VERIFY_MONTHS = 3

CRITICAL_DAYS = 30
NEAR_DAYS = 75
MEDIUM_DAYS = 180

Number = Union[int, float, Decimal]


@dataclass(frozen=True)
class UrgencyBreakdown:
    """Détail du calcul, à titre de diagnostic uniquement"""
    months_remaining: int
    days_remaining: int
    theoretical_sold: float
    fifo_adjusted_sold: float
    surplus: float


@dataclass(frozen=True)
class UrgencyResult:
    tier: UrgencyTier
    sell_through_probability: float
    should_auto_verify: bool
    breakdown: UrgencyBreakdown
    with_rotation: bool = False


def days_between(today: date, expiration_date: date) -> int:
    """Jours calendaires restants (négatif si déjà périmé)"""
    return (expiration_date - today).days


def months_between(today: date, expiration_date: date) -> int:
    """Mois calendaires entiers restants, jour du mois ignoré, jamais négatif"""
    months = (expiration_date.year - today.year) * 12 + (expiration_date.month - today.month)
    return max(0, months)


def classic_tier(quantity: int, days_remaining: int) -> UrgencyTier:
    if days_remaining <= CRITICAL_DAYS:
        return UrgencyTier.CRITICAL
    if days_remaining <= NEAR_DAYS:
        if quantity >= 10:
            return UrgencyTier.HIGH
        if quantity >= 5:
            return UrgencyTier.MEDIUM
        return UrgencyTier.LOW
    if days_remaining <= MEDIUM_DAYS:
        return UrgencyTier.MEDIUM if quantity >= 5 else UrgencyTier.LOW
    return UrgencyTier.LOW


def rotation_tier(probability: float, surplus_pct: float, months_remaining: int) -> UrgencyTier:
    # Forte probabilité d'écoulement : l'excédent calculé n'est plus regardé
    if probability >= AUTO_VERIFY_THRESHOLD:
        return UrgencyTier.MEDIUM if months_remaining <= AUTO_VERIFY_MONTHS else UrgencyTier.LOW

    if surplus_pct >= 80:
        if months_remaining <= 2:
            return UrgencyTier.CRITICAL
        return UrgencyTier.HIGH if months_remaining <= 6 else UrgencyTier.MEDIUM

    if surplus_pct >= 50:
        if months_remaining <= 1:
            return UrgencyTier.CRITICAL
        return UrgencyTier.HIGH if months_remaining <= 4 else UrgencyTier.MEDIUM

    if months_remaining <= 1:
        return UrgencyTier.HIGH
    return UrgencyTier.MEDIUM if months_remaining <= 3 else UrgencyTier.LOW


def _check_quantity(quantity: int) -> None:
    if quantity < 1:
        raise InvalidInputError(f"La quantité doit être supérieure à 0 (reçu: {quantity})")


def compute_classic(quantity: int, expiration_date: date,
                    today: Optional[date] = None) -> UrgencyResult:
    """Urgence sans rotation connue"""
    _check_quantity(quantity)
    today = today or date.today()
    days_remaining = days_between(today, expiration_date)

    return UrgencyResult(
        tier=classic_tier(quantity, days_remaining),
        sell_through_probability=0.0,
        should_auto_verify=False,
        breakdown=UrgencyBreakdown(
            months_remaining=months_between(today, expiration_date),
            days_remaining=days_remaining,
            theoretical_sold=0.0,
            fifo_adjusted_sold=0.0,
            surplus=float(quantity),
        ),
    )


def compute_with_rotation(quantity: int, expiration_date: date, monthly_rotation: Number,
                          today: Optional[date] = None) -> UrgencyResult:
    """Urgence et probabilité d'écoulement à partir de la rotation mensuelle"""
    _check_quantity(quantity)
    today = today or date.today()
    months_remaining = months_between(today, expiration_date)

    theoretical_sold = float(monthly_rotation) * months_remaining
    fifo_adjusted_sold = theoretical_sold * FIFO_COMPLIANCE
    surplus = max(0.0, quantity - fifo_adjusted_sold)

    probability = round(min(100.0, fifo_adjusted_sold / quantity * 100), 2)
    surplus_pct = surplus / quantity * 100

    return UrgencyResult(
        tier=rotation_tier(probability, surplus_pct, months_remaining),
        sell_through_probability=probability,
        should_auto_verify=(
            probability >= AUTO_VERIFY_THRESHOLD and months_remaining <= AUTO_VERIFY_MONTHS
        ),
        breakdown=UrgencyBreakdown(
            months_remaining=months_remaining,
            days_remaining=days_between(today, expiration_date),
            theoretical_sold=round(theoretical_sold, 2),
            fifo_adjusted_sold=round(fifo_adjusted_sold, 2),
            surplus=round(surplus, 2),
        ),
        with_rotation=True,
    )


def compute_urgency(quantity: int, expiration_date: date,
                    monthly_rotation: Optional[Number] = None,
                    today: Optional[date] = None) -> UrgencyResult:
    """Choisit le chemin selon qu'une rotation est connue ou non"""
    if monthly_rotation is None:
        return compute_classic(quantity, expiration_date, today=today)
    return compute_with_rotation(quantity, expiration_date, monthly_rotation, today=today)
