# ===================================
# app/schemas/urgency.py
# ===================================

from typing import Optional
from pydantic import BaseModel

from app.models.signalement import SignalementStatus, UrgencyTier
from app.schemas.rotation import Rotation


class UrgencyBreakdown(BaseModel):
    months_remaining: int
    days_remaining: int
    theoretical_sold: float
    fifo_adjusted_sold: float
    surplus: float

    class Config:
        from_attributes = True


class UrgencyResult(BaseModel):
    tier: UrgencyTier
    sell_through_probability: float
    should_auto_verify: bool
    with_rotation: bool
    breakdown: UrgencyBreakdown

    class Config:
        from_attributes = True


class FinancialLoss(BaseModel):
    lost_quantity: float
    unit_price: float
    amount: float
    level: UrgencyTier

    class Config:
        from_attributes = True


class UrgencySnapshot(BaseModel):
    computed_urgency: Optional[UrgencyTier] = None
    sell_through_probability: Optional[float] = None
    status: SignalementStatus


class UrgencyPreview(BaseModel):
    """Comparaison calcul classique / calcul avec rotation, sans écriture"""
    signalement_id: int
    current: UrgencySnapshot
    rotation: Optional[Rotation] = None
    match_strategy: Optional[str] = None
    classic: UrgencyResult
    with_rotation: Optional[UrgencyResult] = None
    recommended: UrgencySnapshot
    financial_loss: Optional[FinancialLoss] = None
