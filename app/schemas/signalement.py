# ===================================
# app/schemas/signalement.py
# ===================================

from typing import List, Optional, Union
from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.signalement import SignalementStatus, UrgencyTier

PRODUCT_CODE_PATTERN = r"^[0-9]+$"


def _strip_comment(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class SignalementBase(BaseModel):
    product_code: str = Field(min_length=8, max_length=20, pattern=PRODUCT_CODE_PATTERN)
    quantity: int = Field(ge=1, le=10000)
    expiration_date: date
    comment: Optional[str] = Field(None, max_length=500)

    @field_validator("product_code", mode="before")
    @classmethod
    def strip_code(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("comment")
    @classmethod
    def strip_comment(cls, v):
        return _strip_comment(v)


class SignalementCreate(SignalementBase):
    pass


class SignalementUpdate(BaseModel):
    product_code: Optional[str] = Field(None, min_length=8, max_length=20, pattern=PRODUCT_CODE_PATTERN)
    quantity: Optional[int] = Field(None, ge=1, le=10000)
    expiration_date: Optional[date] = None
    comment: Optional[str] = Field(None, max_length=500)

    @field_validator("product_code", mode="before")
    @classmethod
    def strip_code(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("comment")
    @classmethod
    def strip_comment(cls, v):
        return _strip_comment(v)

    @model_validator(mode="after")
    def required_fields_not_null(self):
        # Seul le commentaire peut être effacé
        for field in ("product_code", "quantity", "expiration_date"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} ne peut pas être vide")
        return self


class Signalement(SignalementBase):
    id: int
    status: SignalementStatus
    computed_urgency: Optional[UrgencyTier] = None
    sell_through_probability: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SignalementResponse(BaseModel):
    success: bool = True
    message: str
    data: Signalement


class SignalementsListResponse(BaseModel):
    success: bool = True
    data: List[Signalement]
    total: int
    page: int
    per_page: int
    has_more: bool


class BulkStatusUpdate(BaseModel):
    signalement_ids: List[int] = Field(min_length=1)
    new_status: SignalementStatus


class BulkStatusUpdateResponse(BaseModel):
    success: bool = True
    updated_count: int
    new_status: SignalementStatus


class RecalculateRequest(BaseModel):
    signalement_ids: Optional[List[int]] = None
    all: bool = False

    @model_validator(mode="after")
    def check_target(self):
        if not self.all and not self.signalement_ids:
            raise ValueError("Soit signalement_ids soit all doit être fourni")
        return self


class RecalculationStats(BaseModel):
    """Bilan d'un recalcul de tous les signalements ouverts"""
    processed: int
    with_rotation: int
    without_rotation: int
    auto_verified: int
    failed: int


class SelectiveRecalculationStats(BaseModel):
    requested: int
    processed: int
    errors: int


class RecalculateResponse(BaseModel):
    success: bool = True
    message: str
    stats: Union[RecalculationStats, SelectiveRecalculationStats]


class SignalementStats(BaseModel):
    by_status: dict
    by_urgency: dict
