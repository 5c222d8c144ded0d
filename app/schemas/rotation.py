# ===================================
# app/schemas/rotation.py
# ===================================

from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator


class RotationBase(BaseModel):
    ean_code: str = Field(min_length=8, max_length=20, pattern=r"^[0-9]+$")
    monthly_rotation: Decimal = Field(ge=0, le=1000)
    unit_purchase_price: Optional[Decimal] = Field(None, ge=0)

    @field_validator("ean_code", mode="before")
    @classmethod
    def strip_code(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("monthly_rotation")
    @classmethod
    def round_rotation(cls, v):
        # Arrondi à 2 décimales, comme la colonne
        return round(v, 2)


class RotationCreate(RotationBase):
    pass


class Rotation(BaseModel):
    id: int
    ean_code: str
    normalized_code: str
    monthly_rotation: float
    unit_purchase_price: Optional[float] = None
    last_updated: Optional[datetime] = None

    class Config:
        from_attributes = True


class RotationResponse(BaseModel):
    success: bool = True
    message: str
    created: bool
    data: Rotation


class RotationStats(BaseModel):
    total: int
    average_rotation: float
    max_rotation: float
    last_update: Optional[datetime] = None


class RotationsListResponse(BaseModel):
    success: bool = True
    data: List[Rotation]
    total: int
    skip: int
    limit: int
    stats: RotationStats


class RotationImportRow(BaseModel):
    """Ligne brute : la validation est faite ligne par ligne à l'import"""
    ean_code: str = ""
    monthly_rotation: Optional[float] = None
    unit_purchase_price: Optional[float] = None


class RotationImportRequest(BaseModel):
    rows: List[RotationImportRow] = Field(min_length=1)
    recalculate_urgencies: bool = False


class RotationImportError(BaseModel):
    line: int
    ean_code: str
    error: str


class RotationImportResult(BaseModel):
    success: int = 0
    created: int = 0
    updated: int = 0
    errors: List[RotationImportError] = []


class RotationImportSummary(BaseModel):
    total_processed: int
    successful: int
    failed: int
    created: int
    updated: int


class RotationImportResponse(BaseModel):
    success: bool = True
    result: RotationImportResult
    recalculated_urgencies: int = 0
    summary: RotationImportSummary


class RotationMatchResponse(BaseModel):
    code: str
    normalized_code: str
    matched: bool
    strategy: Optional[str] = None
    rotation: Optional[Rotation] = None


def rotation_out(rotation) -> Optional[Rotation]:
    """Rotation (modèle ou copie détachée du matcher) vers le schéma de sortie"""
    if rotation is None:
        return None
    return Rotation(
        id=rotation.id,
        ean_code=rotation.ean_code,
        normalized_code=rotation.normalized_code,
        monthly_rotation=float(rotation.monthly_rotation),
        unit_purchase_price=float(rotation.unit_purchase_price) if rotation.unit_purchase_price is not None else None,
        last_updated=getattr(rotation, "last_updated", None),
    )
