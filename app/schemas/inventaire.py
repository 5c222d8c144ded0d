# ===================================
# app/schemas/inventaire.py
# ===================================

from typing import List, Optional
from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator

from app.models.inventaire import InventaireStatus


class InventaireBase(BaseModel):
    name: str = Field(min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v):
        if v is None:
            return None
        return v.strip() or None


class InventaireCreate(InventaireBase):
    pass


class InventaireUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class InventaireItemCreate(BaseModel):
    ean_code: str = Field(min_length=8, max_length=20, pattern=r"^[0-9]+$")
    quantity: int = Field(ge=1, le=9999)
    # Si fournie, un signalement de péremption est créé pour ce lot
    expiration_date: Optional[date] = None

    @field_validator("ean_code", mode="before")
    @classmethod
    def strip_code(cls, v):
        return v.strip() if isinstance(v, str) else v


class InventaireItemUpdate(BaseModel):
    quantity: int = Field(ge=1, le=9999)


class InventaireFinish(BaseModel):
    force: bool = False


class InventaireItem(BaseModel):
    id: int
    inventaire_id: int
    ean_code: str
    quantity: int
    position: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InventaireStats(BaseModel):
    distinct_products: int
    total_quantity: int
    total_items: int
    elapsed_seconds: Optional[int] = None


class Inventaire(InventaireBase):
    id: int
    status: InventaireStatus
    items_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InventaireDetail(Inventaire):
    items: List[InventaireItem] = []
    stats: Optional[InventaireStats] = None


class InventaireResponse(BaseModel):
    success: bool = True
    message: str
    data: InventaireDetail


class InventairesListResponse(BaseModel):
    success: bool = True
    data: List[Inventaire]
    total: int
    page: int
    per_page: int
    has_more: bool


class InventaireItemResponse(BaseModel):
    success: bool = True
    message: str
    data: InventaireItem
    is_duplicate: bool = False
    previous_quantity: int = 0
    signalement_id: Optional[int] = None
