# ===================================
# app/repositories/inventaire_repo.py
# ===================================
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select, func, or_, desc, case
from datetime import date, datetime, time, timezone

from app.models.inventaire import Inventaire, InventaireItem, InventaireStatus


class InventaireRepository:
    """Repository pour les inventaires et leurs lignes de comptage"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, inventaire_id: int, with_items: bool = False) -> Optional[Inventaire]:
        query = select(Inventaire).where(Inventaire.id == inventaire_id)
        if with_items:
            query = query.options(selectinload(Inventaire.items))
        return self.db.scalar(query)

    def get_in_progress(self) -> Optional[Inventaire]:
        """L'inventaire en cours, s'il y en a un"""
        return self.db.scalar(
            select(Inventaire).where(Inventaire.status == InventaireStatus.IN_PROGRESS).limit(1)
        )

    def get_inventaires(self, skip: int = 0, limit: int = 20,
                        status: Optional[InventaireStatus] = None,
                        search: Optional[str] = None,
                        date_from: Optional[date] = None,
                        date_to: Optional[date] = None) -> Tuple[List[Inventaire], int]:
        """Récupérer les inventaires avec filtres, les inventaires en cours d'abord"""
        query = select(Inventaire)

        if status is not None:
            query = query.where(Inventaire.status == status)
        if search:
            query = query.where(or_(
                Inventaire.name.ilike(f"%{search}%"),
                Inventaire.description.ilike(f"%{search}%"),
            ))
        if date_from:
            query = query.where(Inventaire.created_at >= datetime.combine(date_from, time.min))
        if date_to:
            query = query.where(Inventaire.created_at <= datetime.combine(date_to, time.max))

        total = self.db.scalar(select(func.count()).select_from(query.subquery()))

        in_progress_first = case((Inventaire.status == InventaireStatus.IN_PROGRESS, 0), else_=1)
        inventaires = self.db.scalars(
            query.options(selectinload(Inventaire.items))
            .order_by(in_progress_first, desc(Inventaire.created_at), desc(Inventaire.id))
            .offset(skip)
            .limit(limit)
        ).all()

        return list(inventaires), total or 0

    def create(self, name: str, description: Optional[str] = None) -> Inventaire:
        inventaire = Inventaire(name=name, description=description, status=InventaireStatus.IN_PROGRESS)
        self.db.add(inventaire)
        self.db.commit()
        self.db.refresh(inventaire)
        return inventaire

    def update(self, inventaire: Inventaire, update_data: dict) -> Inventaire:
        for field, value in update_data.items():
            if hasattr(inventaire, field) and value is not None:
                setattr(inventaire, field, value)

        inventaire.updated_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(inventaire)
        return inventaire

    def finish(self, inventaire: Inventaire) -> Inventaire:
        now = datetime.now(timezone.utc)
        inventaire.status = InventaireStatus.FINISHED
        inventaire.finished_at = now
        inventaire.updated_at = now
        self.db.commit()
        self.db.refresh(inventaire)
        return inventaire

    def delete(self, inventaire: Inventaire) -> None:
        self.db.delete(inventaire)
        self.db.commit()

    # --- Lignes ---

    def get_item(self, item_id: int) -> Optional[InventaireItem]:
        return self.db.get(InventaireItem, item_id)

    def get_items(self, inventaire_id: int) -> List[InventaireItem]:
        return list(self.db.scalars(
            select(InventaireItem)
            .where(InventaireItem.inventaire_id == inventaire_id)
            .order_by(desc(InventaireItem.position))
        ).all())

    def find_item_by_code(self, inventaire_id: int, ean_code: str) -> Optional[InventaireItem]:
        return self.db.scalar(
            select(InventaireItem)
            .where(InventaireItem.inventaire_id == inventaire_id, InventaireItem.ean_code == ean_code)
            .limit(1)
        )

    def next_position(self, inventaire_id: int) -> int:
        current = self.db.scalar(
            select(func.max(InventaireItem.position)).where(InventaireItem.inventaire_id == inventaire_id)
        )
        return (current or 0) + 1

    def add_item(self, inventaire_id: int, ean_code: str, quantity: int) -> InventaireItem:
        item = InventaireItem(
            inventaire_id=inventaire_id,
            ean_code=ean_code,
            quantity=quantity,
            position=self.next_position(inventaire_id),
        )
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        return item

    def set_item_quantity(self, item: InventaireItem, quantity: int) -> InventaireItem:
        item.quantity = quantity
        item.updated_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(item)
        return item

    def delete_item(self, item: InventaireItem) -> None:
        self.db.delete(item)
        self.db.commit()
