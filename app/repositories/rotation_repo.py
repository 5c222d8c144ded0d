from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import select, func, desc
from datetime import datetime, timezone
from decimal import Decimal

from app.models.rotation import ProductRotation


class RotationRepository:
    """
    Repository des rotations produits.

    Sert aussi de catalogue au RotationMatcher : recherches exactes sur
    colonnes indexées, parcours ordonné pour les stratégies heuristiques.
    """

    def __init__(self, db: Session):
        self.db = db

    # --- Catalogue du matcher ---

    def find_by_code(self, code: str) -> Optional[ProductRotation]:
        return self.db.scalar(select(ProductRotation).where(ProductRotation.ean_code == code))

    def find_by_normalized_code(self, normalized: str) -> Optional[ProductRotation]:
        return self.db.scalar(
            select(ProductRotation)
            .where(ProductRotation.normalized_code == normalized)
            .order_by(ProductRotation.id)
            .limit(1)
        )

    def candidates(self) -> List[ProductRotation]:
        return list(self.db.scalars(select(ProductRotation).order_by(ProductRotation.id)).all())

    # --- CRUD ---

    def get_by_id(self, rotation_id: int) -> Optional[ProductRotation]:
        return self.db.get(ProductRotation, rotation_id)

    def get_rotations(self, skip: int = 0, limit: int = 100,
                      search: Optional[str] = None,
                      rotation_min: Optional[float] = None,
                      rotation_max: Optional[float] = None) -> Tuple[List[ProductRotation], int]:
        """Récupérer les rotations avec filtres et pagination"""
        query = select(ProductRotation)

        if search:
            query = query.where(ProductRotation.ean_code.contains(search))
        if rotation_min is not None:
            query = query.where(ProductRotation.monthly_rotation >= rotation_min)
        if rotation_max is not None:
            query = query.where(ProductRotation.monthly_rotation <= rotation_max)

        total = self.db.scalar(select(func.count()).select_from(query.subquery()))

        rotations = self.db.scalars(
            query.order_by(desc(ProductRotation.last_updated), desc(ProductRotation.id))
            .offset(skip)
            .limit(limit)
        ).all()

        return list(rotations), total or 0

    def upsert(self, normalized_code: str, monthly_rotation: Decimal,
               unit_purchase_price: Optional[Decimal] = None,
               commit: bool = True) -> Tuple[ProductRotation, bool]:
        """
        Créer ou mettre à jour la rotation d'un code normalisé.
        Retourne (rotation, created).
        """
        now = datetime.now(timezone.utc)
        rotation = self.find_by_normalized_code(normalized_code)
        created = rotation is None

        if created:
            rotation = ProductRotation(
                ean_code=normalized_code,
                monthly_rotation=monthly_rotation,
                unit_purchase_price=unit_purchase_price,
                last_updated=now,
            )
            self.db.add(rotation)
        else:
            rotation.monthly_rotation = monthly_rotation
            if unit_purchase_price is not None:
                rotation.unit_purchase_price = unit_purchase_price
            rotation.last_updated = now
            rotation.updated_at = now

        if commit:
            self.db.commit()
            self.db.refresh(rotation)
        else:
            self.db.flush()
        return rotation, created

    def delete(self, rotation: ProductRotation) -> None:
        self.db.delete(rotation)
        self.db.commit()

    def get_stats(self) -> dict:
        """Statistiques globales des rotations"""
        total, average, maximum, last_update = self.db.execute(
            select(
                func.count(ProductRotation.id),
                func.avg(ProductRotation.monthly_rotation),
                func.max(ProductRotation.monthly_rotation),
                func.max(ProductRotation.last_updated),
            )
        ).one()

        return {
            "total": total or 0,
            "average_rotation": round(float(average), 2) if average is not None else 0.0,
            "max_rotation": float(maximum) if maximum is not None else 0.0,
            "last_update": last_update,
        }
