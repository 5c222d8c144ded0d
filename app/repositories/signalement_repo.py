from typing import Iterable, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import select, update, func, desc
from datetime import date, datetime, timezone
from decimal import Decimal

from app.models.signalement import Signalement, SignalementStatus, UrgencyTier, OPEN_STATUSES


class SignalementRepository:
    """Repository pour la gestion des signalements"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, signalement_id: int) -> Optional[Signalement]:
        """Récupérer un signalement par son ID"""
        return self.db.get(Signalement, signalement_id)

    def get_many(self, signalement_ids: Iterable[int]) -> List[Signalement]:
        ids = list(signalement_ids)
        if not ids:
            return []
        return list(self.db.scalars(select(Signalement).where(Signalement.id.in_(ids))).all())

    def list_signalements(self, skip: int = 0, limit: int = 20,
                          status: Optional[SignalementStatus] = None,
                          urgency: Optional[UrgencyTier] = None,
                          product_code: Optional[str] = None) -> Tuple[List[Signalement], int]:
        """Récupérer les signalements avec filtres et pagination"""
        query = select(Signalement)

        if status is not None:
            query = query.where(Signalement.status == status)
        if urgency is not None:
            query = query.where(Signalement.computed_urgency == urgency)
        if product_code:
            query = query.where(Signalement.product_code.contains(product_code))

        total = self.db.scalar(select(func.count()).select_from(query.subquery()))

        signalements = self.db.scalars(
            query.order_by(desc(Signalement.created_at), desc(Signalement.id))
            .offset(skip)
            .limit(limit)
        ).all()

        return list(signalements), total or 0

    def list_open(self) -> List[Signalement]:
        """Signalements concernés par le recalcul en masse"""
        return list(self.db.scalars(
            select(Signalement)
            .where(Signalement.status.in_(OPEN_STATUSES))
            .order_by(Signalement.id)
        ).all())

    def create(self, product_code: str, quantity: int, expiration_date: date,
               comment: Optional[str] = None, commit: bool = True) -> Signalement:
        """Créer un signalement (statut EN_ATTENTE)"""
        signalement = Signalement(
            product_code=product_code,
            quantity=quantity,
            expiration_date=expiration_date,
            comment=comment,
            status=SignalementStatus.PENDING,
        )
        self.db.add(signalement)
        if commit:
            self.db.commit()
            self.db.refresh(signalement)
        else:
            self.db.flush()
        return signalement

    def update(self, signalement: Signalement, update_data: dict) -> Signalement:
        """Mettre à jour les champs saisis d'un signalement"""
        for field, value in update_data.items():
            if hasattr(signalement, field):
                setattr(signalement, field, value)

        signalement.updated_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(signalement)
        return signalement

    def save_urgency(self, signalement_id: int, tier: UrgencyTier, probability: float,
                     status: SignalementStatus, updated_at: datetime) -> None:
        """Écrire urgence, probabilité et statut en une seule requête"""
        self.db.execute(
            update(Signalement)
            .where(Signalement.id == signalement_id)
            .values(
                computed_urgency=tier,
                sell_through_probability=Decimal(str(probability)),
                status=status,
                updated_at=updated_at,
            )
            .execution_options(synchronize_session="fetch")
        )
        self.db.commit()

    def bulk_update_status(self, signalement_ids: List[int], new_status: SignalementStatus) -> int:
        """Changer le statut de plusieurs signalements"""
        result = self.db.execute(
            update(Signalement)
            .where(Signalement.id.in_(signalement_ids))
            .values(status=new_status, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session="fetch")
        )
        self.db.commit()
        return result.rowcount

    def delete(self, signalement: Signalement) -> None:
        self.db.delete(signalement)
        self.db.commit()

    def count_by_status(self) -> dict:
        rows = self.db.execute(
            select(Signalement.status, func.count()).group_by(Signalement.status)
        ).all()
        return {status.value: count for status, count in rows}

    def count_by_urgency(self) -> dict:
        rows = self.db.execute(
            select(Signalement.computed_urgency, func.count())
            .where(Signalement.computed_urgency.is_not(None))
            .group_by(Signalement.computed_urgency)
        ).all()
        return {tier.value: count for tier, count in rows}
