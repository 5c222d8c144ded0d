# ===================================
# app/services/inventaire_service.py
# ===================================

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import (
    ConflictError, ForbiddenOperationError, InvalidInputError,
    InventaireItemNotFoundError, InventaireNotFoundError,
)
from app.models.inventaire import Inventaire, InventaireItem, InventaireStatus
from app.repositories.inventaire_repo import InventaireRepository
from app.schemas.inventaire import (
    InventaireCreate, InventaireItemCreate, InventaireStats, InventaireUpdate,
)
from app.schemas.signalement import SignalementCreate
from app.services.signalement_service import SignalementService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemAddition:
    item: InventaireItem
    is_duplicate: bool
    previous_quantity: int
    signalement_id: Optional[int] = None


def _as_aware(value: datetime) -> datetime:
    # SQLite rend des datetimes naïfs
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def inventaire_stats(inventaire: Inventaire) -> InventaireStats:
    elapsed = None
    if inventaire.created_at is not None:
        end = inventaire.finished_at or datetime.now(timezone.utc)
        elapsed = max(0, int((_as_aware(end) - _as_aware(inventaire.created_at)).total_seconds()))
    return InventaireStats(
        distinct_products=inventaire.distinct_products,
        total_quantity=inventaire.total_quantity,
        total_items=inventaire.items_count,
        elapsed_seconds=elapsed,
    )


def export_lines(items: List[InventaireItem]) -> List[str]:
    """Une ligne "code;quantité" par code, quantités cumulées, triée par code"""
    totals = defaultdict(int)
    for item in items:
        totals[item.ean_code] += item.quantity
    return [f"{code};{quantity}" for code, quantity in sorted(totals.items())]


class InventaireService:
    """Service pour les sessions d'inventaire"""

    def __init__(self, db: Session, today: Optional[date] = None):
        self.db = db
        self.inventaire_repo = InventaireRepository(db)
        self.signalement_service = SignalementService(db, today=today)

    def get_inventaire(self, inventaire_id: int, with_items: bool = True) -> Inventaire:
        inventaire = self.inventaire_repo.get_by_id(inventaire_id, with_items=with_items)
        if inventaire is None:
            raise InventaireNotFoundError(inventaire_id)
        return inventaire

    def _get_editable(self, inventaire_id: int) -> Inventaire:
        inventaire = self.get_inventaire(inventaire_id)
        if not inventaire.is_editable:
            raise ForbiddenOperationError("Impossible de modifier un inventaire terminé")
        return inventaire

    def list_inventaires(self, **filters) -> Tuple[List[Inventaire], int]:
        return self.inventaire_repo.get_inventaires(**filters)

    def create_inventaire(self, data: InventaireCreate) -> Inventaire:
        """Un seul inventaire peut être en cours à la fois"""
        current = self.inventaire_repo.get_in_progress()
        if current is not None:
            raise ConflictError(
                "Un inventaire est déjà en cours",
                details={
                    "inventaire_id": current.id,
                    "name": current.name,
                    "message": "Terminez l'inventaire en cours avant d'en créer un nouveau",
                },
            )

        inventaire = self.inventaire_repo.create(data.name, data.description)
        logger.info("Inventaire créé", extra={"inventaire_id": inventaire.id, "inventaire_name": inventaire.name})
        return inventaire

    def update_inventaire(self, inventaire_id: int, data: InventaireUpdate) -> Inventaire:
        inventaire = self.get_inventaire(inventaire_id)
        if inventaire.status == InventaireStatus.ARCHIVED:
            raise ForbiddenOperationError("Impossible de modifier un inventaire archivé")
        return self.inventaire_repo.update(inventaire, data.model_dump(exclude_unset=True))

    def delete_inventaire(self, inventaire_id: int) -> None:
        inventaire = self.get_inventaire(inventaire_id)
        if inventaire.items_count > 0:
            raise ConflictError(
                "Impossible de supprimer un inventaire contenant des produits",
                details={"items_count": inventaire.items_count},
            )
        self.inventaire_repo.delete(inventaire)
        logger.info("Inventaire supprimé", extra={"inventaire_id": inventaire_id})

    def finish_inventaire(self, inventaire_id: int, force: bool = False) -> Inventaire:
        inventaire = self.get_inventaire(inventaire_id)
        if inventaire.status != InventaireStatus.IN_PROGRESS:
            raise ConflictError("Cet inventaire est déjà terminé")
        if inventaire.items_count == 0 and not force:
            raise InvalidInputError("Impossible de terminer un inventaire vide")

        inventaire = self.inventaire_repo.finish(inventaire)
        logger.info("Inventaire terminé", extra={
            "inventaire_id": inventaire.id,
            "items": inventaire.items_count,
            "total_quantity": inventaire.total_quantity,
        })
        return inventaire

    # --- Lignes ---

    def add_item(self, inventaire_id: int, data: InventaireItemCreate) -> ItemAddition:
        """
        Ajouter un produit scanné. Un code déjà présent voit sa quantité
        cumulée ; avec une date de péremption, un signalement est aussi créé.
        """
        self._get_editable(inventaire_id)

        existing = self.inventaire_repo.find_item_by_code(inventaire_id, data.ean_code)
        if existing is not None:
            previous_quantity = existing.quantity
            item = self.inventaire_repo.set_item_quantity(existing, previous_quantity + data.quantity)
        else:
            previous_quantity = 0
            item = self.inventaire_repo.add_item(inventaire_id, data.ean_code, data.quantity)

        signalement_id = None
        if data.expiration_date is not None:
            signalement = self.signalement_service.create_signalement(SignalementCreate(
                product_code=data.ean_code,
                quantity=data.quantity,
                expiration_date=data.expiration_date,
                comment=f"Inventaire #{inventaire_id}",
            ))
            signalement_id = signalement.id

        logger.info("Produit ajouté à l'inventaire", extra={
            "inventaire_id": inventaire_id,
            "ean_code": item.ean_code,
            "quantity": item.quantity,
            "is_duplicate": existing is not None,
        })
        return ItemAddition(
            item=item,
            is_duplicate=existing is not None,
            previous_quantity=previous_quantity,
            signalement_id=signalement_id,
        )

    def _get_item(self, inventaire_id: int, item_id: int) -> InventaireItem:
        self._get_editable(inventaire_id)
        item = self.inventaire_repo.get_item(item_id)
        if item is None:
            raise InventaireItemNotFoundError(item_id)
        if item.inventaire_id != inventaire_id:
            raise ForbiddenOperationError("Ce produit n'appartient pas à cet inventaire")
        return item

    def update_item(self, inventaire_id: int, item_id: int, quantity: int) -> InventaireItem:
        item = self._get_item(inventaire_id, item_id)
        return self.inventaire_repo.set_item_quantity(item, quantity)

    def delete_item(self, inventaire_id: int, item_id: int) -> None:
        item = self._get_item(inventaire_id, item_id)
        self.inventaire_repo.delete_item(item)
        logger.info("Produit retiré de l'inventaire", extra={
            "inventaire_id": inventaire_id, "item_id": item_id,
        })

    def get_items(self, inventaire_id: int) -> List[InventaireItem]:
        self.get_inventaire(inventaire_id, with_items=False)
        return self.inventaire_repo.get_items(inventaire_id)

    def export_csv(self, inventaire_id: int) -> Tuple[str, str]:
        """Nom de fichier et contenu de l'export "ean;quantité" (sans en-tête)"""
        inventaire = self.get_inventaire(inventaire_id)
        content = "\n".join(export_lines(inventaire.items))
        if content:
            content += "\n"
        filename = f"inventaire_{datetime.now():%Y%m%d_%H%M}.csv"
        return filename, content
