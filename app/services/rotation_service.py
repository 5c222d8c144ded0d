# ===================================
# app/services/rotation_service.py
# ===================================

import csv
import logging
import math
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import InvalidInputError, RotationNotFoundError
from app.models.rotation import ProductRotation
from app.repositories.rotation_repo import RotationRepository
from app.schemas.rotation import (
    RotationCreate, RotationImportError, RotationImportResult, RotationImportRow,
)
from app.services.rotation_matcher import RotationMatch, RotationMatcher
from app.utils.codes import MIN_SIGNIFICANT_LENGTH, MAX_CODE_LENGTH, digits_only, normalize_code

logger = logging.getLogger(__name__)

MAX_ROTATION = 1000

CSV_TEMPLATE = "ean_code,monthly_rotation\n1234567890123,25.5\n9876543210987,12.0\n5555555555555,8.75\n"


def parse_rotation_csv(content: str) -> List[RotationImportRow]:
    """
    Lit un CSV "code;rotation" (séparateur ; , ou tabulation, virgule décimale
    acceptée). L'en-tête est ignoré s'il mentionne "ean".
    """
    lines = [line.strip() for line in content.strip().splitlines()]
    if lines and "ean" in lines[0].lower():
        lines = lines[1:]

    rows = []
    for line in lines:
        if not line:
            continue
        delimiter = ";" if ";" in line else "\t" if "\t" in line else ","
        fields = next(csv.reader([line], delimiter=delimiter))
        if len(fields) < 2:
            continue

        code, rotation_text = fields[0].strip(), fields[1].strip()
        if not code or not rotation_text:
            continue
        try:
            rotation = float(rotation_text.replace(",", "."))
        except ValueError:
            rotation = math.nan
        price = None
        if len(fields) > 2 and fields[2].strip():
            try:
                price = float(fields[2].strip().replace(",", "."))
            except ValueError:
                price = None
        rows.append(RotationImportRow(ean_code=code, monthly_rotation=rotation, unit_purchase_price=price))

    return rows


def validate_import_row(row: RotationImportRow) -> Optional[str]:
    """Message d'erreur pour une ligne invalide, None si elle est acceptable"""
    code = (row.ean_code or "").strip()
    if not code:
        return "Code EAN manquant"
    if not code.isdigit():
        return "Le code EAN doit contenir uniquement des chiffres"
    if not MIN_SIGNIFICANT_LENGTH <= len(code) <= MAX_CODE_LENGTH:
        return "Code EAN de longueur invalide (8 à 20 chiffres)"
    if row.monthly_rotation is None or math.isnan(row.monthly_rotation) or row.monthly_rotation < 0:
        return "Rotation invalide (doit être ≥ 0)"
    if row.monthly_rotation > MAX_ROTATION:
        return f"Rotation trop élevée (max {MAX_ROTATION})"
    if row.unit_purchase_price is not None and row.unit_purchase_price < 0:
        return "Prix d'achat invalide (doit être ≥ 0)"
    return None


class RotationService:
    """Service pour la gestion des rotations produits"""

    def __init__(self, db: Session):
        self.db = db
        self.rotation_repo = RotationRepository(db)

    def get_rotation(self, rotation_id: int) -> ProductRotation:
        rotation = self.rotation_repo.get_by_id(rotation_id)
        if rotation is None:
            raise RotationNotFoundError(rotation_id)
        return rotation

    def upsert_rotation(self, data: RotationCreate) -> Tuple[ProductRotation, bool]:
        """Créer ou mettre à jour la rotation d'un code (clé : code normalisé)"""
        rotation, created = self.rotation_repo.upsert(
            normalize_code(data.ean_code),
            data.monthly_rotation,
            data.unit_purchase_price,
        )
        logger.info("Rotation enregistrée", extra={
            "rotation_id": rotation.id,
            "ean_code": rotation.ean_code,
            "monthly_rotation": float(rotation.monthly_rotation),
            "is_new": created,
        })
        return rotation, created

    def delete_rotation(self, rotation_id: int) -> None:
        rotation = self.get_rotation(rotation_id)
        self.rotation_repo.delete(rotation)
        logger.info("Rotation supprimée", extra={"rotation_id": rotation_id})

    def import_rotations(self, rows: List[RotationImportRow]) -> RotationImportResult:
        """
        Import en masse. Chaque ligne est validée et enregistrée séparément ;
        les lignes en erreur sont rapportées avec leur numéro (à partir de 1).
        """
        if not rows:
            raise InvalidInputError("Aucune donnée valide trouvée")
        if len(rows) > settings.rotation_import_max_rows:
            raise InvalidInputError(f"Maximum {settings.rotation_import_max_rows} lignes par import")

        result = RotationImportResult()

        for line, row in enumerate(rows, start=1):
            code = (row.ean_code or "").strip()
            error = validate_import_row(row)
            if error:
                result.errors.append(RotationImportError(line=line, ean_code=code, error=error))
                continue

            try:
                _, created = self.rotation_repo.upsert(
                    normalize_code(code),
                    round(Decimal(str(row.monthly_rotation)), 2),
                    Decimal(str(row.unit_purchase_price)) if row.unit_purchase_price is not None else None,
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.exception("Erreur import rotation", extra={"line": line, "ean_code": code})
                result.errors.append(RotationImportError(
                    line=line, ean_code=code, error=f"Erreur technique: {e.__class__.__name__}"
                ))
                continue

            result.success += 1
            if created:
                result.created += 1
            else:
                result.updated += 1

        logger.info("Import des rotations terminé", extra={
            "rows": len(rows),
            "success": result.success,
            "created_count": result.created,
            "updated_count": result.updated,
            "errors": len(result.errors),
        })
        return result

    def import_csv(self, content: str) -> Tuple[List[RotationImportRow], RotationImportResult]:
        if not content.strip():
            raise InvalidInputError("Fichier CSV vide")
        rows = parse_rotation_csv(content)
        return rows, self.import_rotations(rows)

    def list_rotations(self, skip: int = 0, limit: int = 100, search: Optional[str] = None,
                       rotation_min: Optional[float] = None, rotation_max: Optional[float] = None):
        search_digits = digits_only(search) if search else None
        return self.rotation_repo.get_rotations(
            skip=skip, limit=limit, search=search_digits or None,
            rotation_min=rotation_min, rotation_max=rotation_max,
        )

    def get_stats(self) -> dict:
        return self.rotation_repo.get_stats()

    def match_code(self, code: str) -> Optional[RotationMatch]:
        """Rotation retenue pour un code, et par quelle stratégie"""
        return RotationMatcher(self.rotation_repo).match(code)
