# ===================================
# app/services/signalement_service.py
# ===================================
"""
Orchestration du calcul d'urgence des signalements.

Pour un signalement : rotation trouvée par le RotationMatcher, calcul par le
moteur d'urgence, puis écriture en une requête de l'urgence, de la
probabilité d'écoulement et, le cas échéant, du passage EN_ATTENTE -> A_VERIFIER.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, SignalementNotFoundError
from app.models.signalement import Signalement, SignalementStatus
from app.repositories.rotation_repo import RotationRepository
from app.repositories.signalement_repo import SignalementRepository
from app.schemas.signalement import SignalementCreate, SignalementUpdate
from app.services.financial_loss import FinancialLoss, estimate_financial_loss
from app.services.rotation_matcher import (
    MatchStrategy, RotationLike, RotationMatcher, RotationSnapshot,
)
from app.services.urgency_engine import (
    UrgencyResult, compute_classic, compute_urgency, compute_with_rotation,
)

logger = logging.getLogger(__name__)

# Champs dont la modification invalide l'urgence calculée
URGENCY_INPUT_FIELDS = {"product_code", "quantity", "expiration_date"}


@dataclass(frozen=True)
class UrgencyUpdate:
    """Résultat de la mise à jour d'un signalement"""
    signalement_id: int
    result: UrgencyResult
    rotation: Optional[RotationLike]
    strategy: Optional[MatchStrategy]
    previous_status: SignalementStatus
    new_status: SignalementStatus

    @property
    def rotation_found(self) -> bool:
        return self.rotation is not None

    @property
    def auto_verified(self) -> bool:
        return self.new_status != self.previous_status


@dataclass
class RecalculationReport:
    processed: int = 0
    with_rotation: int = 0
    auto_verified: int = 0
    failed: int = 0

    @property
    def without_rotation(self) -> int:
        return self.processed - self.with_rotation


@dataclass(frozen=True)
class UrgencyPreview:
    signalement: Signalement
    rotation: Optional[RotationLike]
    strategy: Optional[MatchStrategy]
    classic: UrgencyResult
    with_rotation: Optional[UrgencyResult]
    recommended: UrgencyResult
    recommended_status: SignalementStatus
    financial_loss: Optional[FinancialLoss]


def next_status(current: SignalementStatus, result: UrgencyResult) -> SignalementStatus:
    """Seule transition automatique : EN_ATTENTE -> A_VERIFIER"""
    if result.should_auto_verify and current == SignalementStatus.PENDING:
        return SignalementStatus.TO_VERIFY
    return current


class SignalementService:
    """Service pour la logique métier des signalements"""

    def __init__(self, db: Session, today: Optional[date] = None):
        self.db = db
        self.today = today
        self.signalement_repo = SignalementRepository(db)
        self.rotation_repo = RotationRepository(db)

    def _today(self) -> date:
        return self.today or date.today()

    def _get_or_raise(self, signalement_id: int) -> Signalement:
        signalement = self.signalement_repo.get_by_id(signalement_id)
        if signalement is None:
            raise SignalementNotFoundError(signalement_id)
        return signalement

    # --- CRUD ---

    def get_signalement(self, signalement_id: int) -> Signalement:
        return self._get_or_raise(signalement_id)

    def list_signalements(self, **filters):
        return self.signalement_repo.list_signalements(**filters)

    def create_signalement(self, data: SignalementCreate) -> Signalement:
        """
        Créer un signalement et calculer immédiatement son urgence.
        Le signalement et son urgence sont validés par le même commit.
        """
        signalement = self.signalement_repo.create(
            product_code=data.product_code,
            quantity=data.quantity,
            expiration_date=data.expiration_date,
            comment=data.comment,
            commit=False,
        )
        try:
            self.update_urgency(signalement.id)
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(signalement)
        logger.info("Signalement créé", extra={
            "signalement_id": signalement.id,
            "product_code": signalement.product_code,
            "quantity": signalement.quantity,
        })
        return signalement

    def update_signalement(self, signalement_id: int, data: SignalementUpdate) -> Signalement:
        signalement = self._get_or_raise(signalement_id)
        update_data = data.model_dump(exclude_unset=True)
        signalement = self.signalement_repo.update(signalement, update_data)

        if URGENCY_INPUT_FIELDS & update_data.keys():
            self.update_urgency(signalement_id)
            self.db.refresh(signalement)
        return signalement

    def delete_signalement(self, signalement_id: int) -> None:
        signalement = self._get_or_raise(signalement_id)
        self.signalement_repo.delete(signalement)
        logger.info("Signalement supprimé", extra={"signalement_id": signalement_id})

    def bulk_update_status(self, signalement_ids: List[int], new_status: SignalementStatus) -> int:
        """Changement de statut manuel, tout ou rien"""
        ids = set(signalement_ids)
        existing = self.signalement_repo.get_many(ids)
        if len(existing) != len(ids):
            raise NotFoundError("Certains signalements n'existent pas")

        count = self.signalement_repo.bulk_update_status(list(ids), new_status)
        logger.info("Changement de statut en masse", extra={
            "count": count, "new_status": new_status.value,
        })
        return count

    # --- Urgence ---

    def update_urgency(self, signalement_id: int,
                       matcher: Optional[RotationMatcher] = None) -> UrgencyUpdate:
        """Recalculer et enregistrer l'urgence d'un signalement"""
        signalement = self._get_or_raise(signalement_id)
        matcher = matcher or RotationMatcher(self.rotation_repo)

        match = matcher.match(signalement.product_code)
        rotation = match.rotation if match else None

        result = compute_urgency(
            signalement.quantity,
            signalement.expiration_date,
            rotation.monthly_rotation if rotation is not None else None,
            today=self._today(),
        )
        previous_status = signalement.status
        new_status = next_status(previous_status, result)

        self.signalement_repo.save_urgency(
            signalement_id,
            tier=result.tier,
            probability=result.sell_through_probability,
            status=new_status,
            updated_at=datetime.now(timezone.utc),
        )

        logger.info("Urgence recalculée", extra={
            "signalement_id": signalement_id,
            "rotation_id": rotation.id if rotation is not None else None,
            "match_strategy": match.strategy.value if match else None,
            "tier": result.tier.value,
            "sell_through_probability": result.sell_through_probability,
            "months_remaining": result.breakdown.months_remaining,
            "status_before": previous_status.value,
            "status_after": new_status.value,
        })

        return UrgencyUpdate(
            signalement_id=signalement_id,
            result=result,
            rotation=rotation,
            strategy=match.strategy if match else None,
            previous_status=previous_status,
            new_status=new_status,
        )

    def recalculate_signalement(self, signalement_id: int) -> Signalement:
        """Recalcul unitaire, renvoie le signalement à jour"""
        self.update_urgency(signalement_id)
        signalement = self._get_or_raise(signalement_id)
        self.db.refresh(signalement)
        return signalement

    def _snapshot_matcher(self) -> RotationMatcher:
        return RotationMatcher(RotationSnapshot(self.rotation_repo.candidates()))

    def recompute_open(self) -> RecalculationReport:
        """
        Recalculer tous les signalements EN_ATTENTE ou EN_COURS.

        Chaque signalement est écrit indépendamment : un échec est journalisé,
        compté, et n'interrompt pas le lot.
        """
        signalement_ids = [s.id for s in self.signalement_repo.list_open()]
        matcher = self._snapshot_matcher()
        report = RecalculationReport()

        logger.info("Recalcul des urgences démarré", extra={"count": len(signalement_ids)})

        for signalement_id in signalement_ids:
            try:
                update = self.update_urgency(signalement_id, matcher=matcher)
            except Exception:
                self.db.rollback()
                report.failed += 1
                logger.exception("Échec du recalcul", extra={"signalement_id": signalement_id})
                continue

            report.processed += 1
            if update.rotation_found:
                report.with_rotation += 1
            if update.auto_verified:
                report.auto_verified += 1

        logger.info("Recalcul des urgences terminé", extra={
            "processed": report.processed,
            "with_rotation": report.with_rotation,
            "auto_verified": report.auto_verified,
            "failed": report.failed,
        })
        return report

    def recompute_many(self, signalement_ids: Iterable[int]) -> dict:
        """Recalcul sélectif ; les identifiants inconnus comptent comme erreurs"""
        ids = list(signalement_ids)
        matcher = self._snapshot_matcher()
        processed = errors = 0

        for signalement_id in ids:
            try:
                self.update_urgency(signalement_id, matcher=matcher)
                processed += 1
            except Exception:
                self.db.rollback()
                errors += 1
                logger.exception("Échec du recalcul", extra={"signalement_id": signalement_id})

        return {"requested": len(ids), "processed": processed, "errors": errors}

    def preview_urgency(self, signalement_id: int) -> UrgencyPreview:
        """Calculs classique et avec rotation côte à côte, sans écriture"""
        signalement = self._get_or_raise(signalement_id)
        match = RotationMatcher(self.rotation_repo).match(signalement.product_code)
        rotation = match.rotation if match else None
        today = self._today()

        classic = compute_classic(signalement.quantity, signalement.expiration_date, today=today)
        with_rotation = None
        financial_loss = None
        if rotation is not None:
            with_rotation = compute_with_rotation(
                signalement.quantity,
                signalement.expiration_date,
                rotation.monthly_rotation,
                today=today,
            )
            financial_loss = estimate_financial_loss(
                with_rotation.breakdown.surplus, rotation.unit_purchase_price
            )

        recommended = with_rotation or classic
        return UrgencyPreview(
            signalement=signalement,
            rotation=rotation,
            strategy=match.strategy if match else None,
            classic=classic,
            with_rotation=with_rotation,
            recommended=recommended,
            recommended_status=next_status(signalement.status, recommended),
            financial_loss=financial_loss,
        )

    def get_stats(self) -> dict:
        return {
            "by_status": self.signalement_repo.count_by_status(),
            "by_urgency": self.signalement_repo.count_by_urgency(),
        }
