# ===================================
# app/api/v1/signalements.py
# ===================================
from typing import Any, Optional
from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_signalement_service
from app.models.signalement import SignalementStatus, UrgencyTier
from app.schemas.rotation import rotation_out
from app.schemas.signalement import (
    Signalement,
    SignalementCreate,
    SignalementUpdate,
    SignalementResponse,
    SignalementsListResponse,
    SignalementStats,
    BulkStatusUpdate,
    BulkStatusUpdateResponse,
    RecalculateRequest,
    RecalculateResponse,
    RecalculationStats,
    SelectiveRecalculationStats,
)
from app.schemas.urgency import FinancialLoss, UrgencyPreview, UrgencyResult, UrgencySnapshot
from app.services.signalement_service import SignalementService

router = APIRouter()


@router.get("/", response_model=SignalementsListResponse)
def list_signalements(
    skip: int = Query(0, ge=0, description="Nombre d'éléments à ignorer"),
    limit: int = Query(20, ge=1, le=100, description="Nombre d'éléments à retourner"),
    status_filter: Optional[SignalementStatus] = Query(None, alias="status", description="Filtrer par statut"),
    urgency: Optional[UrgencyTier] = Query(None, description="Filtrer par niveau d'urgence"),
    product_code: Optional[str] = Query(None, description="Recherche sur le code produit"),
    service: SignalementService = Depends(get_signalement_service)
) -> Any:
    """
    Récupérer la liste des signalements avec filtres et pagination
    """
    signalements, total = service.list_signalements(
        skip=skip,
        limit=limit,
        status=status_filter,
        urgency=urgency,
        product_code=product_code,
    )

    return SignalementsListResponse(
        data=[Signalement.model_validate(s) for s in signalements],
        total=total,
        page=(skip // limit) + 1,
        per_page=limit,
        has_more=(skip + limit) < total
    )


@router.get("/stats", response_model=SignalementStats)
def get_signalement_stats(service: SignalementService = Depends(get_signalement_service)) -> Any:
    """Répartition des signalements par statut et par urgence"""
    return SignalementStats(**service.get_stats())


@router.post("/", response_model=SignalementResponse, status_code=status.HTTP_201_CREATED)
def create_signalement(
    signalement_in: SignalementCreate,
    service: SignalementService = Depends(get_signalement_service)
) -> Any:
    """
    Créer un signalement de péremption ; l'urgence est calculée immédiatement
    """
    signalement = service.create_signalement(signalement_in)

    return SignalementResponse(
        message="Signalement créé avec succès",
        data=Signalement.model_validate(signalement)
    )


@router.post("/bulk-update", response_model=BulkStatusUpdateResponse)
def bulk_update_status(
    bulk_in: BulkStatusUpdate,
    service: SignalementService = Depends(get_signalement_service)
) -> Any:
    """
    Changer le statut de plusieurs signalements (404 si l'un d'eux n'existe pas)
    """
    count = service.bulk_update_status(bulk_in.signalement_ids, bulk_in.new_status)
    return BulkStatusUpdateResponse(updated_count=count, new_status=bulk_in.new_status)


@router.post("/recalculate", response_model=RecalculateResponse)
def recalculate_urgencies(
    request: RecalculateRequest,
    service: SignalementService = Depends(get_signalement_service)
) -> Any:
    """
    Recalculer les urgences : tous les signalements ouverts, ou une liste d'identifiants
    """
    if request.all:
        report = service.recompute_open()
        return RecalculateResponse(
            message=f"{report.processed} signalements recalculés",
            stats=RecalculationStats(
                processed=report.processed,
                with_rotation=report.with_rotation,
                without_rotation=report.without_rotation,
                auto_verified=report.auto_verified,
                failed=report.failed,
            )
        )

    stats = service.recompute_many(request.signalement_ids)
    return RecalculateResponse(
        message=f"{stats['processed']} signalements recalculés",
        stats=SelectiveRecalculationStats(**stats)
    )


@router.get("/{signalement_id}", response_model=SignalementResponse)
def get_signalement(
    signalement_id: int,
    service: SignalementService = Depends(get_signalement_service)
) -> Any:
    signalement = service.get_signalement(signalement_id)
    return SignalementResponse(
        message="Signalement récupéré",
        data=Signalement.model_validate(signalement)
    )


@router.put("/{signalement_id}", response_model=SignalementResponse)
def update_signalement(
    signalement_id: int,
    signalement_in: SignalementUpdate,
    service: SignalementService = Depends(get_signalement_service)
) -> Any:
    """
    Modifier un signalement ; l'urgence est recalculée si le code, la quantité
    ou la date change
    """
    signalement = service.update_signalement(signalement_id, signalement_in)
    return SignalementResponse(
        message="Signalement mis à jour avec succès",
        data=Signalement.model_validate(signalement)
    )


@router.delete("/{signalement_id}")
def delete_signalement(
    signalement_id: int,
    service: SignalementService = Depends(get_signalement_service)
) -> Any:
    service.delete_signalement(signalement_id)
    return {"success": True, "message": "Signalement supprimé avec succès"}


@router.post("/{signalement_id}/recalculate", response_model=SignalementResponse)
def recalculate_signalement(
    signalement_id: int,
    service: SignalementService = Depends(get_signalement_service)
) -> Any:
    """Recalculer l'urgence d'un signalement"""
    signalement = service.recalculate_signalement(signalement_id)
    return SignalementResponse(
        message="Urgence recalculée",
        data=Signalement.model_validate(signalement)
    )


@router.get("/{signalement_id}/urgency-preview", response_model=UrgencyPreview)
def preview_urgency(
    signalement_id: int,
    service: SignalementService = Depends(get_signalement_service)
) -> Any:
    """
    Comparer le calcul classique et le calcul avec rotation, sans rien enregistrer
    """
    preview = service.preview_urgency(signalement_id)
    signalement = preview.signalement

    return UrgencyPreview(
        signalement_id=signalement.id,
        current=UrgencySnapshot(
            computed_urgency=signalement.computed_urgency,
            sell_through_probability=signalement.sell_through_probability,
            status=signalement.status,
        ),
        rotation=rotation_out(preview.rotation),
        match_strategy=preview.strategy.value if preview.strategy else None,
        classic=UrgencyResult.model_validate(preview.classic),
        with_rotation=UrgencyResult.model_validate(preview.with_rotation) if preview.with_rotation else None,
        recommended=UrgencySnapshot(
            computed_urgency=preview.recommended.tier,
            sell_through_probability=preview.recommended.sell_through_probability,
            status=preview.recommended_status,
        ),
        financial_loss=FinancialLoss.model_validate(preview.financial_loss) if preview.financial_loss else None,
    )
