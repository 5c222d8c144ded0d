# ===================================
# app/api/v1/rotations.py
# ===================================
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import Response

from app.api.deps import get_rotation_service
from app.core.exceptions import InvalidInputError
from app.schemas.rotation import (
    Rotation,
    RotationCreate,
    RotationResponse,
    RotationsListResponse,
    RotationStats,
    RotationImportRequest,
    RotationImportResponse,
    RotationImportResult,
    RotationImportRow,
    RotationImportSummary,
    RotationMatchResponse,
    rotation_out,
)
from app.services.rotation_service import CSV_TEMPLATE, RotationService
from app.services.signalement_service import SignalementService
from app.utils.codes import normalize_code

router = APIRouter()


def _import_response(service: RotationService, rows: List[RotationImportRow],
                     result: RotationImportResult, recalculate: bool) -> RotationImportResponse:
    recalculated = 0
    if recalculate and result.success > 0:
        recalculated = SignalementService(service.db).recompute_open().processed

    return RotationImportResponse(
        success=result.success > 0,
        result=result,
        recalculated_urgencies=recalculated,
        summary=RotationImportSummary(
            total_processed=len(rows),
            successful=result.success,
            failed=len(result.errors),
            created=result.created,
            updated=result.updated,
        )
    )


@router.get("/", response_model=RotationsListResponse)
def list_rotations(
    skip: int = Query(0, ge=0, description="Nombre d'éléments à ignorer"),
    limit: int = Query(100, ge=1, le=1000, description="Nombre d'éléments à retourner"),
    search: Optional[str] = Query(None, description="Recherche sur le code EAN"),
    rotation_min: Optional[float] = Query(None, ge=0, description="Rotation minimum"),
    rotation_max: Optional[float] = Query(None, ge=0, description="Rotation maximum"),
    service: RotationService = Depends(get_rotation_service)
) -> Any:
    """
    Récupérer les rotations avec filtres, pagination et statistiques globales
    """
    rotations, total = service.list_rotations(
        skip=skip,
        limit=limit,
        search=search,
        rotation_min=rotation_min,
        rotation_max=rotation_max,
    )

    return RotationsListResponse(
        data=[Rotation.model_validate(r) for r in rotations],
        total=total,
        skip=skip,
        limit=limit,
        stats=RotationStats(**service.get_stats())
    )


@router.post("/", response_model=RotationResponse, status_code=status.HTTP_201_CREATED)
def upsert_rotation(
    rotation_in: RotationCreate,
    service: RotationService = Depends(get_rotation_service)
) -> Any:
    """
    Créer ou mettre à jour la rotation d'un produit (clé : code normalisé)
    """
    rotation, created = service.upsert_rotation(rotation_in)
    return RotationResponse(
        message="Rotation créée" if created else "Rotation mise à jour",
        created=created,
        data=Rotation.model_validate(rotation)
    )


@router.post("/import", response_model=RotationImportResponse)
def import_rotations(
    import_in: RotationImportRequest,
    service: RotationService = Depends(get_rotation_service)
) -> Any:
    """
    Import en masse ; chaque ligne invalide est rapportée sans bloquer les autres
    """
    result = service.import_rotations(import_in.rows)
    return _import_response(service, import_in.rows, result, import_in.recalculate_urgencies)


@router.post("/import/csv", response_model=RotationImportResponse)
async def import_rotations_csv(
    file: UploadFile = File(...),
    recalculate_urgencies: bool = Query(False, description="Recalculer les urgences après l'import"),
    service: RotationService = Depends(get_rotation_service)
) -> Any:
    """
    Import d'un fichier CSV "code;rotation" (; , ou tabulation)
    """
    if file.filename and not file.filename.lower().endswith((".csv", ".txt")):
        raise InvalidInputError("Le fichier doit être au format CSV")

    raw = await file.read()
    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        content = raw.decode("latin-1")

    rows, result = service.import_csv(content)
    return _import_response(service, rows, result, recalculate_urgencies)


@router.get("/import/template")
def download_template() -> Any:
    """Modèle CSV pour l'import des rotations"""
    return Response(
        content=CSV_TEMPLATE,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="template_rotations.csv"'}
    )


@router.get("/match/{code}", response_model=RotationMatchResponse)
def match_code(
    code: str,
    service: RotationService = Depends(get_rotation_service)
) -> Any:
    """
    Diagnostic : rotation retenue pour un code scanné, et par quelle stratégie
    """
    match = service.match_code(code)
    return RotationMatchResponse(
        code=code,
        normalized_code=normalize_code(code),
        matched=match is not None,
        strategy=match.strategy.value if match else None,
        rotation=rotation_out(match.rotation) if match else None,
    )


@router.delete("/{rotation_id}")
def delete_rotation(
    rotation_id: int,
    service: RotationService = Depends(get_rotation_service)
) -> Any:
    service.delete_rotation(rotation_id)
    return {"success": True, "message": "Rotation supprimée avec succès"}
