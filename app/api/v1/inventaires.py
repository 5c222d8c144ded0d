# ===================================
# app/api/v1/inventaires.py
# ===================================
from datetime import date
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response

from app.api.deps import get_inventaire_service
from app.models.inventaire import Inventaire as InventaireModel, InventaireStatus
from app.schemas.inventaire import (
    Inventaire,
    InventaireCreate,
    InventaireUpdate,
    InventaireDetail,
    InventaireFinish,
    InventaireItem,
    InventaireItemCreate,
    InventaireItemUpdate,
    InventaireItemResponse,
    InventaireResponse,
    InventairesListResponse,
)
from app.services.inventaire_service import InventaireService, inventaire_stats

router = APIRouter()


def _detail(inventaire: InventaireModel) -> InventaireDetail:
    detail = InventaireDetail.model_validate(inventaire)
    detail.stats = inventaire_stats(inventaire)
    return detail


@router.get("/", response_model=InventairesListResponse)
def list_inventaires(
    skip: int = Query(0, ge=0, description="Nombre d'éléments à ignorer"),
    limit: int = Query(20, ge=1, le=100, description="Nombre d'éléments à retourner"),
    status_filter: Optional[InventaireStatus] = Query(None, alias="status", description="Filtrer par statut"),
    search: Optional[str] = Query(None, description="Recherche sur le nom ou la description"),
    date_from: Optional[date] = Query(None, description="Créés à partir de"),
    date_to: Optional[date] = Query(None, description="Créés jusqu'à"),
    service: InventaireService = Depends(get_inventaire_service)
) -> Any:
    """
    Récupérer les inventaires, l'inventaire en cours en premier
    """
    inventaires, total = service.list_inventaires(
        skip=skip,
        limit=limit,
        status=status_filter,
        search=search,
        date_from=date_from,
        date_to=date_to,
    )

    return InventairesListResponse(
        data=[Inventaire.model_validate(i) for i in inventaires],
        total=total,
        page=(skip // limit) + 1,
        per_page=limit,
        has_more=(skip + limit) < total
    )


@router.post("/", response_model=InventaireResponse, status_code=status.HTTP_201_CREATED)
def create_inventaire(
    inventaire_in: InventaireCreate,
    service: InventaireService = Depends(get_inventaire_service)
) -> Any:
    """
    Démarrer un inventaire (409 si un inventaire est déjà en cours)
    """
    inventaire = service.create_inventaire(inventaire_in)
    return InventaireResponse(message="Inventaire créé avec succès", data=_detail(inventaire))


@router.get("/{inventaire_id}", response_model=InventaireResponse)
def get_inventaire(
    inventaire_id: int,
    service: InventaireService = Depends(get_inventaire_service)
) -> Any:
    inventaire = service.get_inventaire(inventaire_id)
    return InventaireResponse(message="Inventaire récupéré", data=_detail(inventaire))


@router.put("/{inventaire_id}", response_model=InventaireResponse)
def update_inventaire(
    inventaire_id: int,
    inventaire_in: InventaireUpdate,
    service: InventaireService = Depends(get_inventaire_service)
) -> Any:
    inventaire = service.update_inventaire(inventaire_id, inventaire_in)
    return InventaireResponse(message="Inventaire mis à jour avec succès", data=_detail(inventaire))


@router.delete("/{inventaire_id}")
def delete_inventaire(
    inventaire_id: int,
    service: InventaireService = Depends(get_inventaire_service)
) -> Any:
    service.delete_inventaire(inventaire_id)
    return {"success": True, "message": "Inventaire supprimé avec succès"}


@router.post("/{inventaire_id}/finish", response_model=InventaireResponse)
def finish_inventaire(
    inventaire_id: int,
    finish_in: Optional[InventaireFinish] = None,
    service: InventaireService = Depends(get_inventaire_service)
) -> Any:
    """
    Terminer un inventaire ; un inventaire vide exige force=true
    """
    force = finish_in.force if finish_in else False
    inventaire = service.finish_inventaire(inventaire_id, force=force)
    return InventaireResponse(message="Inventaire terminé avec succès", data=_detail(inventaire))


@router.get("/{inventaire_id}/items", response_model=List[InventaireItem])
def list_items(
    inventaire_id: int,
    service: InventaireService = Depends(get_inventaire_service)
) -> Any:
    """Produits scannés, le plus récent en premier"""
    return [InventaireItem.model_validate(item) for item in service.get_items(inventaire_id)]


@router.post("/{inventaire_id}/items", response_model=InventaireItemResponse, status_code=status.HTTP_201_CREATED)
def add_item(
    inventaire_id: int,
    item_in: InventaireItemCreate,
    service: InventaireService = Depends(get_inventaire_service)
) -> Any:
    """
    Ajouter un produit scanné ; un code déjà présent voit sa quantité cumulée
    """
    addition = service.add_item(inventaire_id, item_in)
    message = (
        f"Quantité mise à jour ({addition.previous_quantity} -> {addition.item.quantity})"
        if addition.is_duplicate else "Produit ajouté"
    )
    return InventaireItemResponse(
        message=message,
        data=InventaireItem.model_validate(addition.item),
        is_duplicate=addition.is_duplicate,
        previous_quantity=addition.previous_quantity,
        signalement_id=addition.signalement_id,
    )


@router.put("/{inventaire_id}/items/{item_id}", response_model=InventaireItemResponse)
def update_item(
    inventaire_id: int,
    item_id: int,
    item_in: InventaireItemUpdate,
    service: InventaireService = Depends(get_inventaire_service)
) -> Any:
    item = service.update_item(inventaire_id, item_id, item_in.quantity)
    return InventaireItemResponse(message="Quantité mise à jour", data=InventaireItem.model_validate(item))


@router.delete("/{inventaire_id}/items/{item_id}")
def delete_item(
    inventaire_id: int,
    item_id: int,
    service: InventaireService = Depends(get_inventaire_service)
) -> Any:
    service.delete_item(inventaire_id, item_id)
    return {"success": True, "message": "Produit retiré de l'inventaire"}


@router.get("/{inventaire_id}/export")
def export_inventaire(
    inventaire_id: int,
    service: InventaireService = Depends(get_inventaire_service)
) -> Any:
    """
    Export CSV "ean;quantité", sans en-tête, quantités cumulées par code
    """
    filename, content = service.export_csv(inventaire_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
