# ===================================
# app/api/deps.py
# ===================================
from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.inventaire_service import InventaireService
from app.services.rotation_service import RotationService
from app.services.signalement_service import SignalementService


def get_signalement_service(db: Session = Depends(get_db)) -> SignalementService:
    return SignalementService(db)


def get_rotation_service(db: Session = Depends(get_db)) -> RotationService:
    return RotationService(db)


def get_inventaire_service(db: Session = Depends(get_db)) -> InventaireService:
    return InventaireService(db)

