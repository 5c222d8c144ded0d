"""
Models package initialization.
Importe tous les modèles pour qu'ils soient enregistrés sur Base.metadata
(create_all et autogénération Alembic).
"""

# IMPORTANT: Utiliser la MÊME Base que celle de database.py
from app.core.database import Base

from .signalement import Signalement, SignalementStatus, UrgencyTier  # noqa: F401
from .rotation import ProductRotation  # noqa: F401
from .inventaire import Inventaire, InventaireItem, InventaireStatus  # noqa: F401

__all__ = [
    'Base',
    'Signalement', 'SignalementStatus', 'UrgencyTier',
    'ProductRotation',
    'Inventaire', 'InventaireItem', 'InventaireStatus',
]
