# ===================================
# app/core/exceptions.py
# ===================================
"""Exceptions métier, traduites en réponses HTTP par app.main."""


class StockAlertError(Exception):
    """Classe de base des erreurs métier."""
    status_code = 400
    error_type = "domain_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class NotFoundError(StockAlertError):
    status_code = 404
    error_type = "not_found"


class SignalementNotFoundError(NotFoundError):
    """Levée lorsqu'un signalement n'existe pas."""
    def __init__(self, signalement_id: int):
        super().__init__(f"Signalement {signalement_id} non trouvé")
        self.signalement_id = signalement_id


class RotationNotFoundError(NotFoundError):
    def __init__(self, rotation_id: int):
        super().__init__(f"Rotation {rotation_id} non trouvée")
        self.rotation_id = rotation_id


class InventaireNotFoundError(NotFoundError):
    def __init__(self, inventaire_id: int):
        super().__init__(f"Inventaire {inventaire_id} non trouvé")
        self.inventaire_id = inventaire_id


class InventaireItemNotFoundError(NotFoundError):
    def __init__(self, item_id: int):
        super().__init__(f"Produit {item_id} non trouvé dans l'inventaire")
        self.item_id = item_id


class InvalidInputError(StockAlertError):
    """Précondition violée (quantité < 1, fichier vide...)."""
    error_type = "invalid_input"


class ForbiddenOperationError(StockAlertError):
    status_code = 403
    error_type = "forbidden"


class ConflictError(StockAlertError):
    status_code = 409
    error_type = "conflict"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details
