# ===================================
# app/services/rotation_matcher.py
# ===================================
"""
Rapprochement d'un code scanné avec une rotation enregistrée.

Les codes scannés sont rarement propres : zéros initiaux incohérents,
EAN-8 / EAN-13 / GTIN-14 mélangés, scans partiels. Le matcher applique une
cascade de stratégies par priorité stricte ; la première qui trouve gagne.
"""

import enum
import logging
from decimal import Decimal
from typing import Dict, Iterable, List, NamedTuple, Optional, Protocol, Union

from app.models.rotation import ProductRotation
from app.utils.codes import normalize_code

logger = logging.getLogger(__name__)

WINDOW = 8
LONG_PREFIX = 10


class MatchStrategy(str, enum.Enum):
    EXACT = "exact"
    NORMALIZED = "normalized"
    PREFIX_10 = "prefix_10"
    PREFIX_8 = "prefix_8"
    SUFFIX_8 = "suffix_8"
    CANDIDATE_CONTAINS_CODE = "candidate_contains_code"
    CODE_CONTAINS_CANDIDATE = "code_contains_candidate"
    PARTIAL_OVERLAP = "partial_overlap"


class RotationRecord(NamedTuple):
    """Copie détachée d'une ProductRotation"""
    id: Optional[int]
    ean_code: str
    normalized_code: str
    monthly_rotation: Decimal
    unit_purchase_price: Optional[Decimal] = None

    @classmethod
    def from_model(cls, rotation: ProductRotation) -> "RotationRecord":
        return cls(
            id=rotation.id,
            ean_code=rotation.ean_code,
            normalized_code=normalize_code(rotation.ean_code),
            monthly_rotation=rotation.monthly_rotation,
            unit_purchase_price=rotation.unit_purchase_price,
        )


RotationLike = Union[ProductRotation, RotationRecord]


class RotationMatch(NamedTuple):
    rotation: RotationLike
    strategy: MatchStrategy


class RotationCatalog(Protocol):
    """Source des rotations consultée par le matcher."""

    def find_by_code(self, code: str) -> Optional[RotationLike]:
        ...

    def find_by_normalized_code(self, normalized: str) -> Optional[RotationLike]:
        ...

    def candidates(self) -> Iterable[RotationLike]:
        ...


class RotationSnapshot:
    """
    Catalogue en mémoire, indexé par code brut et code normalisé.

    Construit une fois pour un recalcul en masse : une seule lecture de la
    table au lieu d'un parcours complet par signalement. Les lignes sont
    copiées, les commits de la session ne les expirent donc pas.
    """

    def __init__(self, rotations: Iterable[RotationLike]):
        records = [
            r if isinstance(r, RotationRecord) else RotationRecord.from_model(r)
            for r in rotations
        ]
        self._rotations: List[RotationRecord] = sorted(records, key=lambda r: r.id or 0)
        self._by_code: Dict[str, RotationRecord] = {}
        self._by_normalized: Dict[str, RotationRecord] = {}
        for rotation in self._rotations:
            self._by_code.setdefault(rotation.ean_code, rotation)
            self._by_normalized.setdefault(rotation.normalized_code, rotation)

    def __len__(self):
        return len(self._rotations)

    def find_by_code(self, code: str) -> Optional[RotationRecord]:
        return self._by_code.get(code)

    def find_by_normalized_code(self, normalized: str) -> Optional[RotationRecord]:
        return self._by_normalized.get(normalized)

    def candidates(self) -> Iterable[RotationRecord]:
        return self._rotations


def _prefix(length: int):
    def match(code: str, candidate: str) -> bool:
        return (
            len(code) >= length
            and len(candidate) >= length
            and code[:length] == candidate[:length]
        )
    return match


def _suffix_8(code: str, candidate: str) -> bool:
    return len(code) >= WINDOW and len(candidate) >= WINDOW and code[-WINDOW:] == candidate[-WINDOW:]


def _candidate_contains_code(code: str, candidate: str) -> bool:
    return len(code) >= WINDOW and code in candidate


def _code_contains_candidate(code: str, candidate: str) -> bool:
    return len(candidate) >= WINDOW and candidate in code


def _partial_overlap(code: str, candidate: str) -> bool:
    if len(code) < WINDOW:
        return False
    return any(
        code[start:start + WINDOW] in candidate
        for start in range(len(code) - WINDOW + 1)
    )


# Stratégies heuristiques, dans l'ordre de priorité
_SCAN_STRATEGIES = (
    (MatchStrategy.PREFIX_10, _prefix(LONG_PREFIX)),
    (MatchStrategy.PREFIX_8, _prefix(WINDOW)),
    (MatchStrategy.SUFFIX_8, _suffix_8),
    (MatchStrategy.CANDIDATE_CONTAINS_CODE, _candidate_contains_code),
    (MatchStrategy.CODE_CONTAINS_CANDIDATE, _code_contains_candidate),
    (MatchStrategy.PARTIAL_OVERLAP, _partial_overlap),
)


class RotationMatcher:
    """Trouve la rotation la plus pertinente pour un code produit"""

    def __init__(self, catalog: RotationCatalog):
        self.catalog = catalog

    def find(self, code: str) -> Optional[RotationLike]:
        """Rotation correspondante, ou None si aucune stratégie ne trouve"""
        match = self.match(code)
        return match.rotation if match else None

    def match(self, code: str) -> Optional[RotationMatch]:
        """Comme find(), en indiquant la stratégie retenue"""
        raw = (code or "").strip()
        normalized = normalize_code(raw)

        rotation = self.catalog.find_by_code(raw) if raw else None
        if rotation is not None:
            return self._found(raw, rotation, MatchStrategy.EXACT)

        rotation = self.catalog.find_by_normalized_code(normalized) if normalized else None
        if rotation is not None:
            return self._found(raw, rotation, MatchStrategy.NORMALIZED)

        if len(normalized) < WINDOW:
            # Toutes les stratégies heuristiques exigent au moins 8 chiffres
            logger.debug("Aucune rotation pour un code court", extra={"code": raw})
            return None

        candidates = list(self.catalog.candidates())
        for strategy, predicate in _SCAN_STRATEGIES:
            for candidate in candidates:
                if predicate(normalized, candidate.normalized_code):
                    return self._found(raw, candidate, strategy)

        logger.debug("Aucune rotation trouvée", extra={"code": raw, "normalized": normalized})
        return None

    @staticmethod
    def _found(code: str, rotation: RotationLike, strategy: MatchStrategy) -> RotationMatch:
        logger.debug(
            "Rotation trouvée",
            extra={
                "code": code,
                "rotation_id": rotation.id,
                "rotation_code": rotation.ean_code,
                "strategy": strategy.value,
            },
        )
        return RotationMatch(rotation, strategy)
