import logging
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import InvalidInputError, RotationNotFoundError
from app.core.logging import configure_logging
from app.models.rotation import ProductRotation
from app.schemas.rotation import RotationCreate, RotationImportRow
from app.services.rotation_service import RotationService, parse_rotation_csv


@pytest.fixture
def service(db_session):
    return RotationService(db_session)


class TestParseCsv:

    def test_header_is_skipped(self):
        rows = parse_rotation_csv("ean_code;monthly_rotation\n3400930000019;12,5\n")
        assert len(rows) == 1
        assert rows[0].ean_code == "3400930000019"
        assert rows[0].monthly_rotation == 12.5

    @pytest.mark.parametrize("line", [
        "3400930000019;4.5",
        "3400930000019\t4.5",
        "3400930000019,4.5",
    ])
    def test_separators(self, line):
        rows = parse_rotation_csv(line)
        assert rows[0].monthly_rotation == 4.5

    def test_optional_price(self):
        rows = parse_rotation_csv("3400930000019;4;2,35")
        assert rows[0].unit_purchase_price == 2.35

    def test_blank_and_incomplete_lines_are_dropped(self):
        rows = parse_rotation_csv("\n3400930000019;4\n\n;\n5012345678\n")
        assert [r.ean_code for r in rows] == ["3400930000019"]

    def test_unreadable_rotation_is_kept_for_reporting(self):
        rows = parse_rotation_csv("3400930000019;abc")
        assert len(rows) == 1
        assert rows[0].monthly_rotation != rows[0].monthly_rotation  # NaN


class TestUpsert:

    def test_create_then_update_on_normalized_code(self, service):
        rotation, created = service.upsert_rotation(
            RotationCreate(ean_code="0003400930000019", monthly_rotation=Decimal("12.345"))
        )
        assert created is True
        assert rotation.ean_code == "3400930000019"
        assert rotation.monthly_rotation == Decimal("12.34")

        again, created = service.upsert_rotation(
            RotationCreate(ean_code="3400930000019", monthly_rotation=Decimal("20"))
        )
        assert created is False
        assert again.id == rotation.id
        assert again.monthly_rotation == Decimal("20")

    def test_delete_unknown(self, service):
        with pytest.raises(RotationNotFoundError):
            service.delete_rotation(42)


class TestImport:

    def test_per_line_errors(self, service):
        result = service.import_rotations([
            RotationImportRow(ean_code="3400930000019", monthly_rotation=12),
            RotationImportRow(ean_code="", monthly_rotation=3),
            RotationImportRow(ean_code="34009ABC", monthly_rotation=3),
            RotationImportRow(ean_code="5012345678", monthly_rotation=-1),
            RotationImportRow(ean_code="5012345678", monthly_rotation=1500),
            RotationImportRow(ean_code="5012345678", monthly_rotation=float("nan")),
            RotationImportRow(ean_code="5012345678", monthly_rotation=7),
        ])

        assert result.success == 2
        assert result.created == 2
        assert result.updated == 0
        assert [(e.line, e.error) for e in result.errors] == [
            (2, "Code EAN manquant"),
            (3, "Le code EAN doit contenir uniquement des chiffres"),
            (4, "Rotation invalide (doit être ≥ 0)"),
            (5, "Rotation trop élevée (max 1000)"),
            (6, "Rotation invalide (doit être ≥ 0)"),
        ]

    def test_reimport_updates(self, service):
        rows = [RotationImportRow(ean_code="3400930000019", monthly_rotation=12)]
        service.import_rotations(rows)

        result = service.import_rotations(
            [RotationImportRow(ean_code="003400930000019", monthly_rotation=30)]
        )

        assert result.created == 0
        assert result.updated == 1
        assert service.get_stats()["total"] == 1

    def test_empty_import(self, service):
        with pytest.raises(InvalidInputError):
            service.import_rotations([])

    def test_row_limit(self, service, monkeypatch):
        from app.core.config import settings
        monkeypatch.setattr(settings, "rotation_import_max_rows", 2)

        rows = [RotationImportRow(ean_code="3400930000019", monthly_rotation=1)] * 3
        with pytest.raises(InvalidInputError):
            service.import_rotations(rows)

    def test_empty_csv(self, service):
        with pytest.raises(InvalidInputError):
            service.import_csv("   \n")


class TestStatsAndMatch:

    def test_stats(self, service, make_rotation):
        make_rotation("3400930000019", 10)
        make_rotation("5012345678", 30)

        stats = service.get_stats()

        assert stats["total"] == 2
        assert stats["average_rotation"] == 20
        assert stats["max_rotation"] == 30
        assert stats["last_update"] is not None

    def test_list_search_ignores_separators(self, service, make_rotation):
        make_rotation("3400930000019", 10)
        make_rotation("5012345678", 30)

        rotations, total = service.list_rotations(search="3400-930")

        assert total == 1
        assert rotations[0].ean_code == "3400930000019"

    def test_match_code(self, service, make_rotation):
        make_rotation("3400930000019", 10)
        match = service.match_code("003400930000019")
        assert match.strategy.value == "normalized"


class TestUniqueNormalizedCode:

    def test_second_row_with_same_normalized_code_is_rejected(self, db_session, make_rotation):
        make_rotation("3400930000019", 10)

        with pytest.raises(IntegrityError):
            make_rotation("0003400930000019", 20)
        db_session.rollback()

        assert db_session.scalar(select(func.count()).select_from(ProductRotation)) == 1


class TestWithLoggingConfigured:

    @pytest.fixture
    def records(self):
        configure_logging()
        handler = _ListHandler()
        service_logger = logging.getLogger("app.services.rotation_service")
        service_logger.addHandler(handler)
        yield handler.records
        service_logger.removeHandler(handler)

    def test_upsert(self, service, records):
        rotation, created = service.upsert_rotation(
            RotationCreate(ean_code="3400930000019", monthly_rotation=Decimal("10"))
        )

        assert created is True
        assert rotation.id is not None
        assert records[-1].is_new is True

    def test_import(self, service, records):
        result = service.import_rotations([
            RotationImportRow(ean_code="3400930000019", monthly_rotation=12),
            RotationImportRow(ean_code="5012345678", monthly_rotation=3),
        ])

        assert result.created == 2
        assert records[-1].created_count == 2
        assert records[-1].updated_count == 0


class _ListHandler(logging.Handler):

    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)
