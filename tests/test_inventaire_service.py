from datetime import date

import pytest

from app.core.exceptions import (
    ConflictError, ForbiddenOperationError, InvalidInputError,
    InventaireItemNotFoundError, InventaireNotFoundError,
)
from app.models.inventaire import InventaireStatus
from app.models.signalement import Signalement
from app.schemas.inventaire import InventaireCreate, InventaireItemCreate, InventaireUpdate
from app.services.inventaire_service import InventaireService, export_lines, inventaire_stats

TODAY = date(2025, 1, 15)


@pytest.fixture
def service(db_session):
    return InventaireService(db_session, today=TODAY)


@pytest.fixture
def inventaire(service):
    return service.create_inventaire(InventaireCreate(name="Inventaire annuel"))


def scan(service, inventaire_id, code, quantity=1, **kwargs):
    return service.add_item(inventaire_id, InventaireItemCreate(ean_code=code, quantity=quantity, **kwargs))


class TestLifecycle:

    def test_only_one_in_progress(self, service, inventaire):
        with pytest.raises(ConflictError) as exc_info:
            service.create_inventaire(InventaireCreate(name="Second"))
        assert exc_info.value.details["inventaire_id"] == inventaire.id

    def test_finish_empty_requires_force(self, service, inventaire):
        with pytest.raises(InvalidInputError):
            service.finish_inventaire(inventaire.id)

        finished = service.finish_inventaire(inventaire.id, force=True)

        assert finished.status == InventaireStatus.FINISHED
        assert finished.finished_at is not None

    def test_finish_twice(self, service, inventaire):
        scan(service, inventaire.id, "3400930000019")
        service.finish_inventaire(inventaire.id)

        with pytest.raises(ConflictError):
            service.finish_inventaire(inventaire.id)

    def test_new_inventaire_after_finish(self, service, inventaire):
        service.finish_inventaire(inventaire.id, force=True)
        second = service.create_inventaire(InventaireCreate(name="Second"))
        assert second.status == InventaireStatus.IN_PROGRESS

    def test_archived_cannot_be_renamed(self, service, inventaire, db_session):
        inventaire.status = InventaireStatus.ARCHIVED
        db_session.commit()

        with pytest.raises(ForbiddenOperationError):
            service.update_inventaire(inventaire.id, InventaireUpdate(name="Nouveau nom"))

    def test_delete_requires_no_items(self, service, inventaire):
        scan(service, inventaire.id, "3400930000019")
        with pytest.raises(ConflictError):
            service.delete_inventaire(inventaire.id)

    def test_delete_empty(self, service, inventaire):
        service.delete_inventaire(inventaire.id)
        with pytest.raises(InventaireNotFoundError):
            service.get_inventaire(inventaire.id)


class TestItems:

    def test_duplicate_scans_add_up(self, service, inventaire):
        first = scan(service, inventaire.id, "3400930000019", quantity=2)
        second = scan(service, inventaire.id, "3400930000019", quantity=3)

        assert first.is_duplicate is False
        assert second.is_duplicate is True
        assert second.previous_quantity == 2
        assert second.item.quantity == 5
        assert second.item.id == first.item.id

    def test_positions_follow_scan_order(self, service, inventaire):
        scan(service, inventaire.id, "3400930000019")
        scan(service, inventaire.id, "5012345678")

        items = service.get_items(inventaire.id)

        assert [item.position for item in items] == [2, 1]
        assert items[0].ean_code == "5012345678"

    def test_expiration_date_creates_signalement(self, service, inventaire, db_session):
        addition = scan(service, inventaire.id, "3400930000019", quantity=4, expiration_date=date(2025, 2, 1))

        signalement = db_session.get(Signalement, addition.signalement_id)
        assert signalement.quantity == 4
        assert signalement.computed_urgency is not None

    def test_closed_inventaire_rejects_scans(self, service, inventaire):
        scan(service, inventaire.id, "3400930000019")
        service.finish_inventaire(inventaire.id)

        with pytest.raises(ForbiddenOperationError):
            scan(service, inventaire.id, "5012345678")

    def test_update_and_delete_item(self, service, inventaire):
        item = scan(service, inventaire.id, "3400930000019").item

        assert service.update_item(inventaire.id, item.id, 9).quantity == 9
        service.delete_item(inventaire.id, item.id)
        with pytest.raises(InventaireItemNotFoundError):
            service.delete_item(inventaire.id, item.id)

    def test_item_of_another_inventaire(self, service, inventaire):
        item = scan(service, inventaire.id, "3400930000019").item
        service.finish_inventaire(inventaire.id)
        other = service.create_inventaire(InventaireCreate(name="Autre inventaire"))

        with pytest.raises(ForbiddenOperationError):
            service.update_item(other.id, item.id, 3)


class TestStatsAndExport:

    def test_stats(self, service, inventaire):
        scan(service, inventaire.id, "3400930000019", quantity=2)
        scan(service, inventaire.id, "3400930000019", quantity=1)
        scan(service, inventaire.id, "5012345678", quantity=4)

        stats = inventaire_stats(service.get_inventaire(inventaire.id))

        assert stats.distinct_products == 2
        assert stats.total_quantity == 7
        assert stats.total_items == 2
        assert stats.elapsed_seconds >= 0

    def test_export_lines_are_sorted_and_aggregated(self):
        class Item:
            def __init__(self, ean_code, quantity):
                self.ean_code = ean_code
                self.quantity = quantity

        lines = export_lines([Item("5012345678", 1), Item("3400930000019", 2), Item("5012345678", 3)])
        assert lines == ["3400930000019;2", "5012345678;4"]

    def test_export_csv(self, service, inventaire):
        scan(service, inventaire.id, "5012345678", quantity=4)
        scan(service, inventaire.id, "3400930000019", quantity=2)

        filename, content = service.export_csv(inventaire.id)

        assert filename.startswith("inventaire_") and filename.endswith(".csv")
        assert content == "3400930000019;2\n5012345678;4\n"
