from datetime import date, timedelta

API = "/api/v1"


def create_signalement(client, product_code="3400930000019", quantity=15, days=20, **extra):
    payload = {
        "product_code": product_code,
        "quantity": quantity,
        "expiration_date": (date.today() + timedelta(days=days)).isoformat(),
        **extra,
    }
    return client.post(f"{API}/signalements/", json=payload)


class TestHealth:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["health"] == "/health"


class TestSignalementsApi:

    def test_create_computes_urgency(self, client):
        response = create_signalement(client)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "EN_ATTENTE"
        assert body["data"]["computed_urgency"] == "critical"

    def test_validation_error(self, client):
        response = create_signalement(client, product_code="12AB", quantity=0)
        assert response.status_code == 422

    def test_not_found_uses_error_envelope(self, client):
        response = client.get(f"{API}/signalements/999")

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": {"code": 404, "message": "Signalement 999 non trouvé", "type": "not_found"},
        }

    def test_list_and_filter(self, client):
        create_signalement(client, quantity=15, days=20)
        create_signalement(client, product_code="5012345678", quantity=1, days=300)

        body = client.get(f"{API}/signalements/", params={"urgency": "critical"}).json()

        assert body["total"] == 1
        assert body["data"][0]["product_code"] == "3400930000019"
        assert client.get(f"{API}/signalements/", params={"limit": 1}).json()["has_more"] is True

    def test_update_and_delete(self, client):
        signalement_id = create_signalement(client, days=300, quantity=1).json()["data"]["id"]

        updated = client.put(f"{API}/signalements/{signalement_id}", json={"quantity": 12, "comment": "rayon A"})
        assert updated.status_code == 200
        assert updated.json()["data"]["quantity"] == 12

        assert client.delete(f"{API}/signalements/{signalement_id}").status_code == 200
        assert client.get(f"{API}/signalements/{signalement_id}").status_code == 404

    def test_update_clears_comment(self, client):
        signalement_id = create_signalement(client, comment="rayon A").json()["data"]["id"]

        cleared = client.put(f"{API}/signalements/{signalement_id}", json={"comment": None})

        assert cleared.status_code == 200
        assert cleared.json()["data"]["comment"] is None
        assert client.put(f"{API}/signalements/{signalement_id}", json={"quantity": None}).status_code == 422

    def test_bulk_update(self, client):
        first = create_signalement(client).json()["data"]["id"]
        second = create_signalement(client, product_code="5012345678").json()["data"]["id"]

        response = client.post(f"{API}/signalements/bulk-update", json={
            "signalement_ids": [first, second], "new_status": "DETRUIT",
        })
        assert response.json()["updated_count"] == 2

        missing = client.post(f"{API}/signalements/bulk-update", json={
            "signalement_ids": [first, 999], "new_status": "EN_COURS",
        })
        assert missing.status_code == 404

    def test_recalculate_all_with_rotation(self, client):
        signalement_id = create_signalement(client, quantity=50, days=300).json()["data"]["id"]
        client.post(f"{API}/rotations/", json={"ean_code": "3400930000019", "monthly_rotation": 100})

        response = client.post(f"{API}/signalements/recalculate", json={"all": True})

        stats = response.json()["stats"]
        assert stats["processed"] == 1
        assert stats["with_rotation"] == 1
        assert stats["without_rotation"] == 0
        assert stats["failed"] == 0

        data = client.get(f"{API}/signalements/{signalement_id}").json()["data"]
        assert data["sell_through_probability"] == 100

    def test_recalculate_requires_a_target(self, client):
        assert client.post(f"{API}/signalements/recalculate", json={}).status_code == 422

    def test_recalculate_selected(self, client):
        signalement_id = create_signalement(client).json()["data"]["id"]

        response = client.post(f"{API}/signalements/recalculate", json={"signalement_ids": [signalement_id, 999]})

        assert response.json()["stats"] == {"requested": 2, "processed": 1, "errors": 1}

    def test_recalculate_one(self, client):
        signalement_id = create_signalement(client).json()["data"]["id"]
        response = client.post(f"{API}/signalements/{signalement_id}/recalculate")
        assert response.json()["data"]["computed_urgency"] == "critical"

    def test_urgency_preview(self, client):
        client.post(f"{API}/rotations/", json={
            "ean_code": "3400930000019", "monthly_rotation": 1, "unit_purchase_price": 10,
        })
        signalement_id = create_signalement(client, quantity=100, days=300).json()["data"]["id"]

        body = client.get(f"{API}/signalements/{signalement_id}/urgency-preview").json()

        assert body["match_strategy"] == "exact"
        assert body["rotation"]["monthly_rotation"] == 1
        assert body["classic"]["with_rotation"] is False
        assert body["with_rotation"]["with_rotation"] is True
        assert body["financial_loss"]["unit_price"] == 10

    def test_stats(self, client):
        create_signalement(client)
        body = client.get(f"{API}/signalements/stats").json()
        assert body["by_status"] == {"EN_ATTENTE": 1}
        assert body["by_urgency"] == {"critical": 1}


class TestRotationsApi:

    def test_upsert_and_list(self, client):
        created = client.post(f"{API}/rotations/", json={"ean_code": "0003400930000019", "monthly_rotation": 12.5})
        assert created.status_code == 201
        assert created.json()["created"] is True
        assert created.json()["data"]["ean_code"] == "3400930000019"

        updated = client.post(f"{API}/rotations/", json={"ean_code": "3400930000019", "monthly_rotation": 20})
        assert updated.json()["created"] is False

        body = client.get(f"{API}/rotations/").json()
        assert body["total"] == 1
        assert body["stats"]["max_rotation"] == 20

    def test_json_import(self, client):
        response = client.post(f"{API}/rotations/import", json={"rows": [
            {"ean_code": "3400930000019", "monthly_rotation": 12},
            {"ean_code": "", "monthly_rotation": 3},
        ]})

        body = response.json()
        assert body["summary"] == {
            "total_processed": 2, "successful": 1, "failed": 1, "created": 1, "updated": 0,
        }
        assert body["result"]["errors"][0] == {"line": 2, "ean_code": "", "error": "Code EAN manquant"}

    def test_csv_import_and_recalculate(self, client):
        create_signalement(client, quantity=50, days=300)
        csv_content = "ean;rotation\n3400930000019;100\n5012345678;2,5\n"

        response = client.post(
            f"{API}/rotations/import/csv",
            params={"recalculate_urgencies": True},
            files={"file": ("rotations.csv", csv_content, "text/csv")},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["result"]["created"] == 2
        assert body["recalculated_urgencies"] == 1

    def test_csv_import_rejects_other_files(self, client):
        response = client.post(
            f"{API}/rotations/import/csv",
            files={"file": ("rotations.xlsx", b"PK", "application/octet-stream")},
        )
        assert response.status_code == 400
        assert response.json()["error"]["type"] == "invalid_input"

    def test_template(self, client):
        response = client.get(f"{API}/rotations/import/template")
        assert response.status_code == 200
        assert response.text.startswith("ean_code,monthly_rotation")

    def test_match(self, client):
        client.post(f"{API}/rotations/", json={"ean_code": "3400930000019", "monthly_rotation": 4})

        body = client.get(f"{API}/rotations/match/3400930000999").json()

        assert body["matched"] is True
        assert body["strategy"] == "prefix_10"
        assert body["rotation"]["ean_code"] == "3400930000019"

        assert client.get(f"{API}/rotations/match/99999999999").json()["matched"] is False

    def test_delete(self, client):
        rotation_id = client.post(
            f"{API}/rotations/", json={"ean_code": "3400930000019", "monthly_rotation": 4}
        ).json()["data"]["id"]

        assert client.delete(f"{API}/rotations/{rotation_id}").status_code == 200
        assert client.delete(f"{API}/rotations/{rotation_id}").status_code == 404


class TestInventairesApi:

    def test_full_session(self, client):
        created = client.post(f"{API}/inventaires/", json={"name": "Inventaire mars"})
        assert created.status_code == 201
        inventaire_id = created.json()["data"]["id"]

        conflict = client.post(f"{API}/inventaires/", json={"name": "Doublon"})
        assert conflict.status_code == 409
        assert conflict.json()["error"]["details"]["inventaire_id"] == inventaire_id

        client.post(f"{API}/inventaires/{inventaire_id}/items", json={"ean_code": "3400930000019", "quantity": 2})
        duplicate = client.post(
            f"{API}/inventaires/{inventaire_id}/items", json={"ean_code": "3400930000019", "quantity": 3}
        ).json()
        assert duplicate["is_duplicate"] is True
        assert duplicate["data"]["quantity"] == 5

        detail = client.get(f"{API}/inventaires/{inventaire_id}").json()["data"]
        assert detail["stats"]["total_quantity"] == 5
        assert len(detail["items"]) == 1

        finished = client.post(f"{API}/inventaires/{inventaire_id}/finish", json={"force": False})
        assert finished.json()["data"]["status"] == "TERMINE"

        closed = client.post(
            f"{API}/inventaires/{inventaire_id}/items", json={"ean_code": "5012345678", "quantity": 1}
        )
        assert closed.status_code == 403

        export = client.get(f"{API}/inventaires/{inventaire_id}/export")
        assert export.text == "3400930000019;5\n"
        assert "inventaire_" in export.headers["content-disposition"]

    def test_finish_empty(self, client):
        inventaire_id = client.post(f"{API}/inventaires/", json={"name": "Vide"}).json()["data"]["id"]

        assert client.post(f"{API}/inventaires/{inventaire_id}/finish").status_code == 400
        forced = client.post(f"{API}/inventaires/{inventaire_id}/finish", json={"force": True})
        assert forced.status_code == 200

    def test_list_in_progress_first(self, client):
        first = client.post(f"{API}/inventaires/", json={"name": "Premier"}).json()["data"]["id"]
        client.post(f"{API}/inventaires/{first}/finish", json={"force": True})
        second = client.post(f"{API}/inventaires/", json={"name": "Second"}).json()["data"]["id"]

        body = client.get(f"{API}/inventaires/").json()

        assert [i["id"] for i in body["data"]] == [second, first]
        assert client.get(f"{API}/inventaires/", params={"status": "TERMINE"}).json()["total"] == 1
