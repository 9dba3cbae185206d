"""
HealthFlux Backend — Entity Store Tests
========================================

What:  SqlEntityStore against a real SQLite database (aiosqlite).
Covers: equality filters on JSON fields of each type, sorting, limits,
        create/update semantics and error mapping.
"""

import pytest

from healthflux.exceptions import DatabaseError, NotFoundError


class TestCreateAndFilter:
    @pytest.mark.asyncio
    async def test_create_assigns_id_and_timestamps(self, store):
        record = await store.create("Profile", {"full_name": "Asha Rao"})

        assert record["id"]
        assert record["full_name"] == "Asha Rao"
        assert record["created_date"]
        assert record["updated_date"]

    @pytest.mark.asyncio
    async def test_filter_scopes_by_entity_type(self, store):
        await store.create("Profile", {"full_name": "Asha"})
        await store.create("User", {"full_name": "Asha", "email": "asha@example.com"})

        profiles = await store.filter("Profile")
        assert len(profiles) == 1
        assert profiles[0]["full_name"] == "Asha"

    @pytest.mark.asyncio
    async def test_filter_by_string_field(self, store):
        await store.create("MedicalDocument", {"profile_id": "p1", "title": "A"})
        await store.create("MedicalDocument", {"profile_id": "p2", "title": "B"})

        rows = await store.filter("MedicalDocument", {"profile_id": "p1"})
        assert [r["title"] for r in rows] == ["A"]

    @pytest.mark.asyncio
    async def test_filter_by_boolean_field(self, store):
        await store.create("Medication", {"profile_id": "p1", "medication_name": "Metformin", "is_active": True})
        await store.create("Medication", {"profile_id": "p1", "medication_name": "Old", "is_active": False})

        rows = await store.filter("Medication", {"profile_id": "p1", "is_active": True})
        assert [r["medication_name"] for r in rows] == ["Metformin"]

    @pytest.mark.asyncio
    async def test_filter_by_integer_field(self, store):
        await store.create("ShareableLink", {"profile_id": "p1", "view_count": 0})
        await store.create("ShareableLink", {"profile_id": "p1", "view_count": 3})

        rows = await store.filter("ShareableLink", {"view_count": 3})
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_filter_by_id(self, store):
        created = await store.create("HealthInsurance", {"provider_name": "Acme"})
        await store.create("HealthInsurance", {"provider_name": "Other"})

        rows = await store.filter("HealthInsurance", {"id": created["id"]})
        assert [r["provider_name"] for r in rows] == ["Acme"]

    @pytest.mark.asyncio
    async def test_filter_no_match_returns_empty_list(self, store):
        assert await store.filter("Profile", {"id": "missing"}) == []

    @pytest.mark.asyncio
    async def test_default_order_is_creation_order(self, store):
        for title in ("first", "second", "third"):
            await store.create("MedicalDocument", {"profile_id": "p1", "title": title})

        rows = await store.filter("MedicalDocument", {"profile_id": "p1"})
        assert [r["title"] for r in rows] == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_descending_sort_with_limit(self, store):
        await store.create("NutritionGoal", {"profile_id": "p1", "daily_calories": 1800})
        await store.create("NutritionGoal", {"profile_id": "p1", "daily_calories": 2000})

        rows = await store.filter("NutritionGoal", {"profile_id": "p1"}, sort="-created_date", limit=1)
        assert len(rows) == 1
        assert rows[0]["daily_calories"] == 2000

    @pytest.mark.asyncio
    async def test_sort_on_json_field(self, store):
        await store.create("VitalMeasurement", {"profile_id": "p1", "measured_at": "2024-03-02"})
        await store.create("VitalMeasurement", {"profile_id": "p1", "measured_at": "2024-03-01"})

        rows = await store.filter("VitalMeasurement", {"profile_id": "p1"}, sort="measured_at")
        assert [r["measured_at"] for r in rows] == ["2024-03-01", "2024-03-02"]

    @pytest.mark.asyncio
    async def test_get_returns_none_when_missing(self, store):
        assert await store.get("Profile", "nope") is None


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_merges_fields(self, store):
        user = await store.create("User", {"email": "a@example.com", "full_name": "A", "role": "user"})

        updated = await store.update("User", user["id"], {"role": "admin"})

        assert updated["role"] == "admin"
        assert updated["full_name"] == "A"
        reloaded = await store.get("User", user["id"])
        assert reloaded["role"] == "admin"

    @pytest.mark.asyncio
    async def test_update_missing_record_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            await store.update("User", "missing", {"role": "admin"})

    @pytest.mark.asyncio
    async def test_update_ignores_store_managed_fields(self, store):
        user = await store.create("User", {"email": "a@example.com"})

        updated = await store.update("User", user["id"], {"id": "other", "role": "admin"})
        assert updated["id"] == user["id"]


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_only_that_record(self, store):
        first = await store.create("MedicalDocument", {"profile_id": "p1"})
        second = await store.create("MedicalDocument", {"profile_id": "p1"})

        assert await store.delete("MedicalDocument", first["id"]) is True

        assert [r["id"] for r in await store.filter("MedicalDocument")] == [second["id"]]

    @pytest.mark.asyncio
    async def test_delete_is_scoped_by_entity_type(self, store):
        doc = await store.create("MedicalDocument", {"profile_id": "p1"})

        assert await store.delete("Profile", doc["id"]) is False
        assert await store.get("MedicalDocument", doc["id"]) is not None

    @pytest.mark.asyncio
    async def test_delete_missing_record(self, store):
        assert await store.delete("MedicalDocument", "missing") is False


class TestErrors:
    @pytest.mark.asyncio
    async def test_unsupported_filter_value_is_a_database_error(self, store):
        with pytest.raises(DatabaseError):
            await store.filter("Profile", {"tags": ["a", "b"]})

    @pytest.mark.asyncio
    async def test_health_check(self, store):
        assert await store.health_check() is True
