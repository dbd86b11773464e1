"""Customer resolver tests: identity keys, matching order, lazy creation."""

import asyncio

import pytest

from connectors.memory_store import MemoryStore
from connectors.store_base import StoreValidationError
from core.models.records import UNKNOWN_CUSTOMER, EntityKind
from customer_resolver import (
    CustomerResolver,
    MatchType,
    identity_key,
    normalize_name,
    normalize_phone,
)


def run(coro):
    return asyncio.run(coro)


def _store():
    return MemoryStore(seed={
        "customers": [
            {"name": "Asha Rao", "phone": "98450 12345"},
            {"name": "Ravi Kumar", "phone": "9000000001"},
        ],
    })


class TestNormalize:

    def test_name(self):
        assert normalize_name("  Asha RAO ") == "asha rao"
        assert normalize_name(None) == ""

    def test_phone(self):
        assert normalize_phone(" 98450 12345 ") == "9845012345"
        assert normalize_phone(9845012345.0) == "9845012345"
        assert normalize_phone(None) == ""

    def test_identity_key(self):
        assert identity_key("Asha Rao ", "98450 12345") == "asha rao__9845012345"


class TestResolution:

    def test_exact_match(self):
        async def scenario():
            resolver = CustomerResolver(_store())
            await resolver.build_index()
            return await resolver.resolve("asha rao", "9845012345")

        resolution = run(scenario())
        assert resolution.match_type == MatchType.EXACT
        assert resolution.customer_id == 1
        assert resolution.requested_phone == "9845012345"
        assert resolution.resolution_time_ms is not None

    def test_name_only_match_when_phone_differs(self):
        async def scenario():
            resolver = CustomerResolver(_store())
            await resolver.build_index()
            return await resolver.resolve("Ravi Kumar", "")

        resolution = run(scenario())
        assert resolution.match_type == MatchType.NAME_ONLY
        assert resolution.customer_id == 2

    def test_created_and_reused(self):
        store = _store()

        async def scenario():
            resolver = CustomerResolver(store)
            await resolver.build_index()
            first = await resolver.resolve("Meena Shah", "9111111111")
            second = await resolver.resolve("Meena Shah", "9111111111")
            return resolver, first, second, await store.query_all(EntityKind.CUSTOMERS)

        resolver, first, second, customers = run(scenario())
        assert first.match_type == MatchType.CREATED
        assert second.match_type == MatchType.EXACT
        assert first.customer_id == second.customer_id
        assert len(customers) == 3
        assert len(resolver.created) == 1

    def test_created_without_phone_gets_placeholder(self):
        store = MemoryStore()

        async def scenario():
            resolver = CustomerResolver(store)
            await resolver.build_index()
            return await resolver.resolve("", None)

        resolution = run(scenario())
        assert resolution.match_type == MatchType.CREATED
        assert resolution.customer["name"] == UNKNOWN_CUSTOMER
        assert resolution.customer["phone"].startswith("PHONE-")

    def test_created_customer_carries_model_defaults(self):
        store = MemoryStore()

        async def scenario():
            resolver = CustomerResolver(store)
            await resolver.build_index()
            await resolver.resolve("Walk-in Guest", "9222222222")
            return await store.query_all(EntityKind.CUSTOMERS)

        [customer] = run(scenario())
        assert customer["status"] == "active"
        assert customer["customer_type"] == "individual"
        assert customer["city"] == ""
        assert customer["gst_number"] == ""
        assert customer["created_at"]

    def test_blank_name_does_not_match_by_name(self):
        store = MemoryStore(seed={"customers": [{"name": "", "phone": "1"}]})

        async def scenario():
            resolver = CustomerResolver(store)
            await resolver.build_index()
            return resolver.lookup("", "2")

        assert run(scenario()) is None

    def test_store_refusal_is_failed_resolution(self):
        class RefusingStore(MemoryStore):
            async def insert(self, kind, record):
                raise StoreValidationError("Missing required fields", 400)

        async def scenario():
            resolver = CustomerResolver(RefusingStore())
            await resolver.build_index()
            return await resolver.resolve("Nobody", "0")

        resolution = run(scenario())
        assert resolution.match_type == MatchType.FAILED
        assert not resolution.is_resolved
        assert resolution.customer_id is None

    def test_index_counts_distinct_keys(self):
        store = MemoryStore(seed={"customers": [
            {"name": "Asha", "phone": "1"},
            {"name": "ASHA ", "phone": " 1"},
        ]})

        async def scenario():
            resolver = CustomerResolver(store)
            return await resolver.build_index()

        assert run(scenario()) == 1
