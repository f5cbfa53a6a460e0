"""
Tests for the data-access services.

Focus is the caching discipline:
1. Reads are served from the cache until it expires or is invalidated
2. Successful writes invalidate exactly what they could have changed
3. Failed writes raise and leave the cache alone
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from omomoney.cache import CacheCategory, CategoryCacheKeys, ItemCacheKeys, UserCacheKeys
from omomoney.models.audit import AuditEventType
from omomoney.models.finance import GroupRole, User
from omomoney.services.storage import StorageError


JAN_1 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestUserService:
    """Users: cached list, count and name checks."""

    @pytest.mark.asyncio
    async def test_fetch_users_sorted_by_name(self, users):
        await users.create_user("Charlie")
        await users.create_user("Alice")
        await users.create_user("Bob")

        names = [u.name for u in await users.fetch_users()]
        assert names == ["Alice", "Bob", "Charlie"]

    @pytest.mark.asyncio
    async def test_fetch_users_is_read_through(self, users, store):
        """Second read is served from the cache."""
        await users.create_user("Alice")
        await users.fetch_users()
        reads = store.reads

        await users.fetch_users()
        assert store.reads == reads

    @pytest.mark.asyncio
    async def test_mutating_a_cached_result_does_not_leak(self, users, store):
        """Callers get copies; changing one never alters later reads."""
        await users.create_user("Alice")

        first = await users.fetch_users()
        reads = store.reads
        first.append(User(name="Mallory"))
        first[0].name = "Eve"

        second = await users.fetch_users()
        assert [u.name for u in second] == ["Alice"]
        assert store.reads == reads

        second[0].name = "Eve"
        third = await users.fetch_users()
        assert [u.name for u in third] == ["Alice"]

    @pytest.mark.asyncio
    async def test_cached_list_expires_after_data_ttl(self, users, store, clock):
        await users.create_user("Alice")
        await users.fetch_users()
        reads = store.reads

        clock.advance(300)
        await users.fetch_users()
        assert store.reads == reads + 1

    @pytest.mark.asyncio
    async def test_create_invalidates_list_and_count(self, users):
        await users.create_user("Alice")
        assert len(await users.fetch_users()) == 1
        assert await users.get_users_count() == 1

        await users.create_user("Bob")

        assert len(await users.fetch_users()) == 2
        assert await users.get_users_count() == 2

    @pytest.mark.asyncio
    async def test_user_exists_cached_and_invalidated(self, users, store):
        assert await users.user_exists("Bob") is False
        reads = store.reads
        assert await users.user_exists("Bob") is False
        assert store.reads == reads

        await users.create_user("Bob")
        assert await users.user_exists("Bob") is True

    @pytest.mark.asyncio
    async def test_user_exists_excluding_self(self, users):
        alice = await users.create_user("Alice")
        assert await users.user_exists("Alice", excluding=alice.id) is False
        assert await users.user_exists("  Alice  ") is True

    @pytest.mark.asyncio
    async def test_update_returns_new_record(self, users):
        alice = await users.create_user("Alice")

        renamed = await users.update_user(alice, name="Alicia", email="alicia@example.com")

        assert alice.name == "Alice"
        assert renamed.id == alice.id
        assert renamed.name == "Alicia"
        assert renamed.email == "alicia@example.com"
        assert renamed.last_modified_at is not None
        assert [u.name for u in await users.fetch_users()] == ["Alicia"]
        assert await users.user_exists("Alice") is False

    @pytest.mark.asyncio
    async def test_update_without_changes_skips_store(self, users, audit_storage):
        alice = await users.create_user("Alice")
        events_before = len(await audit_storage.get_recent_events())

        result = await users.update_user(alice, name="Alice")

        assert result is alice
        assert len(await audit_storage.get_recent_events()) == events_before

    @pytest.mark.asyncio
    async def test_delete_invalidates_count(self, users):
        alice = await users.create_user("Alice")
        assert await users.get_users_count() == 1

        assert await users.delete_user(alice) is True

        assert await users.get_users_count() == 0
        assert await users.fetch_user(alice.id) is None

    @pytest.mark.asyncio
    async def test_invalid_name_rejected_before_store(self, users, store):
        with pytest.raises(ValueError):
            await users.create_user("A")
        assert await store.count(User.kind) == 0

    @pytest.mark.asyncio
    async def test_failed_write_keeps_cache(self, users, store, cache, audit_storage):
        """A store failure propagates and cached results stay in place."""
        await users.create_user("Alice")
        cached = await users.fetch_users()

        store.fail_writes = True
        with pytest.raises(StorageError):
            await users.create_user("Bob")

        assert cache.get(CacheCategory.DATA, UserCacheKeys.ALL, list) == cached
        events = await audit_storage.get_recent_events()
        failures = [e for e in events if e.event_type == AuditEventType.STORE_FAILED]
        assert len(failures) == 1
        assert failures[0].details["operation"] == "create"

    @pytest.mark.asyncio
    async def test_mutations_are_audited(self, users, audit_storage):
        alice = await users.create_user("Alice")
        await users.update_user(alice, name="Alicia")
        await users.delete_user(alice)

        events = await audit_storage.get_events_by_entity("user", alice.id)
        assert [e.event_type for e in events] == [
            AuditEventType.RECORD_CREATED,
            AuditEventType.RECORD_UPDATED,
            AuditEventType.RECORD_DELETED,
        ]
        assert events[1].details["changed_fields"] == ["name"]


class TestGroupService:
    """Groups: same caching as users, plus cross-service invalidation on delete."""

    @pytest.mark.asyncio
    async def test_create_group_defaults_currency(self, groups):
        group = await groups.create_group("Home")
        assert group.currency == "USD"

    @pytest.mark.asyncio
    async def test_invalid_currency_rejected(self, groups):
        with pytest.raises(ValueError):
            await groups.create_group("Home", "XYZ")

    @pytest.mark.asyncio
    async def test_group_exists_and_count(self, groups):
        home = await groups.create_group("Home", "EUR")
        assert await groups.group_exists("Home") is True
        assert await groups.group_exists("Home", excluding=home.id) is False
        assert await groups.get_groups_count() == 1

        await groups.update_group(home, name="House")
        assert await groups.group_exists("Home") is False
        assert [g.name for g in await groups.fetch_groups()] == ["House"]

    @pytest.mark.asyncio
    async def test_delete_group_drops_group_scoped_results(self, groups, categories, cache):
        home = await groups.create_group("Home")
        await categories.create_category("Food", home)
        await categories.get_categories_for_group(home)
        assert cache.get(CacheCategory.DATA, CategoryCacheKeys.for_group(home.id), list)

        await groups.delete_group(home)

        assert cache.get(
            CacheCategory.DATA, CategoryCacheKeys.for_group(home.id), list
        ) is None
        assert await groups.get_groups_count() == 0


class TestUserGroupService:
    """Membership queries (uncached)."""

    @pytest.mark.asyncio
    async def test_membership_queries(self, users, groups, user_groups):
        alice = await users.create_user("Alice")
        bob = await users.create_user("Bob")
        home = await groups.create_group("Home")
        trip = await groups.create_group("Trip")

        await user_groups.create_user_group(bob, home, GroupRole.OWNER)
        await user_groups.create_user_group(alice, home)
        await user_groups.create_user_group(alice, trip)

        assert [u.name for u in await user_groups.get_users_in_group(home)] == ["Bob", "Alice"]
        assert {g.name for g in await user_groups.get_groups_for_user(alice)} == {"Home", "Trip"}
        assert await user_groups.is_member(bob, trip) is False
        assert await user_groups.is_member(alice, trip) is True
        assert await user_groups.get_user_groups_count() == 3

    @pytest.mark.asyncio
    async def test_update_and_delete_membership(self, users, groups, user_groups):
        alice = await users.create_user("Alice")
        home = await groups.create_group("Home")
        membership = await user_groups.create_user_group(alice, home)
        assert membership.role == GroupRole.MEMBER

        admin = await user_groups.update_user_group(membership, role=GroupRole.ADMIN)
        assert (await user_groups.fetch_user_group(membership.id)).role == GroupRole.ADMIN

        assert await user_groups.delete_user_group(admin) is True
        assert await user_groups.get_user_groups_for_user(alice) == []

    @pytest.mark.asyncio
    async def test_deleted_user_skipped_in_members(self, users, groups, user_groups):
        alice = await users.create_user("Alice")
        home = await groups.create_group("Home")
        await user_groups.create_user_group(alice, home)

        await users.delete_user(alice)

        assert await user_groups.get_users_in_group(home) == []


class TestCategoryService:
    """Categories, including the per-category entry counts."""

    @pytest.mark.asyncio
    async def test_categories_per_group(self, groups, categories):
        home = await groups.create_group("Home")
        trip = await groups.create_group("Trip")
        await categories.create_category("Rent", home)
        await categories.create_category("Food", home, color="#FF0000")
        await categories.create_category("Hotel", trip)

        home_categories = await categories.get_categories_for_group(home)
        assert [c.name for c in home_categories] == ["Food", "Rent"]
        assert home_categories[0].color == "#FF0000"
        assert home_categories[1].color == "#007AFF"
        assert await categories.get_categories_count_for_group(home) == 2
        assert await categories.get_categories_count() == 3

    @pytest.mark.asyncio
    async def test_create_refreshes_group_list(self, groups, categories):
        home = await groups.create_group("Home")
        await categories.create_category("Rent", home)
        assert len(await categories.get_categories_for_group(home)) == 1

        await categories.create_category("Food", home)

        assert len(await categories.get_categories_for_group(home)) == 2
        assert await categories.get_categories_count_for_group(home) == 2

    @pytest.mark.asyncio
    async def test_category_exists_scoped_to_group(self, groups, categories):
        home = await groups.create_group("Home")
        trip = await groups.create_group("Trip")
        food = await categories.create_category("Food", home)

        assert await categories.category_exists("Food") is True
        assert await categories.category_exists("Food", home) is True
        assert await categories.category_exists("Food", trip) is False
        assert await categories.category_exists("Food", home, excluding=food.id) is False

        await categories.create_category("Food", trip)
        assert await categories.category_exists("Food", trip) is True

    @pytest.mark.asyncio
    async def test_entry_count_follows_entry_mutations(self, groups, categories, entries):
        """Per-category entry counts never go stale after entry writes."""
        home = await groups.create_group("Home")
        food = await categories.create_category("Food", home)
        rent = await categories.create_category("Rent", home)
        assert await categories.get_entries_count_for_category(food) == 0

        entry = await entries.create_entry(JAN_1, food.id, home.id, "Groceries")
        assert await categories.get_entries_count_for_category(food) == 1
        assert await categories.get_entries_count_for_category(rent) == 0

        moved = await entries.update_entry(entry, rent.id)
        assert await categories.get_entries_count_for_category(food) == 0
        assert await categories.get_entries_count_for_category(rent) == 1

        await entries.delete_entry(moved)
        assert await categories.get_entries_count_for_category(rent) == 0

    @pytest.mark.asyncio
    async def test_update_and_delete_category(self, groups, categories):
        home = await groups.create_group("Home")
        food = await categories.create_category("Food", home)
        await categories.fetch_categories()

        groceries = await categories.update_category(food, name="Groceries")
        assert [c.name for c in await categories.fetch_categories()] == ["Groceries"]

        await categories.delete_category(groceries)
        assert await categories.fetch_categories() == []
        assert await categories.get_categories_count() == 0


class TestEntryService:
    """Entries: ordering, ranges and cascading delete."""

    @pytest.mark.asyncio
    async def test_entry_queries(self, groups, categories, entries, clock):
        home = await groups.create_group("Home")
        food = await categories.create_category("Food", home)

        first = await entries.create_entry(JAN_1, food.id, home.id)
        second = await entries.create_entry(JAN_1 + timedelta(days=10), food.id, home.id)
        third = await entries.create_entry(JAN_1 + timedelta(days=5), food.id, home.id)

        by_date = await entries.get_entries_for_group(home)
        assert [e.id for e in by_date] == [second.id, third.id, first.id]

        in_range = await entries.get_entries_between(JAN_1, JAN_1 + timedelta(days=5))
        assert [e.id for e in in_range] == [third.id, first.id]

        assert len(await entries.get_entries_for_category(food)) == 3
        assert await entries.get_entries_count() == 3
        assert await entries.get_entries_count_for_group(home) == 3
        assert (await entries.fetch_entry(first.id)).id == first.id

    @pytest.mark.asyncio
    async def test_naive_and_aware_dates_mix(self, groups, categories, entries):
        """Naive dates are stored as UTC and sort alongside aware ones."""
        home = await groups.create_group("Home")
        food = await categories.create_category("Food", home)
        naive = await entries.create_entry(datetime(2024, 1, 1), food.id, home.id)
        aware = await entries.create_entry(JAN_1 + timedelta(days=1), food.id, home.id)

        assert naive.date == JAN_1
        assert [e.id for e in await entries.get_entries_for_group(home)] == [
            aware.id,
            naive.id,
        ]
        assert len(await entries.get_entries_for_category(food)) == 2
        in_range = await entries.get_entries_between(
            datetime(2024, 1, 1), datetime(2024, 1, 1, 23, 59)
        )
        assert [e.id for e in in_range] == [naive.id]

    @pytest.mark.asyncio
    async def test_fetch_entries_newest_created_first(self, groups, categories, entries):
        home = await groups.create_group("Home")
        food = await categories.create_category("Food", home)
        first = await entries.create_entry(JAN_1, food.id, home.id)
        second = await entries.create_entry(JAN_1, food.id, home.id)

        fetched = await entries.fetch_entries()
        assert {e.id for e in fetched} == {first.id, second.id}
        assert fetched[0].created_at >= fetched[1].created_at

    @pytest.mark.asyncio
    async def test_delete_entry_removes_items_and_refreshes_totals(
        self, groups, categories, entries, items
    ):
        home = await groups.create_group("Home")
        food = await categories.create_category("Food", home)
        keep = await entries.create_entry(JAN_1, food.id, home.id)
        drop = await entries.create_entry(JAN_1, food.id, home.id)
        await items.create_item(Decimal("10"), 1, keep)
        await items.create_item(Decimal("5"), 1, drop)
        assert await items.calculate_total_for_group(home) == Decimal("15")

        await entries.delete_entry(drop)

        assert await items.calculate_total_for_group(home) == Decimal("10")
        assert await items.get_items_for_entry(drop) == []
        assert await items.get_items_count() == 1


class TestItemService:
    """Items and cached totals."""

    @pytest.mark.asyncio
    async def test_totals_ignore_quantity(self, groups, categories, entries, items):
        home = await groups.create_group("Home")
        food = await categories.create_category("Food", home)
        entry = await entries.create_entry(JAN_1, food.id, home.id)
        await items.create_item(Decimal("2.50"), 4, entry, "Milk")
        await items.create_item(Decimal("1.25"), 1, entry)

        assert await items.calculate_total_for_entry(entry) == Decimal("3.75")
        assert await items.calculate_total_for_group(home) == Decimal("3.75")

    @pytest.mark.asyncio
    async def test_total_is_cached(self, groups, categories, entries, items, store, cache):
        home = await groups.create_group("Home")
        food = await categories.create_category("Food", home)
        entry = await entries.create_entry(JAN_1, food.id, home.id)
        await items.create_item(Decimal("1"), 1, entry)

        await items.calculate_total_for_entry(entry)
        reads = store.reads
        await items.calculate_total_for_entry(entry)

        assert store.reads == reads
        assert cache.get(
            CacheCategory.CALCULATION, ItemCacheKeys.entry_total(entry.id), Decimal
        ) == Decimal("1")

    @pytest.mark.asyncio
    async def test_total_outlives_item_list(
        self, groups, categories, entries, items, store, clock
    ):
        """Totals live 10 minutes, the item lists they are built from 5."""
        home = await groups.create_group("Home")
        food = await categories.create_category("Food", home)
        entry = await entries.create_entry(JAN_1, food.id, home.id)
        await items.create_item(Decimal("1"), 1, entry)
        await items.calculate_total_for_entry(entry)

        clock.advance(400)
        reads = store.reads
        assert await items.calculate_total_for_entry(entry) == Decimal("1")
        assert store.reads == reads

        clock.advance(200)
        await items.calculate_total_for_entry(entry)
        assert store.reads > reads

    @pytest.mark.asyncio
    async def test_item_mutations_refresh_totals(self, groups, categories, entries, items):
        home = await groups.create_group("Home")
        food = await categories.create_category("Food", home)
        entry = await entries.create_entry(JAN_1, food.id, home.id)
        item = await items.create_item(Decimal("10"), 1, entry)
        assert await items.calculate_total_for_entry(entry) == Decimal("10")
        assert await items.calculate_total_for_group(home) == Decimal("10")
        assert len(await items.get_items_for_group(home)) == 1

        updated = await items.update_item(item, amount=Decimal("12.5"))
        assert await items.calculate_total_for_entry(entry) == Decimal("12.5")
        assert await items.calculate_total_for_group(home) == Decimal("12.5")

        await items.create_item(Decimal("1"), 1, entry)
        assert len(await items.get_items_for_group(home)) == 2
        assert len(await items.fetch_items()) == 2

        await items.delete_item(updated)
        assert await items.calculate_total_for_group(home) == Decimal("1")
        assert (await items.fetch_item(updated.id)) is None

    @pytest.mark.asyncio
    async def test_negative_amount_rejected(self, groups, categories, entries, items):
        home = await groups.create_group("Home")
        food = await categories.create_category("Food", home)
        entry = await entries.create_entry(JAN_1, food.id, home.id)

        with pytest.raises(ValueError):
            await items.create_item(Decimal("-1"), 1, entry)

    @pytest.mark.asyncio
    async def test_failed_update_keeps_cached_total(
        self, groups, categories, entries, items, store
    ):
        home = await groups.create_group("Home")
        food = await categories.create_category("Food", home)
        entry = await entries.create_entry(JAN_1, food.id, home.id)
        item = await items.create_item(Decimal("10"), 1, entry)
        await items.calculate_total_for_entry(entry)

        store.fail_writes = True
        with pytest.raises(StorageError):
            await items.update_item(item, amount=Decimal("99"))
        store.fail_writes = False

        assert await items.calculate_total_for_entry(entry) == Decimal("10")

    @pytest.mark.asyncio
    async def test_item_without_entry(self, items):
        loose = await items.create_item(Decimal("3"), 2, None)
        assert loose.entry_id is None
        assert await items.get_items_count() == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
