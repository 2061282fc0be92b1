"""BaseRepository against SQLite: queries, post-commit hooks, cache coherence."""

import json
from datetime import datetime, time, timedelta
from unittest.mock import AsyncMock

import pytest

from entity_cache.application.services.cache_aside_service import CacheAsideService
from entity_cache.domain.exceptions import EntityNotFoundException, StoreNotConfiguredException
from entity_cache.infrastructure.cache.keys import build_key
from entity_cache.infrastructure.cache.memory_cache import MemoryCache
from entity_cache.infrastructure.persistence import database
from entity_cache.infrastructure.persistence.repositories import BaseRepository
from tests.integration.conftest import Account, Shipment, ShipmentStatus


async def _seed(repo: BaseRepository[Account]) -> list[Account]:
    accounts = [
        await repo.create(Account(team_id=3, email="ana@example.com")),
        await repo.create(Account(team_id=3, email="ben@example.com")),
        await repo.create(Account(team_id=None, email="cy@example.com")),
    ]
    await repo.commit()
    return accounts


def test_mixin_snapshot_round_trip() -> None:
    account = Account(id=5, team_id=3, email="ana@example.com", created_at=datetime(2024, 5, 6, 7, 8, 9))
    data = account.to_cache_dict()
    assert data == {
        "id": 5,
        "team_id": 3,
        "email": "ana@example.com",
        "created_at": "2024-05-06T07:08:09",
    }
    restored = Account.from_cache_dict({**data, "dropped_column": 1})
    assert restored.created_at == datetime(2024, 5, 6, 7, 8, 9)
    assert restored.indexed_values() == {"team_id": 3, "email": "ana@example.com"}
    assert Account.cache_type_name == "Account"
    assert Account.parse_primary_key("5") == 5


@pytest.mark.asyncio
async def test_find_queries(repo: BaseRepository[Account]) -> None:
    ana, ben, cy = await _seed(repo)
    assert (await repo.find_by_id(ana.id)).email == "ana@example.com"
    assert await repo.find_by_id(999) is None
    assert {a.id for a in await repo.find_by_ids([ana.id, cy.id, 999])} == {ana.id, cy.id}
    assert await repo.find_by_ids([]) == []
    assert {a.id for a in await repo.find_where("team_id", 3)} == {ana.id, ben.id}
    assert [a.id for a in await repo.find_where("team_id", None)] == [cy.id]


@pytest.mark.asyncio
async def test_find_where_unknown_column(repo: BaseRepository[Account]) -> None:
    with pytest.raises(ValueError, match="no column attribute"):
        await repo.find_where("nickname", "x")


@pytest.mark.asyncio
async def test_hooks_fire_only_after_commit(repo: BaseRepository[Account], hooks) -> None:
    listener = AsyncMock()
    hooks.register(Account, listener)
    account = await repo.create(Account(team_id=3, email="ana@example.com"))
    listener.on_entity_committed.assert_not_awaited()
    await repo.commit()
    listener.on_entity_committed.assert_awaited_once_with(account, True, {})


@pytest.mark.asyncio
async def test_update_passes_original_values(repo: BaseRepository[Account], hooks) -> None:
    (ana, _, _) = await _seed(repo)
    listener = AsyncMock()
    hooks.register(Account, listener)
    ana.team_id = 4
    await repo.update(ana)
    await repo.commit()
    listener.on_entity_committed.assert_awaited_once_with(ana, False, {"team_id": 3})


@pytest.mark.asyncio
async def test_update_detached_object(session_factory, repo: BaseRepository[Account], hooks) -> None:
    (ana, _, _) = await _seed(repo)
    listener = AsyncMock()
    hooks.register(Account, listener)
    async with session_factory() as other:
        other_repo = BaseRepository(other, Account, hooks)
        updated = await other_repo.update(Account(id=ana.id, team_id=9, email="ana@example.com"))
        await other_repo.commit()
    assert updated.team_id == 9
    listener.on_entity_committed.assert_awaited_once()
    _, is_create, original_values = listener.on_entity_committed.await_args.args
    assert is_create is False
    assert original_values == {"team_id": 3}


@pytest.mark.asyncio
async def test_update_missing_row_raises(repo: BaseRepository[Account]) -> None:
    with pytest.raises(EntityNotFoundException) as exc_info:
        await repo.update(Account(id=404, team_id=1, email="nobody@example.com"))
    assert exc_info.value.error_code == "ENTITY_NOT_FOUND"


@pytest.mark.asyncio
async def test_rollback_discards_notifications(repo: BaseRepository[Account], hooks) -> None:
    listener = AsyncMock()
    hooks.register(Account, listener)
    await repo.create(Account(team_id=3, email="ana@example.com"))
    await repo.rollback()
    await repo.commit()
    listener.on_entity_committed.assert_not_awaited()


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_commit(repo: BaseRepository[Account], hooks) -> None:
    listener = AsyncMock()
    listener.on_entity_committed.side_effect = RuntimeError("cache exploded")
    hooks.register(Account, listener)
    account = await repo.create(Account(team_id=3, email="ana@example.com"))
    await repo.commit()
    assert (await repo.find_by_id(account.id)) is not None


@pytest.mark.asyncio
async def test_cache_stays_coherent_through_writes(repo: BaseRepository[Account], hooks) -> None:
    cache = MemoryCache()
    service = CacheAsideService(Account, repo, cache, ttl=60, strict_index=False)
    hooks.register(Account, service)
    ana, ben, _ = await _seed(repo)

    assert await cache.exists(build_key("Account", "id", ana.id))
    assert {a.id for a in await service.get_collection_by_field("team_id", 3)} == {ana.id, ben.id}

    ana.team_id = 4
    await repo.update(ana)
    await repo.commit()
    assert {a.id for a in await service.get_collection_by_field("team_id", 3)} == {ben.id}
    assert [a.id for a in await service.get_collection_by_field("team_id", 4)] == [ana.id]
    assert (await service.get_one_by_id(ana.id)).team_id == 4

    await repo.delete(ben)
    await repo.commit()
    assert not await cache.exists(build_key("Account", "id", ben.id))
    assert await service.get_one_by_id(ben.id) is None
    assert await service.get_collection_by_field("team_id", 3) == []


@pytest.mark.asyncio
async def test_get_db_unconfigured(monkeypatch) -> None:
    monkeypatch.setattr(database, "engine", None)
    monkeypatch.setattr(database, "AsyncSessionLocal", None)
    with pytest.raises(StoreNotConfiguredException):
        await anext(database.get_db())


@pytest.mark.asyncio
async def test_get_db_configured(monkeypatch) -> None:
    monkeypatch.setattr(database, "engine", None)
    monkeypatch.setattr(database, "AsyncSessionLocal", None)
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    sessions = database.get_db()
    session = await anext(sessions)
    assert session.sync_session.expire_on_commit is False
    await sessions.aclose()
    await database.dispose_engine()
    assert database.engine is None


def test_mixin_snapshot_round_trip_for_enum_time_interval_and_bytes() -> None:
    shipment = Shipment(
        id=3,
        status=ShipmentStatus.SHIPPED,
        pickup_at=time(9, 30),
        transit=timedelta(days=2, hours=3),
        label=b"\x89PNG\x00",
    )
    data = shipment.to_cache_dict()
    assert data == {
        "id": 3,
        "status": 2,
        "pickup_at": "09:30:00",
        "transit": 183600.0,
        "label": "iVBORwA=",
    }
    assert json.loads(json.dumps(data)) == data
    restored = Shipment.from_cache_dict(data)
    assert restored.status is ShipmentStatus.SHIPPED
    assert restored.pickup_at == time(9, 30)
    assert restored.transit == timedelta(days=2, hours=3)
    assert restored.label == b"\x89PNG\x00"


@pytest.mark.asyncio
async def test_shipment_served_from_cache_after_write(db, hooks) -> None:
    repo = BaseRepository(db, Shipment, hooks)
    service = CacheAsideService(Shipment, repo, MemoryCache(), ttl=60, strict_index=False)
    hooks.register(Shipment, service)
    shipment = await repo.create(
        Shipment(status=ShipmentStatus.PACKED, pickup_at=time(8), transit=timedelta(hours=5), label=b"x")
    )
    await repo.commit()
    cached = await service.get_one_by_id(shipment.id)
    assert cached is not shipment
    assert cached.status is ShipmentStatus.PACKED
    assert cached.transit == timedelta(hours=5)
    assert [s.id for s in await service.get_collection_by_field("status", ShipmentStatus.PACKED)] == [shipment.id]


class TestNotificationsFollowTheSession:
    """Notifications are dispatched only for writes the session committed."""

    @pytest.mark.asyncio
    async def test_direct_session_rollback_drops_notifications(self, db, repo, hooks) -> None:
        cache = MemoryCache()
        service = CacheAsideService(Account, repo, cache, ttl=60, strict_index=False)
        hooks.register(Account, service)
        ghost = await repo.create(Account(team_id=3, email="ghost@example.com"))
        ghost_id = ghost.id
        await db.rollback()
        await repo.commit()
        assert cache.keys() == []
        assert await repo.find_by_id(ghost_id) is None
        assert await service.get_one_by_id(ghost_id) is None

    @pytest.mark.asyncio
    async def test_rollback_after_commit_drops_only_the_uncommitted_write(self, db, repo, hooks) -> None:
        listener = AsyncMock()
        hooks.register(Account, listener)
        kept = await repo.create(Account(team_id=3, email="kept@example.com"))
        await repo.commit()
        await repo.create(Account(team_id=3, email="ghost@example.com"))
        await db.rollback()
        await repo.commit()
        listener.on_entity_committed.assert_awaited_once_with(kept, True, {})

    @pytest.mark.asyncio
    async def test_session_close_without_commit_drops_notifications(self, db, repo, hooks) -> None:
        listener = AsyncMock()
        hooks.register(Account, listener)
        await repo.create(Account(team_id=3, email="ghost@example.com"))
        await db.close()
        await repo.commit()
        listener.on_entity_committed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_commit_through_another_repository_dispatches(self, db, repo, hooks) -> None:
        listener = AsyncMock()
        hooks.register(Account, listener)
        account = await repo.create(Account(team_id=3, email="ana@example.com"))
        other = BaseRepository(db, Account)
        await other.commit()
        listener.on_entity_committed.assert_awaited_once_with(account, True, {})
        await repo.commit()
        listener.on_entity_committed.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_direct_session_commit_dispatched_by_next_repository_commit(
        self, db, repo, hooks
    ) -> None:
        listener = AsyncMock()
        hooks.register(Account, listener)
        account = await repo.create(Account(team_id=3, email="ana@example.com"))
        await db.commit()
        listener.on_entity_committed.assert_not_awaited()
        await repo.commit()
        listener.on_entity_committed.assert_awaited_once_with(account, True, {})

    @pytest.mark.asyncio
    async def test_two_repositories_one_session_rollback(self, db, repo, hooks) -> None:
        listener = AsyncMock()
        hooks.register(Account, listener)
        other = BaseRepository(db, Account, hooks)
        await repo.create(Account(team_id=3, email="ana@example.com"))
        await other.create(Account(team_id=4, email="ben@example.com"))
        await other.rollback()
        await repo.commit()
        await other.commit()
        listener.on_entity_committed.assert_not_awaited()
