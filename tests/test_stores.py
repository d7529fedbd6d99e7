"""
Record Store Contract Tests
===========================
Every backend runs the same contract: in-memory, SQL (aiosqlite) and
Redis (fakeredis with Lua).
"""

import asyncio
from datetime import datetime, timedelta, timezone

import fakeredis
import pytest
import pytest_asyncio

from otp_core.exceptions import AlreadyExistsError, ConflictError, NotFoundError
from otp_core.otp import OTPKind, OTPRecord, OTPStatus
from otp_core.store import (
    InMemoryRecordStore,
    RedisRecordStore,
    SQLRecordStore,
    create_async_engine,
    init_schema,
)

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_record(record_id, identity="a@x.com", created=0, ttl=300, **overrides):
    created_at = T0 + timedelta(seconds=created)
    values = dict(
        id=record_id,
        identity=identity,
        org_id="org-1",
        code_hash="$argon2id$v=19$m=8,t=1,p=1$c2FsdA$aGFzaA",
        created_at=created_at,
        expires_at=created_at + timedelta(seconds=ttl),
        kind=OTPKind.LOGIN,
        display_name="Alice",
    )
    values.update(overrides)
    return OTPRecord(**values)


@pytest_asyncio.fixture(params=["memory", "sql", "redis"])
async def record_store(request, tmp_path):
    if request.param == "memory":
        store = InMemoryRecordStore()
    elif request.param == "sql":
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'otp.db'}")
        await init_schema(engine)
        store = SQLRecordStore(engine)
    else:
        store = RedisRecordStore(fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer()))
    yield store
    await store.close()


class TestCreateAndGet:

    @pytest.mark.asyncio
    async def test_round_trip(self, record_store):
        record = make_record("rec-1")
        await record_store.create(record)

        loaded = await record_store.get_by_id("rec-1")

        assert loaded == record
        assert loaded.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_duplicate_id(self, record_store):
        await record_store.create(make_record("rec-1"))

        with pytest.raises(AlreadyExistsError):
            await record_store.create(make_record("rec-1", identity="b@x.com"))

        assert (await record_store.get_by_id("rec-1")).identity == "a@x.com"

    @pytest.mark.asyncio
    async def test_missing_id(self, record_store):
        with pytest.raises(NotFoundError):
            await record_store.get_by_id("nope")


class TestUpdateStatus:

    @pytest.mark.asyncio
    async def test_sent(self, record_store):
        await record_store.create(make_record("rec-1"))
        sent_at = T0 + timedelta(seconds=2)

        await record_store.update_status("rec-1", OTPStatus.SENT, sent_at=sent_at)

        loaded = await record_store.get_by_id("rec-1")
        assert loaded.status == OTPStatus.SENT
        assert loaded.sent_at == sent_at
        assert loaded.used is False

    @pytest.mark.asyncio
    async def test_failed(self, record_store):
        await record_store.create(make_record("rec-1"))
        failed_at = T0 + timedelta(seconds=2)

        await record_store.update_status("rec-1", OTPStatus.FAILED, error="bounce", failed_at=failed_at)

        loaded = await record_store.get_by_id("rec-1")
        assert loaded.status == OTPStatus.FAILED
        assert loaded.error == "bounce"
        assert loaded.failed_at == failed_at

    @pytest.mark.asyncio
    async def test_missing(self, record_store):
        with pytest.raises(NotFoundError):
            await record_store.update_status("nope", OTPStatus.SENT)

    @pytest.mark.asyncio
    async def test_rejects_unknown_fields(self, record_store):
        await record_store.create(make_record("rec-1"))

        with pytest.raises(ValueError):
            await record_store.update_status("rec-1", OTPStatus.SENT, used=True)


class TestFindLatestValid:

    @pytest.mark.asyncio
    async def test_latest_unused_wins(self, record_store):
        await record_store.create(make_record("old", created=0))
        await record_store.create(make_record("new", created=10))
        await record_store.create(make_record("other", identity="b@x.com", created=20))

        assert (await record_store.find_latest_valid("a@x.com")).id == "new"

    @pytest.mark.asyncio
    async def test_skips_used(self, record_store):
        await record_store.create(make_record("old", created=0))
        await record_store.create(make_record("new", created=10))
        await record_store.mark_used("new", T0 + timedelta(seconds=11))

        assert (await record_store.find_latest_valid("a@x.com")).id == "old"
        assert (await record_store.find_latest("a@x.com")).id == "new"

    @pytest.mark.asyncio
    async def test_tie_break_highest_id(self, record_store):
        await record_store.create(make_record("rec-a", created=5))
        await record_store.create(make_record("rec-c", created=5))
        await record_store.create(make_record("rec-b", created=5))

        assert (await record_store.find_latest_valid("a@x.com")).id == "rec-c"
        assert (await record_store.find_latest("a@x.com")).id == "rec-c"

    @pytest.mark.asyncio
    async def test_none_found(self, record_store):
        with pytest.raises(NotFoundError):
            await record_store.find_latest_valid("a@x.com")
        with pytest.raises(NotFoundError):
            await record_store.find_latest("a@x.com")

        await record_store.create(make_record("rec-1"))
        await record_store.mark_used("rec-1", T0)
        with pytest.raises(NotFoundError):
            await record_store.find_latest_valid("a@x.com")


class TestMarkUsed:

    @pytest.mark.asyncio
    async def test_compare_and_set(self, record_store):
        await record_store.create(make_record("rec-1"))
        used_at = T0 + timedelta(seconds=30)

        await record_store.mark_used("rec-1", used_at)
        with pytest.raises(ConflictError):
            await record_store.mark_used("rec-1", used_at + timedelta(seconds=1))

        loaded = await record_store.get_by_id("rec-1")
        assert loaded.used is True
        assert loaded.used_at == used_at

    @pytest.mark.asyncio
    async def test_missing(self, record_store):
        with pytest.raises(NotFoundError):
            await record_store.mark_used("nope", T0)

    @pytest.mark.asyncio
    async def test_concurrent_single_winner(self, record_store):
        await record_store.create(make_record("rec-1"))

        results = await asyncio.gather(
            *[record_store.mark_used("rec-1", T0) for _ in range(8)],
            return_exceptions=True,
        )

        assert results.count(None) == 1
        assert all(isinstance(r, ConflictError) for r in results if r is not None)

    @pytest.mark.asyncio
    async def test_status_independent_of_used(self, record_store):
        await record_store.create(make_record("rec-1"))
        await record_store.mark_used("rec-1", T0)
        await record_store.update_status("rec-1", OTPStatus.FAILED, error="late bounce")

        loaded = await record_store.get_by_id("rec-1")
        assert loaded.used is True
        assert loaded.status == OTPStatus.FAILED


class TestDeleteExpired:

    @pytest.mark.asyncio
    async def test_deletes_strictly_before(self, record_store):
        await record_store.create(make_record("gone", ttl=10))
        await record_store.create(make_record("gone-used", ttl=20))
        await record_store.mark_used("gone-used", T0)
        await record_store.create(make_record("edge", ttl=30))
        await record_store.create(make_record("live", ttl=300))

        deleted = await record_store.delete_expired_before(T0 + timedelta(seconds=30))

        assert deleted == 2
        for record_id in ("gone", "gone-used"):
            with pytest.raises(NotFoundError):
                await record_store.get_by_id(record_id)
        assert (await record_store.get_by_id("edge")).id == "edge"
        assert (await record_store.get_by_id("live")).id == "live"
        assert await record_store.delete_expired_before(T0 + timedelta(seconds=30)) == 0

    @pytest.mark.asyncio
    async def test_deleted_records_leave_lookups(self, record_store):
        await record_store.create(make_record("old", ttl=10))
        await record_store.delete_expired_before(T0 + timedelta(seconds=60))

        with pytest.raises(NotFoundError):
            await record_store.find_latest_valid("a@x.com")
        with pytest.raises(NotFoundError):
            await record_store.find_latest("a@x.com")
        with pytest.raises(NotFoundError):
            await record_store.mark_used("old", T0)


class TestRedisIndexes:

    @pytest.mark.asyncio
    async def test_mark_used_leaves_identity_index(self):
        redis = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())
        store = RedisRecordStore(redis, key_prefix="t")
        await store.create(make_record("rec-1"))

        await store.mark_used("rec-1", T0)

        assert await redis.zscore("t:identity:a@x.com", "rec-1") is None
        assert await redis.zscore("t:history:a@x.com", "rec-1") is not None
        await store.close()
