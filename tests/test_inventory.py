"""Tests for the snapshot inventory."""

from datetime import datetime, timedelta

import pytest

from datacache.errors import ConfigurationError
from datacache.frequencies import daily, hourly
from datacache.inventory import cache_info, current_snapshot
from datacache.storage import SnapshotStore

NOW = datetime(2026, 3, 18, 10, 0, 0)


@pytest.fixture
def store(tmp_path):
    store = SnapshotStore(tmp_path, "Cache")
    store.ensure_dir()
    return store


class TestCacheInfo:
    """Tests for listing and ranking snapshots."""

    def test_missing_directory(self, tmp_path):
        assert cache_info(tmp_path / "nope", "Cache") == []

    def test_empty_directory(self, store):
        assert cache_info(store.cache_dir, "Cache") == []

    def test_ranked_most_recent_first(self, store):
        t1 = NOW - timedelta(days=3)
        t2 = NOW - timedelta(days=1)
        t3 = NOW - timedelta(hours=1)
        for created in (t2, t3, t1):
            store.write({"x": created}, created)

        records = cache_info(store.cache_dir, "Cache", stale=None, now=NOW)

        assert [r.created for r in records] == [t3, t2, t1]
        assert records[0].created == t3
        assert records[0].file_name == store.snapshot_path(t3).name

    def test_age_units(self, store):
        store.write({}, NOW - timedelta(hours=2))

        assert cache_info(store.cache_dir, "Cache", now=NOW)[0].age == pytest.approx(120)
        hours = cache_info(store.cache_dir, "Cache", units="hours", now=NOW)[0]
        assert hours.age == pytest.approx(2)
        assert hours.units == "hours"

    def test_unknown_units(self, store):
        with pytest.raises(ConfigurationError):
            cache_info(store.cache_dir, "Cache", units="fortnights")

    def test_ignores_other_files(self, store):
        created = NOW - timedelta(hours=1)
        store.write({}, created)
        SnapshotStore(store.cache_dir, "Other").write({}, created)
        store.log_path(created).write_text("log")
        store.acquire_lock()
        (store.cache_dir / "Cache-notes.pkl").write_text("")
        (store.cache_dir / "Cache2026-01-01 000000.pkl.bak").write_text("")

        records = cache_info(store.cache_dir, "Cache", now=NOW)

        assert [r.file_name for r in records] == [store.snapshot_path(created).name]

    def test_unparseable_timestamp_warns_and_skips(self, store, console):
        store.write({}, NOW)
        (store.cache_dir / "Cache2026-13-45 999999.pkl").write_text("")

        records = cache_info(store.cache_dir, "Cache", now=NOW, console=console)

        assert len(records) == 1
        output = console.file.getvalue()
        assert "Warning" in output
        assert "Cache2026-13-45 999999.pkl" in output

    def test_does_not_modify_storage(self, store):
        store.write({}, NOW)
        before = sorted(p.name for p in store.cache_dir.iterdir())

        cache_info(store.cache_dir, "Cache")

        assert sorted(p.name for p in store.cache_dir.iterdir()) == before


class TestStaleColumns:
    """Tests for the per-policy stale flags."""

    def test_default_policies(self, store):
        store.write({}, datetime.now().replace(microsecond=0))

        record = cache_info(store.cache_dir, "Cache")[0]

        assert set(record.stale) == {"hourly", "daily", "weekly", "monthly", "yearly"}
        assert record.stale["yearly"] is False

    def test_custom_policies(self, store):
        store.write({}, datetime(2000, 1, 1))

        record = cache_info(
            store.cache_dir, "Cache", stale={"old": daily, "never": lambda t: False}
        )[0]

        assert record.stale == {"old": True, "never": False}

    def test_policies_use_reference_time(self, store):
        store.write({}, NOW - timedelta(minutes=30))

        record = cache_info(store.cache_dir, "Cache", now=NOW)[0]

        assert record.stale["hourly"] is True
        assert record.stale["daily"] is False
        assert record.stale["yearly"] is False

    def test_one_argument_policy_with_reference_time(self, store):
        store.write({}, NOW)

        record = cache_info(
            store.cache_dir,
            "Cache",
            stale={"never": lambda t: False, "hourly": hourly},
            now=NOW,
        )[0]

        assert record.stale == {"never": False, "hourly": False}

    def test_no_policies(self, store):
        store.write({}, NOW)
        assert cache_info(store.cache_dir, "Cache", stale=None)[0].stale == {}

    @pytest.mark.parametrize(
        "stale",
        [
            {"": hourly},
            {"  ": hourly},
            [("hourly", hourly), ("hourly", daily)],
            [hourly],
            {"hourly": "not a function"},
        ],
    )
    def test_invalid_policy_names(self, tmp_path, stale):
        with pytest.raises(ConfigurationError):
            cache_info(tmp_path / "missing", "Cache", stale=stale)


class TestCurrentSnapshot:
    """Tests for the current snapshot lookup."""

    def test_none_when_empty(self, store):
        assert current_snapshot(store.cache_dir, "Cache") is None

    def test_most_recent(self, store):
        store.write({}, NOW - timedelta(days=1))
        store.write({}, NOW)

        assert current_snapshot(store.cache_dir, "Cache").created == NOW
