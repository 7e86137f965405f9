"""Unit tests for SyncDB: schema, dirty tracking, persistence and merges."""

from __future__ import annotations

import logging

import pytest

from syncdb import (
    BOOLEAN,
    INT,
    STRING,
    FormatError,
    MapResolver,
    MemoryStorage,
    SyncConfig,
    SyncDB,
    resolver,
    set_resolver,
)


class PlayerDB(SyncDB):
    def __init__(self, storage, config=None):
        super().__init__(storage, config)
        self.tutorial_done = self.value("tutorialDone", False, BOOLEAN, resolver.TRUE)
        self.high_score = self.value("highScore", 0, INT, resolver.INTMAX)
        self.nickname = self.value("nickname", None, STRING, resolver.SERVER)
        self.unlocked = self.set("unlocked", STRING, set_resolver.UNION)
        self.best_times = self.map("bestTimes", STRING, INT, resolver.INTMAX)


@pytest.fixture
def db(storage) -> PlayerDB:
    return PlayerDB(storage)


class TestSchema:
    def test_fields_in_declaration_order(self, db):
        assert [f.key for f in db.fields()] == [
            "tutorialDone", "highScore", "nickname", "unlocked", "bestTimes",
        ]

    def test_field_lookup(self, db):
        assert db.field("highScore") is db.high_score

    def test_duplicate_key_rejected(self, storage):
        db = SyncDB(storage)
        db.value("a", 0, INT, resolver.INTMAX)
        with pytest.raises(ValueError, match="duplicate"):
            db.value("a", 0, INT, resolver.INTMAX)

    def test_reserved_prefix_rejected(self, storage):
        with pytest.raises(ValueError, match="reserved"):
            SyncDB(storage).value("syncdb.version", 0, INT, resolver.INTMAX)

    def test_scalar_resolver_wrapped_for_maps(self, db):
        assert isinstance(db.best_times.resolver, MapResolver)
        assert db.best_times.resolver.value_resolver is resolver.INTMAX


class TestFreshDatabase:
    def test_starts_at_version_zero(self, db):
        assert db.version() == 0
        assert not db.has_unsynced_changes()
        assert db.get_delta() == {}

    def test_defaults(self, db):
        assert db.snapshot() == {
            "tutorialDone": False,
            "highScore": 0,
            "nickname": None,
            "unlocked": frozenset(),
            "bestTimes": {},
        }


class TestDirtyTracking:
    def test_delta_lists_only_dirty_fields(self, db):
        db.high_score.update(10)
        db.unlocked.add("forest")
        assert db.get_delta() == {
            "highScore": "10",
            "unlocked": [{"op": "add", "element": '"forest"'}],
        }
        assert db.dirty_keys() == ["highScore", "unlocked"]

    def test_get_delta_does_not_clear(self, db):
        db.nickname.update("ace")
        assert db.get_delta() == db.get_delta() == {"nickname": '"ace"'}
        assert db.has_unsynced_changes()

    def test_revert_is_not_sent(self, db):
        db.high_score.update(10)
        db.high_score.update(0)
        assert db.get_delta() == {}


class TestNoteSync:
    def test_commits_offered_values(self, db, storage):
        db.high_score.update(10)
        db.get_delta()
        db.note_sync(1)
        assert db.version() == 1
        assert not db.has_unsynced_changes()
        assert storage.get_item("syncdb.version") == "1"
        assert storage.get_item("syncdb.base.highScore") is None

    def test_is_idempotent(self, db, storage):
        db.high_score.update(10)
        db.get_delta()
        db.note_sync(1)
        before = storage.to_dict()
        db.note_sync(1)
        assert storage.to_dict() == before
        assert db.version() == 1

    def test_edit_after_get_delta_stays_dirty(self, db):
        db.high_score.update(10)
        db.get_delta()
        db.high_score.update(12)
        db.unlocked.add("cave")
        db.note_sync(1)
        assert db.dirty_keys() == ["highScore", "unlocked"]
        assert db.get_delta()["highScore"] == "12"
        assert db.high_score.baseline == 10

    def test_without_get_delta_commits_nothing(self, db, storage, caplog):
        db.tutorial_done.update(True)
        with caplog.at_level(logging.WARNING, logger="syncdb"):
            db.note_sync(1)
        assert db.version() == 1
        assert db.dirty_keys() == ["tutorialDone"]
        assert storage.get_item("syncdb.base.tutorialDone") == "false"
        assert "tutorialDone" in caplog.text

    def test_after_reload_commits_nothing(self, db):
        db.high_score.update(10)
        db.get_delta()
        db.reload()
        db.note_sync(1)
        assert db.high_score.dirty
        assert db.get_delta() == {"highScore": "10"}

    def test_version_cannot_move_backwards(self, db):
        db.note_sync(3)
        with pytest.raises(ValueError):
            db.note_sync(2)


class TestApplyDelta:
    def test_merges_and_redirties(self, db):
        db.high_score.update(45)
        db.apply_delta(2, {"highScore": "40", "nickname": '"bar"'})
        assert db.version() == 2
        assert db.high_score.value == 45
        assert db.nickname.value == "bar"
        assert db.dirty_keys() == ["highScore"]

    def test_missing_keys_keep_pending_state(self, db):
        db.tutorial_done.update(True)
        db.apply_delta(1, {"highScore": "5"})
        assert db.tutorial_done.dirty
        assert db.high_score.value == 5

    def test_format_error_leaves_database_untouched(self, db, storage):
        db.high_score.update(45)
        before = storage.to_dict()
        with pytest.raises(FormatError) as info:
            db.apply_delta(2, {"nickname": '"bar"', "highScore": "forty"})
        assert info.value.key == "highScore"
        assert db.version() == 0
        assert db.nickname.value is None
        assert storage.to_dict() == before

    def test_unknown_key_ignored(self, db, caplog):
        with caplog.at_level(logging.WARNING, logger="syncdb"):
            db.apply_delta(1, {"retiredField": "1", "highScore": "3"})
        assert db.high_score.value == 3
        assert "retiredField" in caplog.text

    def test_version_cannot_move_backwards(self, db):
        db.apply_delta(4, {})
        with pytest.raises(ValueError):
            db.apply_delta(3, {})

    def test_listeners_notified_on_merge(self, db):
        calls = []
        db.nickname.connect(lambda key, new, old: calls.append((key, new, old)))
        db.apply_delta(1, {"nickname": '"bar"'})
        assert calls == [("nickname", "bar", None)]


class TestPersistence:
    def test_edits_written_through(self, db, storage):
        db.high_score.update(10)
        assert storage.get_item("highScore") == "10"
        assert storage.get_item("syncdb.base.highScore") == "0"

    def test_restart_restores_everything(self, storage):
        db = PlayerDB(storage)
        db.high_score.update(10)
        db.get_delta()
        db.note_sync(1)
        db.unlocked.update(["forest", "cave"])
        db.best_times.put("forest", 31)

        restarted = PlayerDB(storage)
        assert restarted.version() == 1
        assert restarted.snapshot() == db.snapshot()
        assert restarted.dirty_keys() == ["unlocked", "bestTimes"]
        assert restarted.get_delta() == db.get_delta()

    def test_reload(self, db, storage):
        other = PlayerDB(storage)
        other.high_score.update(99)
        db.reload()
        assert db.high_score.value == 99
        assert db.high_score.dirty

    def test_corrupt_version(self):
        with pytest.raises(FormatError):
            PlayerDB(MemoryStorage({"syncdb.version": "x"}))

    def test_negative_version(self):
        with pytest.raises(FormatError):
            PlayerDB(MemoryStorage({"syncdb.version": "-1"}))

    def test_corrupt_field_value(self):
        with pytest.raises(FormatError) as info:
            PlayerDB(MemoryStorage({"highScore": "lots"}))
        assert info.value.key == "highScore"

    def test_custom_key_prefix(self, storage):
        db = PlayerDB(storage, SyncConfig(key_prefix="player."))
        db.high_score.update(1)
        db.note_sync(1)
        assert storage.get_item("player.version") == "1"
        assert storage.get_item("syncdb.version") is None

    def test_readded_element_survives_restart(self, storage):
        db = PlayerDB(storage)
        db.unlocked.add("forest")
        db.get_delta()
        db.note_sync(1)
        db.unlocked.discard("forest")
        db.unlocked.add("forest")
        assert storage.get_item("syncdb.pending.unlocked") == '["\\"forest\\""]'

        restarted = PlayerDB(storage)
        assert restarted.unlocked.readded == {"forest"}
        assert restarted.get_delta() == {"unlocked": [{"op": "add", "element": '"forest"'}]}

    def test_pending_key_removed_once_synced(self, storage):
        db = PlayerDB(storage)
        db.unlocked.add("forest")
        db.get_delta()
        db.note_sync(1)
        db.unlocked.discard("forest")
        db.unlocked.add("forest")
        db.get_delta()
        db.note_sync(2)
        assert not db.has_unsynced_changes()
        assert storage.get_item("syncdb.pending.unlocked") is None
