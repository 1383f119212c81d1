"""
Tests for settings parsing and the activity recorder lifecycle.
"""
import pytest

from activity import ActivityRecorder
from config import Settings


@pytest.mark.unit
class TestSettings:

    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.store_backend == "memory"
        assert settings.match_score_threshold == 50
        assert settings.top_matches_limit == 10
        assert settings.strict_status_transitions is False
        assert settings.log_level == "INFO"
        assert settings.port == 8000

    def test_database_url_selects_mongo(self):
        settings = Settings.from_env({"DATABASE_URL": "mongodb://localhost:27017", "DATABASE_NAME": "mm"})
        assert settings.store_backend == "mongo"
        assert settings.database_name == "mm"

    def test_explicit_memory_backend_wins(self):
        settings = Settings.from_env({"DATABASE_URL": "mongodb://x", "STORE_BACKEND": "memory"})
        assert settings.store_backend == "memory"

    def test_overrides(self):
        settings = Settings.from_env({
            "MATCH_SCORE_THRESHOLD": "65",
            "TOP_MATCHES_LIMIT": "3",
            "STRICT_STATUS_TRANSITIONS": "yes",
            "LOG_LEVEL": "debug",
        })
        assert settings.match_score_threshold == 65
        assert settings.top_matches_limit == 3
        assert settings.strict_status_transitions is True
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("env", [
        {"MATCH_SCORE_THRESHOLD": "fifty"},
        {"MATCH_SCORE_THRESHOLD": "101"},
        {"TOP_MATCHES_LIMIT": "0"},
        {"STORE_BACKEND": "redis"},
        {"STORE_BACKEND": "mongo"},
    ])
    def test_invalid_values_fail_fast(self, env):
        with pytest.raises(ValueError):
            Settings.from_env(env)


@pytest.mark.unit
class TestActivityRecorder:

    def test_record_and_query(self, store):
        recorder = ActivityRecorder(store).init()
        recorder.record("u1", "creator", "match_suggested", {"match_id": "m1"})
        recorder.record("u2", "investor", "match_status_changed")

        entries = recorder.query(user_id="u1")
        assert len(entries) == 1
        assert entries[0]["action"] == "match_suggested"
        assert entries[0]["created_at"] > 0
        assert len(recorder.query(action="match_status_changed")) == 1
        assert len(recorder.query()) == 2

    def test_record_requires_init(self, store):
        with pytest.raises(RuntimeError):
            ActivityRecorder(store).record("u1", "creator", "x")

    def test_record_after_shutdown(self, store):
        recorder = ActivityRecorder(store).init()
        recorder.shutdown()
        assert not recorder.is_open
        with pytest.raises(RuntimeError):
            recorder.record("u1", "creator", "x")

    def test_rejects_unknown_user_type(self, store):
        recorder = ActivityRecorder(store).init()
        with pytest.raises(ValueError):
            recorder.record("u1", "admin", "x")
