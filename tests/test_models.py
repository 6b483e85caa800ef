"""Tests for the data models."""

import pytest
from pydantic import ValidationError

from ad_monitor.models import (
    EntityPhase,
    EntityState,
    MonitorConfig,
    RequestRecord,
)
from ad_monitor.models.events import normalize_entity_id


class TestEntityState:
    def test_defaults(self):
        state = EntityState(entity_id="7")
        assert state.muted is False
        assert state.hidden is False
        assert state.playing_ads is False
        assert state.ad_start_time is None
        assert state.phase == EntityPhase.NORMAL

    def test_phase_follows_playing_ads(self):
        state = EntityState(entity_id="7", playing_ads=True, ad_start_time=100)
        assert state.phase == EntityPhase.AD_PLAYING


class TestRequestRecord:
    def test_browser_field_names(self):
        record = RequestRecord.model_validate({
            "method": "POST",
            "tabId": 12,
            "url": "https://gql.twitch.tv/gql",
            "requestBody": {"raw": [{"bytes": "[]"}]},
        })
        assert record.entity_id == "12"
        assert record.request_body == {"raw": [{"bytes": "[]"}]}

    def test_python_field_names(self):
        record = RequestRecord(method="POST", entity_id="tab-a")
        assert record.entity_id == "tab-a"

    def test_no_tab_sentinel(self):
        assert RequestRecord(method="POST", tabId=-1).entity_id is None
        assert RequestRecord(method="POST", tabId="").entity_id is None

    def test_method_required(self):
        with pytest.raises(ValidationError):
            RequestRecord.model_validate({"tabId": 1})


class TestNormalizeEntityId:
    def test_values(self):
        assert normalize_entity_id(3) == "3"
        assert normalize_entity_id(0) == "0"
        assert normalize_entity_id(" 9 ") == "9"
        assert normalize_entity_id(None) is None
        assert normalize_entity_id(True) is None
        assert normalize_entity_id("-1") is None
        assert normalize_entity_id(1.5) is None


class TestMonitorConfig:
    def test_defaults(self):
        config = MonitorConfig()
        assert config.ad_state_timeout_seconds == 60
        assert config.origin_patterns == ["*://gql.twitch.tv/*"]
        assert config.heartbeat_enabled is False

    def test_rejects_non_positive_action_timeout(self):
        with pytest.raises(ValidationError):
            MonitorConfig(action_timeout_seconds=0)
