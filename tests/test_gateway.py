"""Tests for the Action Gateway."""

import asyncio

from ad_monitor.actions.gateway import ActionGateway
from ad_monitor.actions.host import AD_NOTICE_TEXT, PlayerHandler, SimulatedHost


def _run(coro):
    return asyncio.run(coro)


class TestActionGateway:
    def setup_method(self):
        self.host = SimulatedHost()
        self.tab = self.host.open_tab("1")
        self.gateway = ActionGateway(self.host, timeout_seconds=0.5)

    def test_mute_and_unmute(self):
        assert _run(self.gateway.mute("1")) is True
        assert self.tab.muted is True
        assert self.tab.mute_reason == "extension"

        assert _run(self.gateway.unmute("1")) is True
        assert self.tab.muted is False

    def test_mute_refuses_user_mute(self):
        self.host.user_mute("1")
        assert _run(self.gateway.mute("1")) is False
        assert self.tab.mute_reason == "user"

        result = self.gateway.get_recent_results(limit=1)[0]
        assert result.action_type == "mute"
        assert result.success is False
        assert "user" in result.error

    def test_mute_allowed_over_non_user_mute(self):
        self.tab.muted = True
        self.tab.mute_reason = "capture"
        assert _run(self.gateway.mute("1")) is True

    def test_hide_and_show_player(self):
        assert _run(self.gateway.hide_player("1")) is True
        assert self.tab.handler.player_hidden is True
        assert self.tab.handler.ad_notice == AD_NOTICE_TEXT

        assert _run(self.gateway.show_player("1")) is True
        assert self.tab.handler.player_hidden is False
        assert self.tab.handler.ad_notice is None

    def test_handler_failure_is_reported(self):
        self.tab.handler.has_player = False
        assert _run(self.gateway.hide_player("1")) is False
        assert self.gateway.get_recent_results(limit=1)[0].error == "player element not found"

    def test_unanswered_message_is_failure(self):
        self.tab.responsive = False
        assert _run(self.gateway.hide_player("1")) is False

    def test_missing_entity_is_failure_not_exception(self):
        assert _run(self.gateway.mute("404")) is False
        assert _run(self.gateway.unmute("404")) is False
        assert _run(self.gateway.show_player("404")) is False

    def test_hung_call_times_out(self):
        self.tab.latency_seconds = 5
        gateway = ActionGateway(self.host, timeout_seconds=0.05)
        assert _run(gateway.hide_player("1")) is False
        assert "timed out" in gateway.get_recent_results(limit=1)[0].error

    def test_relay_debug_toggle(self):
        assert _run(self.gateway.relay_debug_toggle("1")) is True
        assert self.tab.handler.debug_mode is True

    def test_history_is_bounded(self):
        gateway = ActionGateway(self.host, history_limit=3)
        for _ in range(5):
            _run(gateway.unmute("1"))
        assert len(gateway.get_recent_results(limit=10)) == 3


class TestPlayerHandler:
    def test_toggle_without_hide_inverts(self):
        handler = PlayerHandler()
        assert handler.handle_message({"task": "togglePlayer"}) == {"success": True}
        assert handler.player_hidden is True
        handler.handle_message({"task": "togglePlayer"})
        assert handler.player_hidden is False

    def test_unknown_task(self):
        response = PlayerHandler().handle_message({"task": "explode"})
        assert response["success"] is False
        assert "Unknown task" in response["message"]

    def test_non_string_task(self):
        assert PlayerHandler().handle_message({"task": 1})["success"] is False
