"""Tests for the task-tagged message protocol."""

import asyncio
import logging

from ad_monitor.actions.gateway import ActionGateway
from ad_monitor.actions.host import SimulatedHost
from ad_monitor.reconciler.loop import Reconciler
from ad_monitor.reconciler.messages import MessageHandler
from ad_monitor.state_store.storage import MemoryStorage
from ad_monitor.state_store.store import EntityStateStore


class TestMessageHandler:
    def setup_method(self):
        self.host = SimulatedHost()
        self.tab = self.host.open_tab("3")
        self.store = EntityStateStore(MemoryStorage())
        self.reconciler = Reconciler(store=self.store, gateway=ActionGateway(self.host))
        self.handler = MessageHandler(self.reconciler)

    def _send(self, *messages):
        async def scenario():
            await self.store.initialize()
            return [await self.handler.handle(m) for m in messages]

        return asyncio.run(scenario())

    def test_toggle_mute(self):
        responses = self._send(
            {"task": "toggleMute", "tabId": 3},
            {"task": "toggleMute", "tabId": 3},
        )
        assert responses == [{"success": True}, {"success": True}]
        assert self.tab.muted is False

    def test_toggle_player(self):
        assert self._send({"task": "togglePlayer", "tabId": "3"}) == [{"success": True}]
        assert self.tab.handler.player_hidden is True

    def test_toggle_without_entity_fails(self):
        assert self._send({"task": "toggleMute"}) == [{"success": False}]

    def test_toggle_debug(self):
        assert self._send({"task": "toggleDebug"}) == [{"success": True}]
        assert self.store.debug_mode is True

    def test_log_is_fire_and_forget(self, caplog):
        caplog.set_level(logging.DEBUG, logger="ad_monitor.remote")
        responses = self._send({
            "task": "log",
            "message": "player hidden",
            "level": "warn",
            "selector": ".video-render-surface",
        })
        assert responses == [True]
        record = next(r for r in caplog.records if r.name == "ad_monitor.remote")
        assert record.levelno == logging.WARNING
        assert "player hidden" in record.getMessage()
        assert ".video-render-surface" in record.getMessage()

    def test_unknown_task(self, caplog):
        responses = self._send({"task": "reboot"}, {"task": "toggleMute", "tabId": 3})
        assert responses == [{"success": False}, {"success": True}]
        assert any("Unknown task" in r.getMessage() for r in caplog.records)

    def test_non_string_task_rejected(self):
        assert self._send({"task": 7}, {"tabId": 3}, ["toggleMute"]) == [
            {"success": False},
            {"success": False},
            {"success": False},
        ]
