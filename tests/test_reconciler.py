"""
test_reconciler.py — Start-up sweep of pending alerts.

Run with:
    pytest tests/test_reconciler.py -v
"""

from __future__ import annotations

import asyncio

from aurora.app.alerts.models import AlertStatus, SOSAlert, UserSettings

from conftest import FakeStore, build_harness, settle


def _pending(lat, numbers):
    return SOSAlert(lat, lat + 1, "2026-01-01T10:00:00+00:00", "SOS", list(numbers))


def _seeded_store(n=3):
    store = FakeStore()
    for i in range(n):
        store.seed(_pending(float(i), [f"10{i}", "112"]))
    return store


class TestReconciler:

    def test_three_pending_rows_online_each_sent_once(self):
        h = build_harness(store=_seeded_store(3), online=True)
        report = asyncio.run(h.reconciler.run())
        assert h.collector.calls == 3
        assert sorted(w["latitude"] for w in h.collector.sent) == [0.0, 1.0, 2.0]
        assert (report.pending, report.attempted, report.sent) == (3, 3, 3)
        assert all(a.status is AlertStatus.SENT for a in h.store.rows.values())

    def test_offline_performs_zero_operations(self):
        store = _seeded_store(3)
        h = build_harness(store=store, online=False)
        report = asyncio.run(h.reconciler.run())
        assert store.ops == 0
        assert h.collector.calls == 0
        assert h.gateway.broadcasts == []
        assert report.online is False
        assert report.attempted == 0

    def test_uses_stored_numbers_not_current_roster(self):
        h = build_harness(store=_seeded_store(1), online=True, collector_fails=True)
        report = asyncio.run(h.reconciler.run())
        assert report.failed == 1
        assert h.gateway.sent_numbers == ["100", "112"]
        assert h.location.calls == 0

    def test_terminal_rows_ignored(self):
        store = _seeded_store(2)
        store.rows[1].status = AlertStatus.SENT
        h = build_harness(store=store, online=True)
        report = asyncio.run(h.reconciler.run())
        assert report.pending == 1
        assert h.collector.calls == 1

    def test_per_row_failure_isolated(self):
        class FlakyStore(FakeStore):
            async def update_status(self, alert_id, status):
                if alert_id == 2:
                    raise RuntimeError("row 2 corrupt")
                await super().update_status(alert_id, status)

        store = FlakyStore()
        for i in range(3):
            store.seed(_pending(float(i), ["112"]))
        h = build_harness(store=store, online=True)
        report = asyncio.run(h.reconciler.run())
        assert report.attempted == 3
        assert report.sent == 2
        assert len(report.errors) == 1
        assert store.status_of(1) is AlertStatus.SENT
        assert store.status_of(3) is AlertStatus.SENT

    def test_connectivity_error_treated_as_offline(self):
        store = _seeded_store(1)
        h = build_harness(store=store)
        h.connectivity.raises = True
        report = asyncio.run(h.reconciler.run())
        assert report.online is False
        assert store.ops == 0

    def test_skips_in_flight_alert(self):
        async def scenario():
            h = build_harness(
                store=_seeded_store(2), online=True,
                user_settings=UserSettings(timer_enabled=True, timer_seconds=10),
            )
            await h.controller.trigger()
            await settle()
            active = h.controller.active_alert_id
            report = await h.controller.reconcile_pending(h.reconciler)
            status = h.store.status_of(active)
            await h.controller.cancel()
            return report, status

        report, status = asyncio.run(scenario())
        assert report.pending == 3
        assert report.skipped == 1
        assert report.sent == 2
        assert status is AlertStatus.PENDING

    def test_cancelled_alert_retried_on_next_start(self):
        async def scenario():
            h = build_harness(
                online=True,
                user_settings=UserSettings(timer_enabled=True, timer_seconds=10),
            )
            await h.controller.trigger()
            await settle()
            await h.controller.cancel()
            report = await h.controller.reconcile_pending(h.reconciler)
            return h, report

        h, report = asyncio.run(scenario())
        assert report.sent == 1
        (alert,) = h.store.rows.values()
        assert alert.status is AlertStatus.SENT
