"""
test_contact_roster.py — Seeding, ordering and uniqueness of the
emergency contact roster.

Run with:
    pytest tests/test_contact_roster.py -v
"""

from __future__ import annotations

import asyncio

from aurora.app.alerts.models import EmergencyContact
from aurora.app.alerts.roster import ContactRoster

from conftest import FakeContactStore


def _c(phone, name="Contact", relationship=""):
    return EmergencyContact(name=name, phone=phone, relationship=relationship)


class TestRosterLoad:

    def test_never_saved_seeds_defaults(self):
        store = FakeContactStore(None)
        roster = ContactRoster(store)
        contacts = asyncio.run(roster.load())
        assert [c.phone for c in contacts] == ["112", "108"]
        assert store.saves == 1
        assert [c.phone for c in store.saved] == ["112", "108"]

    def test_explicitly_empty_roster_stays_empty(self):
        store = FakeContactStore([])
        roster = ContactRoster(store)
        assert asyncio.run(roster.load()) == []
        assert roster.snapshot() == []
        assert store.saves == 0

    def test_load_dedupes_keeping_first(self):
        store = FakeContactStore([_c("1", "A"), _c("2", "B"), _c("1", "C")])
        roster = ContactRoster(store)
        asyncio.run(roster.load())
        assert [c.name for c in roster.contacts] == ["A", "B"]

    def test_reload_picks_up_external_edits(self):
        store = FakeContactStore([_c("1")])
        roster = ContactRoster(store)
        asyncio.run(roster.load())
        store.saved.append(_c("2"))
        asyncio.run(roster.load())
        assert roster.snapshot() == ["1", "2"]


class TestRosterEdits:

    def test_add_appends_in_order_and_persists(self):
        store = FakeContactStore([_c("1")])
        roster = ContactRoster(store)

        async def scenario():
            await roster.load()
            return await roster.add(_c("2"))

        assert asyncio.run(scenario()) is True
        assert roster.snapshot() == ["1", "2"]
        assert [c.phone for c in store.saved] == ["1", "2"]

    def test_add_duplicate_phone_rejected(self):
        store = FakeContactStore([_c("1")])
        roster = ContactRoster(store)

        async def scenario():
            await roster.load()
            return await roster.add(_c("1", name="Other"))

        assert asyncio.run(scenario()) is False
        assert len(roster) == 1
        assert store.saves == 0

    def test_remove(self):
        store = FakeContactStore([_c("1"), _c("2")])
        roster = ContactRoster(store)

        async def scenario():
            await roster.load()
            return await roster.remove("1"), await roster.remove("9")

        assert asyncio.run(scenario()) == (True, False)
        assert roster.snapshot() == ["2"]
        assert "1" not in roster

    def test_snapshot_is_a_copy(self):
        roster = ContactRoster(FakeContactStore([_c("1")]))
        asyncio.run(roster.load())
        snap = roster.snapshot()
        asyncio.run(roster.add(_c("2")))
        assert snap == ["1"]

    def test_replace_dedupes_and_persists(self):
        store = FakeContactStore([_c("1")])
        roster = ContactRoster(store)
        asyncio.run(roster.replace([_c("3"), _c("4"), _c("3")]))
        assert roster.snapshot() == ["3", "4"]
        assert [c.phone for c in store.saved] == ["3", "4"]
