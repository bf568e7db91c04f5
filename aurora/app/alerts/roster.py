"""
roster.py — Ordered, unique-by-phone emergency contact list.

The roster is a cached view of the ContactStore.  The controller reloads it
at the start of every trigger and hands the pipeline a ``snapshot()`` of
the phone numbers, so edits made while an alert is in flight never change
that alert's recipients.
"""

from __future__ import annotations

import logging
from typing import List

from aurora.app.alerts.models import DEFAULT_CONTACTS, EmergencyContact

logger = logging.getLogger(__name__)


class ContactRoster:
    """Emergency contacts in priority order."""

    def __init__(self, store):
        self._store = store
        self._contacts: List[EmergencyContact] = []

    @property
    def contacts(self) -> List[EmergencyContact]:
        return list(self._contacts)

    def __len__(self) -> int:
        return len(self._contacts)

    def __contains__(self, phone: object) -> bool:
        return any(c.phone == phone for c in self._contacts)

    async def load(self) -> List[EmergencyContact]:
        """
        Reload from storage.  A roster that was never saved is seeded with
        the default emergency numbers; an explicitly emptied one stays empty.
        """
        stored = await self._store.load()
        if stored is None:
            self._contacts = [
                EmergencyContact(c.name, c.phone, c.relationship)
                for c in DEFAULT_CONTACTS
            ]
            await self._store.save(self._contacts)
            logger.info(
                "Seeded default emergency contacts: %s",
                [c.phone for c in self._contacts],
            )
        else:
            self._contacts = _dedupe(stored)
        return self.contacts

    def snapshot(self) -> List[str]:
        """Phone numbers in roster order."""
        return [c.phone for c in self._contacts]

    async def add(self, contact: EmergencyContact) -> bool:
        """Append ``contact``. False if its phone is already present."""
        if contact.phone in self:
            logger.info("Contact %s already in roster", contact.phone)
            return False
        self._contacts.append(contact)
        await self._store.save(self._contacts)
        logger.info("Added emergency contact %s (%s)", contact.name, contact.phone)
        return True

    async def remove(self, phone: str) -> bool:
        """Remove by phone. False if no such contact."""
        remaining = [c for c in self._contacts if c.phone != phone]
        if len(remaining) == len(self._contacts):
            return False
        self._contacts = remaining
        await self._store.save(self._contacts)
        logger.info("Removed emergency contact %s", phone)
        return True

    async def replace(self, contacts: List[EmergencyContact]) -> None:
        self._contacts = _dedupe(contacts)
        await self._store.save(self._contacts)


def _dedupe(contacts: List[EmergencyContact]) -> List[EmergencyContact]:
    """Keep the first contact per phone, preserving order."""
    seen = set()
    result = []
    for c in contacts:
        if c.phone in seen:
            continue
        seen.add(c.phone)
        result.append(c)
    return result
