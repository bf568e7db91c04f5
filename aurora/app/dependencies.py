"""
Composition root — builds the SOS object graph from settings.

Every collaborator is constructed here and injected, so tests can swap any
of them (connectivity, gateway, collector, dialer, location) for fakes:

    services = build_services(db, connectivity=FakeOracle(online=False))

Routes reach the graph through ``get_services`` (stored on ``app.state``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from aurora.app.alerts.channels.collector import CollectorClient
from aurora.app.alerts.channels.connectivity import HttpConnectivityOracle
from aurora.app.alerts.channels.location import LastKnownLocationProvider
from aurora.app.alerts.channels.sms_gateway import SmsGateway
from aurora.app.alerts.channels.voice_call import VoiceDialer
from aurora.app.alerts.controller import AlertController
from aurora.app.alerts.dispatch import DispatchPipeline
from aurora.app.alerts.reconciler import PendingAlertReconciler
from aurora.app.alerts.roster import ContactRoster
from aurora.app.alerts.store import AlertStore, ContactStore, KeyValueStore, SettingsStore
from aurora.app.core.config import Settings, settings as default_settings
from aurora.app.core.database import Database


@dataclass
class SOSServices:
    db: Database
    store: AlertStore
    contact_store: ContactStore
    settings_store: SettingsStore
    roster: ContactRoster
    location: LastKnownLocationProvider
    connectivity: object
    collector: object
    gateway: object
    dialer: object
    pipeline: DispatchPipeline
    controller: AlertController
    reconciler: PendingAlertReconciler

    async def close(self) -> None:
        for client in (self.collector, self.gateway, self.connectivity):
            close = getattr(client, "close", None)
            if close is not None:
                await close()


def build_services(
    db: Database,
    *,
    config: Optional[Settings] = None,
    location=None,
    connectivity=None,
    collector=None,
    gateway=None,
    dialer=None,
    buzzer=None,
    timer_factory=None,
) -> SOSServices:
    cfg = config or default_settings

    location = location or LastKnownLocationProvider(cfg.LOCATION_MAX_AGE_SECONDS)
    connectivity = connectivity or HttpConnectivityOracle(
        cfg.CONNECTIVITY_PROBE_URL,
        timeout_seconds=cfg.CONNECTIVITY_TIMEOUT_SECONDS,
    )
    collector = collector or CollectorClient(
        cfg.SOS_COLLECTOR_URL,
        timeout_seconds=cfg.SOS_SEND_TIMEOUT_SECONDS,
    )
    gateway = gateway or SmsGateway(
        cfg.SMS_PROVIDER,
        account_sid=cfg.TWILIO_ACCOUNT_SID,
        auth_token=cfg.TWILIO_AUTH_TOKEN,
        from_number=cfg.TWILIO_FROM_NUMBER,
        timeout_seconds=cfg.SMS_TIMEOUT_SECONDS,
    )
    dialer = dialer or VoiceDialer(
        cfg.VOICE_PROVIDER,
        account_sid=cfg.TWILIO_ACCOUNT_SID,
        auth_token=cfg.TWILIO_AUTH_TOKEN,
        from_number=cfg.TWILIO_FROM_NUMBER,
    )

    store = AlertStore(db)
    kv = KeyValueStore(db)
    contact_store = ContactStore(kv)
    settings_store = SettingsStore(kv)
    roster = ContactRoster(contact_store)
    pipeline = DispatchPipeline(store, connectivity, collector, gateway)

    controller_kwargs = {}
    if timer_factory is not None:
        controller_kwargs["timer_factory"] = timer_factory

    controller = AlertController(
        location=location,
        roster=roster,
        settings_store=settings_store,
        store=store,
        pipeline=pipeline,
        dialer=dialer,
        emergency_number=cfg.EMERGENCY_DIAL_NUMBER,
        message=cfg.SOS_MESSAGE,
        buzzer=buzzer,
        **controller_kwargs,
    )

    return SOSServices(
        db=db,
        store=store,
        contact_store=contact_store,
        settings_store=settings_store,
        roster=roster,
        location=location,
        connectivity=connectivity,
        collector=collector,
        gateway=gateway,
        dialer=dialer,
        pipeline=pipeline,
        controller=controller,
        reconciler=PendingAlertReconciler(store, pipeline),
    )


def get_services(request: Request) -> SOSServices:
    """FastAPI dependency: the object graph built at start-up."""
    return request.app.state.services
