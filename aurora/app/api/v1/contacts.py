"""
FastAPI route: emergency contact roster.

    GET    /api/v1/contacts          — roster in priority order
    POST   /api/v1/contacts          — append a contact (unique by phone)
    PUT    /api/v1/contacts          — replace the whole roster
    DELETE /api/v1/contacts/{phone}  — remove by phone
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from aurora.app.alerts.models import EmergencyContact
from aurora.app.api.schemas import ContactInput, ContactResponse, RosterResponse
from aurora.app.core.errors import NotFoundError, ValidationError
from aurora.app.dependencies import SOSServices, get_services

router = APIRouter(prefix="/api/v1/contacts", tags=["contacts"])


def _roster_response(services: SOSServices) -> RosterResponse:
    contacts = [ContactResponse(**c.to_dict()) for c in services.roster.contacts]
    return RosterResponse(contacts=contacts, count=len(contacts))


@router.get("", response_model=RosterResponse)
async def list_contacts(services: SOSServices = Depends(get_services)):
    await services.roster.load()
    return _roster_response(services)


@router.post("", response_model=RosterResponse, status_code=201)
async def add_contact(body: ContactInput, services: SOSServices = Depends(get_services)):
    await services.roster.load()
    added = await services.roster.add(
        EmergencyContact(name=body.name, phone=body.phone, relationship=body.relationship)
    )
    if not added:
        raise ValidationError(f"Contact {body.phone} already exists", field="phone")
    return _roster_response(services)


@router.put("", response_model=RosterResponse)
async def replace_contacts(
    body: List[ContactInput], services: SOSServices = Depends(get_services),
):
    await services.roster.replace([
        EmergencyContact(name=c.name, phone=c.phone, relationship=c.relationship)
        for c in body
    ])
    return _roster_response(services)


@router.delete("/{phone}", response_model=RosterResponse)
async def remove_contact(phone: str, services: SOSServices = Depends(get_services)):
    await services.roster.load()
    if not await services.roster.remove(phone):
        raise NotFoundError("Contact", phone=phone)
    return _roster_response(services)
