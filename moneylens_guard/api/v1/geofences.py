"""Geofence configuration and simulated location feed"""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from moneylens_guard.api.dependencies import get_context, get_notification_client
from moneylens_guard.api.v1.schemas import GeofenceEventSchema, GeofenceSchema, LocationSchema
from moneylens_guard.context import GuardContext
from moneylens_guard.domain.exceptions import GeofenceNotFoundError
from moneylens_guard.domain.models import Geofence, GeofenceEvent, Location
from moneylens_guard.infrastructure.clients.notifications import NotificationWebhookClient

router = APIRouter()


def to_schema(geofence: Geofence) -> GeofenceSchema:
    return GeofenceSchema(
        id=geofence.id,
        name=geofence.name,
        center=LocationSchema(lat=geofence.center.lat, lng=geofence.center.lng),
        radius_meters=geofence.radius_meters,
        kind=geofence.kind,
        merchant_id=geofence.merchant_id,
    )


def event_schema(event: GeofenceEvent) -> GeofenceEventSchema:
    return GeofenceEventSchema(
        event=event.kind,
        geofence_id=event.geofence.id,
        name=event.geofence.name,
        distance_meters=round(event.distance_meters, 1),
        timestamp=event.timestamp,
    )


@router.get("/geofences", response_model=List[GeofenceSchema])
async def list_geofences(context: GuardContext = Depends(get_context)):
    return [to_schema(g) for g in context.monitor.geofences]


@router.post("/geofences", response_model=GeofenceSchema, status_code=201)
async def create_geofence(request_body: GeofenceSchema, context: GuardContext = Depends(get_context)):
    geofence = Geofence(
        id=request_body.id,
        name=request_body.name,
        center=Location(request_body.center.lat, request_body.center.lng),
        radius_meters=request_body.radius_meters,
        kind=request_body.kind,
        merchant_id=request_body.merchant_id,
    )
    context.monitor.add_geofence(geofence)
    return to_schema(geofence)


@router.delete("/geofences/{geofence_id}", status_code=204)
async def delete_geofence(geofence_id: str, context: GuardContext = Depends(get_context)):
    try:
        context.monitor.remove_geofence(geofence_id)
    except GeofenceNotFoundError:
        raise HTTPException(status_code=404, detail="Geofence not found")


@router.get("/geofences/events", response_model=List[GeofenceEventSchema])
async def recent_events(context: GuardContext = Depends(get_context)):
    """Bounded buffer of the latest enter/exit/proximity events, newest last"""
    return [event_schema(e) for e in context.monitor.recent_events]


@router.post("/location/simulate", response_model=List[GeofenceEventSchema])
async def simulate_location(
    request_body: LocationSchema,
    background_tasks: BackgroundTasks,
    context: GuardContext = Depends(get_context),
    notifier: NotificationWebhookClient = Depends(get_notification_client),
):
    """
    Manual location feed for when no device location is available.

    Starts the monitor in simulation mode on first use.
    """
    if not context.monitor.active:
        context.start_tracking()

    events = context.simulate_location(
        Location(request_body.lat, request_body.lng, request_body.accuracy_meters)
    )

    if notifier.pending:
        background_tasks.add_task(notifier.flush)

    return [event_schema(e) for e in events]
