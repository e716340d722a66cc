"""
Client API endpoints.

Clients are the people a coach holds sessions about ("targets" in
storage). Favoriting is applied optimistically and reverted if the write
fails; the failure still surfaces as an error.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ...core.coaching.clients import ClientRoster
from ...core.coaching.models import Client
from ..dependencies import CoachId, StoresDep

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateClientRequest(BaseModel):
    name: str = Field(description="Display name", min_length=1, max_length=200, pattern=r"\S")


class ClientResponse(BaseModel):
    client_id: str
    name: str
    created_at: datetime
    is_favorite: bool


class ClientsResponse(BaseModel):
    clients: list[ClientResponse]
    total: int


def client_response(client: Client) -> ClientResponse:
    return ClientResponse(
        client_id=client.id,
        name=client.name,
        created_at=client.created_at,
        is_favorite=client.is_favorite,
    )


@router.get("", response_model=ClientsResponse, summary="List my clients")
async def list_clients(coach_id: CoachId, stores: StoresDep) -> ClientsResponse:
    clients = await ClientRoster(stores.clients, coach_id).refresh()
    return ClientsResponse(clients=[client_response(c) for c in clients], total=len(clients))


@router.post(
    "",
    response_model=ClientResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a client",
)
async def create_client(
    request: CreateClientRequest,
    coach_id: CoachId,
    stores: StoresDep,
) -> ClientResponse:
    client = await ClientRoster(stores.clients, coach_id).add(request.name)
    return client_response(client)


@router.get("/{client_id}", response_model=ClientResponse, summary="Get a client")
async def get_client(client_id: str, coach_id: CoachId, stores: StoresDep) -> ClientResponse:
    client = await ClientRoster(stores.clients, coach_id).get(client_id)
    return client_response(client)


@router.post(
    "/{client_id}/favorite",
    response_model=ClientResponse,
    summary="Toggle favorite",
)
async def toggle_favorite(client_id: str, coach_id: CoachId, stores: StoresDep) -> ClientResponse:
    client = await ClientRoster(stores.clients, coach_id).toggle_favorite(client_id)
    return client_response(client)
