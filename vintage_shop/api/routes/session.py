import uuid

from fastapi import APIRouter, Depends, Response

from vintage_shop.api.dependencies.identity import mirror_guest_session
from vintage_shop.api.dependencies.settings import get_app_settings
from vintage_shop.core.config import Settings
from vintage_shop.core.identity import Guest
from vintage_shop.models.dto.cart import GuestSessionResponse

router = APIRouter(prefix="/session", tags=["session"])


@router.post("/guest", response_model=GuestSessionResponse, status_code=201)
async def start_guest_session(
    response: Response,
    settings: Settings = Depends(get_app_settings),
):
    guest = Guest(session_id=uuid.uuid4())
    mirror_guest_session(response, guest, settings)
    return {"guest_session_id": guest.session_id}
