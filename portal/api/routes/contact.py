from fastapi import APIRouter, Depends
import logging

from portal.api.deps import get_backend, get_settings, state_response
from portal.config import Settings
from portal.core.contact import ContactForm, new_captcha_challenge
from portal.core.states import Failed
from portal.core.validation import format_phone_number
from portal.schemas.contact import ContactRequest, PhoneFormatResponse

router = APIRouter(prefix="/contato", tags=["Contact"])
logger = logging.getLogger(__name__)


@router.post("")
async def send_contact(
    data: ContactRequest,
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    state = await ContactForm(backend, settings).submit(
        data.name, data.email, data.phone, data.message, data.captcha_state, data.captcha_payload
    )
    response = state_response(state)
    if isinstance(state, Failed):
        response.status_code = 502
    return response


@router.get("/captcha")
async def captcha_challenge(settings: Settings = Depends(get_settings)):
    return new_captcha_challenge(settings)


@router.get("/telefone", response_model=PhoneFormatResponse)
async def format_phone(valor: str = ""):
    """Masque de saisie du téléphone"""
    return PhoneFormatResponse(formatted=format_phone_number(valor))
