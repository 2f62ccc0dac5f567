from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from typing import List
import logging

from portal.api.deps import get_backend, get_settings, get_wizards
from portal.config import Settings
from portal.core.login import LoginFlow
from portal.core.signup import Done, SignUpWizard, WizardFailed, WizardStore
from portal.core.validation import password_requirements
from portal.schemas.auth import (
    DependentEmailsRequest,
    DependentFieldRequest,
    PasswordCheckRequest,
    PasswordRequirementResponse,
    RoleChoiceRequest,
    SignUpCredentialsRequest,
)

router = APIRouter(prefix="/cadastro", tags=["Inscription"])
logger = logging.getLogger(__name__)


def _wizard_response(wizard_id: str, wizard: SignUpWizard, wizards: WizardStore, status_code: int = 200) -> JSONResponse:
    content = wizard.snapshot()
    content["wizard_id"] = wizard_id
    if isinstance(wizard.state, Done):
        wizards.discard(wizard_id)
        content["success"] = True
    elif isinstance(wizard.state, WizardFailed):
        status_code = 400
        content["success"] = False
        content["error"] = wizard.state.message
    else:
        content["success"] = True
    return JSONResponse(status_code=status_code, content=content)


@router.post("")
async def start_signup(
    data: SignUpCredentialsRequest,
    settings: Settings = Depends(get_settings),
    wizards: WizardStore = Depends(get_wizards),
):
    """Étape 1: valider les identifiants puis ouvrir le choix du type d'utilisateur"""
    wizard = SignUpWizard(settings)
    wizard.submit_credentials(
        data.first_name,
        data.last_name,
        data.email,
        data.password,
        data.confirm_password,
        data.accept_terms,
    )
    wizard_id = wizards.create(wizard)
    return _wizard_response(wizard_id, wizard, wizards, status_code=201)


@router.get("/google")
async def signup_with_google(
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    url = await LoginFlow(backend, settings).begin_google(settings.INITIAL_SETUP_ROUTE)
    return {"url": url}


@router.post("/requisitos-senha", response_model=List[PasswordRequirementResponse])
async def check_password_requirements(data: PasswordCheckRequest):
    """Critères du mot de passe, affichés pendant la saisie"""
    return [
        PasswordRequirementResponse(label=requirement.label, valid=requirement.valid)
        for requirement in password_requirements(data.password)
    ]


@router.get("/{wizard_id}")
async def get_signup(wizard_id: str, wizards: WizardStore = Depends(get_wizards)):
    return _wizard_response(wizard_id, wizards.get(wizard_id), wizards)


@router.delete("/{wizard_id}")
async def cancel_signup(wizard_id: str, wizards: WizardStore = Depends(get_wizards)):
    wizard = wizards.get(wizard_id)
    wizard.cancel()
    return _wizard_response(wizard_id, wizard, wizards)


@router.post("/{wizard_id}/perfil")
async def choose_role(
    wizard_id: str,
    data: RoleChoiceRequest,
    backend=Depends(get_backend),
    wizards: WizardStore = Depends(get_wizards),
):
    wizard = wizards.get(wizard_id)
    await wizard.choose_role(backend, data.role)
    return _wizard_response(wizard_id, wizard, wizards)


@router.post("/{wizard_id}/dependentes/campos")
async def add_dependent_field(wizard_id: str, wizards: WizardStore = Depends(get_wizards)):
    wizard = wizards.get(wizard_id)
    wizard.add_dependent_field()
    return _wizard_response(wizard_id, wizard, wizards)


@router.put("/{wizard_id}/dependentes/campos/{index}")
async def update_dependent_field(
    wizard_id: str,
    index: int,
    data: DependentFieldRequest,
    wizards: WizardStore = Depends(get_wizards),
):
    wizard = wizards.get(wizard_id)
    wizard.update_dependent_field(index, data.value)
    return _wizard_response(wizard_id, wizard, wizards)


@router.delete("/{wizard_id}/dependentes/campos/{index}")
async def remove_dependent_field(wizard_id: str, index: int, wizards: WizardStore = Depends(get_wizards)):
    wizard = wizards.get(wizard_id)
    wizard.remove_dependent_field(index)
    return _wizard_response(wizard_id, wizard, wizards)


@router.post("/{wizard_id}/dependentes")
async def submit_dependents(
    wizard_id: str,
    data: DependentEmailsRequest,
    backend=Depends(get_backend),
    wizards: WizardStore = Depends(get_wizards),
):
    wizard = wizards.get(wizard_id)
    await wizard.submit_dependents(backend, data.emails)
    return _wizard_response(wizard_id, wizard, wizards)
