from datetime import timedelta

import pytest

from portal.core.errors import FormValidationError, WizardNotFoundError, WizardStateError
from portal.core.signup import (
    EMAIL_DELIVERY_MESSAGE,
    EMAIL_TAKEN,
    ChoosingRole,
    CollectingCredentials,
    CollectingDependents,
    Done,
    SignUpWizard,
    WizardFailed,
    WizardStore,
)
from portal.models.session import AuthUser

PASSWORD = "Abcdefg1"


def _wizard(settings, email="ana@exemplo.com", first_name="Ana", last_name="Souza"):
    wizard = SignUpWizard(settings)
    wizard.submit_credentials(first_name, last_name, email, PASSWORD, PASSWORD, True)
    return wizard


def test_credentials_step_blocks_invalid_input(settings):
    wizard = SignUpWizard(settings)

    with pytest.raises(FormValidationError) as excinfo:
        wizard.submit_credentials("Ana", "Souza", "ana@exemplo.com", "abc", "abd", False)

    assert set(excinfo.value.errors) == {"password", "confirm_password", "accept_terms"}
    assert isinstance(wizard.state, CollectingCredentials)


def test_credentials_step_requires_names_and_valid_email(settings):
    wizard = SignUpWizard(settings)

    with pytest.raises(FormValidationError) as excinfo:
        wizard.submit_credentials("", "  ", "not-an-email", PASSWORD, PASSWORD, True)

    assert set(excinfo.value.errors) == {"first_name", "last_name", "email"}
    assert isinstance(wizard.state, CollectingCredentials)
    assert wizard.credentials is None


def test_valid_credentials_open_role_choice(settings):
    wizard = _wizard(settings, email="  ana@exemplo.com ")

    assert isinstance(wizard.state, ChoosingRole)
    assert wizard.credentials.email == "ana@exemplo.com"


@pytest.mark.asyncio
async def test_student_registration(backend, settings):
    wizard = _wizard(settings)

    state = await wizard.choose_role(backend, "aluno")

    assert state == Done(redirect_to="/login?success=signup")
    assert backend.calls[:2] == ["check_user_exists", "sign_up"]
    [profile] = backend.rows(settings.PROFILE_TABLE)
    assert profile["role"] == "aluno"
    assert profile["signature"] == "inativo"
    assert profile["emailaluno"] == ""
    assert profile["emailpai"] == ""
    assert profile["nome"] == "Ana"
    assert backend.users["ana@exemplo.com"]["metadata"] == {"first_name": "Ana", "last_name": "Souza"}
    assert backend.rows(settings.NEWSLETTER_TABLE) == [{"email": "ana@exemplo.com", "habilitado": True}]


@pytest.mark.asyncio
async def test_registered_email_aborts_before_sign_up(backend, settings):
    backend.add_user("ana@exemplo.com", PASSWORD)
    wizard = _wizard(settings)

    state = await wizard.choose_role(backend, "aluno")

    assert state == WizardFailed(message=EMAIL_TAKEN, resume=ChoosingRole.name)
    assert "sign_up" not in backend.calls
    assert wizard.active_step == ChoosingRole.name


@pytest.mark.asyncio
async def test_email_delivery_failure_gets_friendly_message(backend, settings):
    backend.fail("sign_up", "Error sending confirmation email", status=500)
    wizard = _wizard(settings)

    state = await wizard.choose_role(backend, "aluno")

    assert isinstance(state, WizardFailed)
    assert state.message == EMAIL_DELIVERY_MESSAGE


@pytest.mark.asyncio
async def test_status_422_is_treated_as_delivery_failure(backend, settings):
    backend.fail("sign_up", "rate limited", status=422)
    wizard = _wizard(settings)

    state = await wizard.choose_role(backend, "aluno")

    assert state.message == EMAIL_DELIVERY_MESSAGE


@pytest.mark.asyncio
async def test_profile_failure_keeps_wizard_open_for_retry(backend, settings):
    backend.fail(f"upsert:{settings.PROFILE_TABLE}", "duplicate key value")
    wizard = _wizard(settings)

    state = await wizard.choose_role(backend, "aluno")
    assert state == WizardFailed(message="duplicate key value", resume=ChoosingRole.name)
    assert backend.rows(settings.NEWSLETTER_TABLE) == []

    backend.failures.clear()
    assert isinstance(await wizard.choose_role(backend, "aluno"), Done)


@pytest.mark.asyncio
async def test_newsletter_failure_is_not_fatal(backend, settings):
    backend.fail(f"upsert:{settings.NEWSLETTER_TABLE}", "timeout")
    wizard = _wizard(settings)

    assert isinstance(await wizard.choose_role(backend, "aluno"), Done)
    assert len(backend.rows(settings.PROFILE_TABLE)) == 1


@pytest.mark.asyncio
async def test_registration_completes_existing_profile_row(backend, settings, monkeypatch):
    # Row already present for this id (database trigger or an earlier attempt)
    backend.rows(settings.PROFILE_TABLE).append({"id": "user-1", "nome": "", "role": None})

    async def sign_up(email, password, metadata=None):
        backend.calls.append("sign_up")
        return AuthUser(id="user-1", email=email)

    monkeypatch.setattr(backend, "sign_up", sign_up)
    wizard = _wizard(settings, first_name="Beatriz", last_name="Lima")

    assert isinstance(await wizard.choose_role(backend, "aluno"), Done)

    [profile] = backend.rows(settings.PROFILE_TABLE)
    assert profile["id"] == "user-1"
    assert (profile["nome"], profile["sobrenome"], profile["role"]) == ("Beatriz", "Lima", "aluno")


@pytest.mark.asyncio
async def test_retry_after_profile_failure_writes_one_row(backend, settings, monkeypatch):
    async def sign_up(email, password, metadata=None):
        backend.calls.append("sign_up")
        return AuthUser(id="user-1", email=email)

    monkeypatch.setattr(backend, "sign_up", sign_up)
    wizard = _wizard(settings)

    backend.fail(f"upsert:{settings.PROFILE_TABLE}", "timeout")
    assert isinstance(await wizard.choose_role(backend, "aluno"), WizardFailed)
    backend.failures.clear()
    assert isinstance(await wizard.choose_role(backend, "aluno"), Done)
    assert isinstance(await _wizard(settings).choose_role(backend, "aluno"), WizardFailed)

    assert len(backend.rows(settings.PROFILE_TABLE)) == 1


@pytest.mark.asyncio
async def test_guardian_collects_dependents(backend, settings):
    wizard = _wizard(settings, email="pai@exemplo.com")

    state = await wizard.choose_role(backend, "pai")
    assert isinstance(state, CollectingDependents)
    assert backend.calls == []

    wizard.update_dependent_field(0, "filho@escola.com")
    wizard.add_dependent_field()
    wizard.add_dependent_field()
    wizard.update_dependent_field(2, "filha@escola.com")

    state = await wizard.submit_dependents(backend)

    assert isinstance(state, Done)
    [profile] = backend.rows(settings.PROFILE_TABLE)
    assert profile["role"] == "pai"
    assert profile["emailaluno"] == "filho@escola.com, filha@escola.com"


@pytest.mark.asyncio
async def test_guardian_invalid_dependent_blocks_submission(backend, settings):
    wizard = _wizard(settings, email="pai@exemplo.com")
    await wizard.choose_role(backend, "pai")

    with pytest.raises(FormValidationError) as excinfo:
        await wizard.submit_dependents(backend, ["filho@escola.com", "invalido"])

    assert excinfo.value.errors["dependents"] == "E-mail inválido: invalido"
    assert backend.calls == []


@pytest.mark.asyncio
async def test_guardian_needs_at_least_one_email(backend, settings):
    wizard = _wizard(settings, email="pai@exemplo.com")
    await wizard.choose_role(backend, "pai")

    with pytest.raises(FormValidationError):
        await wizard.submit_dependents(backend, ["", "   "])


@pytest.mark.asyncio
async def test_dependent_list_never_shrinks_below_one(backend, settings):
    wizard = _wizard(settings)
    await wizard.choose_role(backend, "pai")

    assert wizard.remove_dependent_field(0) == [""]
    wizard.add_dependent_field()
    wizard.update_dependent_field(1, "b@c.com")
    assert wizard.remove_dependent_field(0) == ["b@c.com"]

    with pytest.raises(FormValidationError):
        wizard.update_dependent_field(5, "x@y.com")


@pytest.mark.asyncio
async def test_actions_out_of_order_are_rejected(backend, settings):
    wizard = SignUpWizard(settings)

    with pytest.raises(WizardStateError):
        await wizard.choose_role(backend, "aluno")

    wizard = _wizard(settings)
    with pytest.raises(WizardStateError):
        wizard.add_dependent_field()
    with pytest.raises(FormValidationError):
        await wizard.choose_role(backend, "admin")


@pytest.mark.asyncio
async def test_cancel_returns_to_credentials(backend, settings):
    wizard = _wizard(settings)
    await wizard.choose_role(backend, "pai")
    wizard.add_dependent_field()

    assert isinstance(wizard.cancel(), CollectingCredentials)
    assert wizard.dependent_fields == [""]


def test_store_expires_wizards(settings):
    store = WizardStore(ttl=timedelta(seconds=-1))
    token = store.create(SignUpWizard(settings))

    with pytest.raises(WizardNotFoundError):
        store.get(token)


def test_store_returns_and_discards(settings):
    store = WizardStore()
    wizard = SignUpWizard(settings)
    token = store.create(wizard)

    assert store.get(token) is wizard
    store.discard(token)
    assert len(store) == 0
