"""
Pytest configuration: in-memory stand-in for the Supabase adapter
"""

import uuid
from typing import Any, Callable, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from portal.config import Settings
from portal.core.errors import BackendError
from portal.db.supabase import SIGNED_IN, SIGNED_OUT
from portal.main import create_app
from portal.models.session import AuthSession, AuthUser


class FakeBackend:
    """Same interface as SupabaseClient, backed by dictionaries"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            settings.PROFILE_TABLE: [],
            settings.CONTACT_TABLE: [],
            settings.NEWSLETTER_TABLE: [],
        }
        self.users: Dict[str, Dict[str, Any]] = {}
        self.tokens: Dict[str, str] = {}
        self.session: Optional[AuthSession] = None
        self.calls: List[str] = []
        self.failures: Dict[str, BackendError] = {}
        self.updated_passwords: List[str] = []
        self.reset_emails: List[tuple] = []
        self._listeners: List[Callable] = []

    # ----- test helpers -----

    def fail(self, operation: str, message: str, status: Optional[int] = None) -> None:
        self.failures[operation] = BackendError(message, status=status)

    def add_user(self, email: str, password: str, role: Optional[str] = "aluno",
                 signature: Optional[str] = "ativo", with_profile: bool = True) -> str:
        user_id = str(uuid.uuid4())
        self.users[email] = {"id": user_id, "password": password, "metadata": {}}
        if with_profile:
            self.tables[self.settings.PROFILE_TABLE].append({
                "id": user_id,
                "nome": "Ana",
                "sobrenome": "Souza",
                "email": email,
                "role": role,
                "signature": signature,
                "emailaluno": "",
                "emailpai": "",
            })
        return user_id

    def issue_session(self, user_id: str, email: Optional[str] = None) -> AuthSession:
        access_token = f"access-{uuid.uuid4().hex}"
        self.tokens[access_token] = user_id
        return AuthSession(user_id=user_id, email=email, access_token=access_token,
                           refresh_token=f"refresh-{uuid.uuid4().hex}")

    def log_in(self, user_id: str, email: Optional[str] = None) -> AuthSession:
        self.session = self.issue_session(user_id, email)
        return self.session

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables[table]

    def restore(self, access_token: Optional[str]) -> None:
        if access_token and access_token in self.tokens:
            self.session = AuthSession(user_id=self.tokens[access_token], email=None,
                                       access_token=access_token, refresh_token="refresh")

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failures:
            raise self.failures[operation]

    # ----- auth -----

    def on_auth_event(self, callback):
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, event: str, session: Optional[AuthSession]) -> None:
        for listener in list(self._listeners):
            listener(event, session)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        self._check("sign_in")
        user = self.users.get(email)
        if user is None or user["password"] != password:
            raise BackendError("Invalid login credentials", status=400)
        self.log_in(user["id"], email)
        self._emit(SIGNED_IN, self.session)
        return self.session

    async def sign_up(self, email: str, password: str, metadata=None) -> AuthUser:
        self._check("sign_up")
        user_id = str(uuid.uuid4())
        self.users[email] = {"id": user_id, "password": password, "metadata": metadata or {}}
        return AuthUser(id=user_id, email=email)

    async def sign_out(self) -> None:
        self._check("sign_out")
        self.session = None
        self._emit(SIGNED_OUT, None)

    async def get_session(self) -> Optional[AuthSession]:
        self.calls.append("get_session")
        return self.session

    async def set_session(self, access_token: str, refresh_token: str) -> AuthSession:
        self._check("set_session")
        if access_token not in self.tokens:
            raise BackendError("Invalid JWT", status=401)
        self.session = AuthSession(user_id=self.tokens[access_token], email=None,
                                   access_token=access_token, refresh_token=refresh_token)
        self._emit(SIGNED_IN, self.session)
        return self.session

    async def begin_oauth(self, provider: str, redirect_to: str) -> str:
        self._check("begin_oauth")
        return f"https://auth.example.com/authorize?provider={provider}&redirect_to={redirect_to}"

    async def send_password_reset_email(self, email: str, redirect_to: str) -> None:
        self._check("send_password_reset_email")
        self.reset_emails.append((email, redirect_to))

    async def update_password(self, new_password: str) -> None:
        self._check("update_password")
        self.updated_passwords.append(new_password)

    async def check_user_exists(self, email: str) -> bool:
        self._check("check_user_exists")
        return any(row.get("email") == email for row in self.tables[self.settings.PROFILE_TABLE])

    # ----- tables -----

    def _matching(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [row for row in self.tables[table]
                if all(row.get(column) == value for column, value in filters.items())]

    async def select_one(self, table: str, columns: str, **filters: Any) -> Optional[Dict[str, Any]]:
        self._check(f"select:{table}")
        rows = self._matching(table, filters)
        if not rows:
            return None
        wanted = [column.strip() for column in columns.split(",")]
        return {column: rows[0].get(column) for column in wanted}

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        self._check(f"insert:{table}")
        self.tables[table].append(dict(row))
        return dict(row)

    async def update(self, table: str, values: Dict[str, Any], **filters: Any) -> None:
        self._check(f"update:{table}")
        for row in self._matching(table, filters):
            row.update(values)

    async def upsert(self, table: str, row: Dict[str, Any], on_conflict: str) -> None:
        self._check(f"upsert:{table}")
        existing = self._matching(table, {on_conflict: row[on_conflict]})
        if existing:
            existing[0].update(row)
        else:
            self.tables[table].append(dict(row))


@pytest.fixture
def settings():
    return Settings(SUPABASE_URL="", SUPABASE_KEY="", SITE_URL="https://portal.example.com")


@pytest.fixture
def backend(settings):
    return FakeBackend(settings)


@pytest.fixture
def client(settings, backend):
    def factory(_settings, access_token=None, refresh_token=None):
        backend.restore(access_token)
        return backend

    app = create_app(settings=settings, backend_factory=factory)
    with TestClient(app) as test_client:
        yield test_client
