"""
Gateway to the hosted backend: auth, REST tables and object storage.

Exposes the same small document API the service has always used
(``create_document`` / ``get_documents``) on top of the supabase client.
When a caller token is given it is forwarded on every REST and storage call
so the backend's row-level policies apply to the caller, not to the
service key.
"""
import logging
from typing import List, Optional

import httpx
from pydantic import BaseModel
from supabase import AuthError, Client, PostgrestAPIError, StorageException, create_client

import config

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


class UpstreamError(Exception):
    """The backend rejected a call or could not be reached."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _to_dict(data) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", exclude_none=True)
    return dict(data)


def _filter_value(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def _status(exc: Exception, default: int) -> int:
    try:
        return int(getattr(exc, "status", None) or default)
    except (TypeError, ValueError):
        return default


def _upstream(exc: Exception, action: str) -> UpstreamError:
    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None) or str(exc)
    logger.error("Backend %s failed: %s %s", action, code or "", message)
    if code == UNIQUE_VIOLATION or "duplicate" in message.lower():
        return UpstreamError(409, message)
    return UpstreamError(500, message)


class Database:
    def __init__(self, base_url: str, api_key: str, token: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.client: Client = create_client(self.base_url, api_key)
        if token:
            # must be set before the REST/storage clients are first built
            self.client.options.headers["Authorization"] = f"Bearer {token}"
            self.client.postgrest.auth(token)

    # Tables

    def _filtered(self, query, filters: Optional[dict]):
        for column, value in (filters or {}).items():
            query = query.eq(column, _filter_value(value))
        return query

    def create_document(self, table: str, data) -> dict:
        try:
            response = self.client.table(table).insert(_to_dict(data)).execute()
        except (PostgrestAPIError, httpx.HTTPError) as exc:
            raise _upstream(exc, f"insert into {table}")
        return response.data[0] if response.data else {}

    def get_documents(self, table: str, filters: Optional[dict] = None,
                      order: Optional[str] = None, columns: str = "*",
                      within: Optional[dict] = None) -> List[dict]:
        """Select rows matching every ``filters`` equality.

        ``within`` maps a column to the values it may take.
        ``order`` uses the REST syntax ``"<column>.asc|desc"``.
        """
        try:
            query = self._filtered(self.client.table(table).select(columns), filters)
            for column, values in (within or {}).items():
                query = query.in_(column, list(values))
            if order:
                column, _, direction = order.partition(".")
                query = query.order(column, desc=direction == "desc")
            response = query.execute()
        except (PostgrestAPIError, httpx.HTTPError) as exc:
            raise _upstream(exc, f"select from {table}")
        return response.data or []

    def get_document(self, table: str, filters: dict) -> Optional[dict]:
        docs = self.get_documents(table, filters)
        return docs[0] if docs else None

    def update_documents(self, table: str, filters: dict, values) -> List[dict]:
        try:
            query = self._filtered(self.client.table(table).update(_to_dict(values)), filters)
            response = query.execute()
        except (PostgrestAPIError, httpx.HTTPError) as exc:
            raise _upstream(exc, f"update {table}")
        return response.data or []

    def delete_documents(self, table: str, filters: dict) -> List[dict]:
        try:
            response = self._filtered(self.client.table(table).delete(), filters).execute()
        except (PostgrestAPIError, httpx.HTTPError) as exc:
            raise _upstream(exc, f"delete from {table}")
        return response.data or []

    # Auth

    def sign_in(self, email: str, password: str) -> dict:
        try:
            response = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except AuthError as exc:
            raise UpstreamError(_status(exc, 401), getattr(exc, "message", str(exc)))
        except httpx.HTTPError as exc:
            raise _upstream(exc, "sign in")
        return {
            "token": response.session.access_token if response.session else None,
            "identity": response.user.email if response.user else email,
        }

    def sign_up(self, email: str, password: str) -> dict:
        try:
            response = self.client.auth.sign_up({"email": email, "password": password})
        except AuthError as exc:
            raise UpstreamError(_status(exc, 400), getattr(exc, "message", str(exc)))
        except httpx.HTTPError as exc:
            raise _upstream(exc, "sign up")
        return {
            "token": response.session.access_token if response.session else None,
            "identity": response.user.email if response.user else email,
        }

    # Storage

    def upload_object(self, bucket: str, name: str, content: bytes, content_type: str) -> str:
        """Store ``content`` and return its public URL."""
        try:
            objects = self.client.storage.from_(bucket)
            objects.upload(name, content, {"content-type": content_type})
        except (StorageException, httpx.HTTPError) as exc:
            logger.error("Backend upload to %s failed: %s", bucket, exc)
            raise UpstreamError(_status(exc, 500), "Failed to upload logo")
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{name}"


def open_db(token: Optional[str] = None) -> Database:
    cfg = config.require("API_BASE_URL", "API_KEY")
    return Database(cfg["API_BASE_URL"], cfg["API_KEY"], token=token)
