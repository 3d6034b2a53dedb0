"""Supabase auth and PostgREST calls used by the TourEase document store."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

import requests


class SupabaseError(RuntimeError):
    """Raised when a Supabase API request fails."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SupabaseClient:
    """Blocking client for one Supabase project.

    Requests carry the signed-in user's access token, or the anon key when none
    is given.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        *,
        http_session: Optional[requests.Session] = None,
        timeout: float = 30,
    ) -> None:
        self._base_url = url.rstrip("/")
        self._anon_key = anon_key
        self._timeout = timeout
        self._session = http_session or requests.Session()
        self._session.headers.setdefault("apikey", anon_key)

    def _send(
        self,
        method: str,
        endpoint: str,
        *,
        access_token: Optional[str],
        params: Optional[Mapping[str, Any]] = None,
        rows: Optional[List[Dict[str, Any]]] = None,
        prefer: Optional[str] = None,
    ) -> requests.Response:
        headers = {"Authorization": f"Bearer {access_token or self._anon_key}", "apikey": self._anon_key}
        if rows is not None:
            headers["Content-Type"] = "application/json"
        if prefer:
            headers["Prefer"] = prefer
        response = self._session.request(
            method,
            f"{self._base_url}/{endpoint}",
            params=params,
            json=rows,
            headers=headers,
            timeout=self._timeout,
        )
        if response.status_code >= 400:
            raise SupabaseError(
                f"Supabase {method} {endpoint} failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        return response

    def get_user(self, access_token: str) -> Dict[str, Any]:
        """Return the auth user payload that owns ``access_token``."""

        response = self._send("GET", "auth/v1/user", access_token=access_token)
        user = response.json()
        if not isinstance(user, dict):
            raise SupabaseError("Supabase auth returned an unexpected user payload")
        return user

    def select(
        self,
        table: str,
        *,
        access_token: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch rows matching PostgREST ``filters`` such as ``{"parent": "eq.users"}``."""

        params: Dict[str, Any] = dict(filters or {})
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        response = self._send("GET", f"rest/v1/{table}", access_token=access_token, params=params)
        if not response.text:
            return []
        rows = response.json()
        return [row for row in rows if isinstance(row, dict)] if isinstance(rows, list) else []

    def upsert(
        self,
        table: str,
        rows: Iterable[Mapping[str, Any]],
        *,
        on_conflict: str,
        access_token: Optional[str] = None,
    ) -> None:
        """Insert rows, merging into existing ones that share ``on_conflict``."""

        payload = [dict(row) for row in rows]
        if not payload:
            return
        self._send(
            "POST",
            f"rest/v1/{table}",
            access_token=access_token,
            params={"on_conflict": on_conflict},
            rows=payload,
            prefer="resolution=merge-duplicates,return=minimal",
        )


__all__ = ["SupabaseClient", "SupabaseError"]
