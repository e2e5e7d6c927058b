from __future__ import annotations

from typing import Any

import httpx

_http: httpx.AsyncClient | None = None


class SupabaseRestError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        code: str | None = None,
        hint: str | None = None,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.hint = hint
        self.details = details


def get_http() -> httpx.AsyncClient:
    global _http
    if _http is None:
        _http = httpx.AsyncClient(timeout=httpx.Timeout(15.0))
    return _http


async def close_http() -> None:
    global _http
    if _http is not None:
        await _http.aclose()
        _http = None


def _str_or_none(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    return value if isinstance(value, str) else None


class SupabaseRest:
    def __init__(self, supabase_url: str, api_key: str):
        base = supabase_url.rstrip("/")
        self._rest_base = base + "/rest/v1"
        self._functions_base = base + "/functions/v1"
        self._api_key = api_key

    def _headers(
        self, bearer_token: str, *, prefer: str | None = None
    ) -> dict[str, str]:
        h = {
            "apikey": self._api_key,
            "authorization": f"Bearer {bearer_token}",
            "accept": "application/json",
        }
        if prefer:
            h["prefer"] = prefer
        return h

    def _raise_for_error(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return

        code: str | None = None
        message: str | None = None
        hint: str | None = None
        details: Any | None = None

        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            code = _str_or_none(payload, "code")
            message = _str_or_none(payload, "message") or _str_or_none(payload, "error")
            hint = _str_or_none(payload, "hint")
            details = payload.get("details")
        elif isinstance(payload, str):
            message = payload

        if not message:
            message = resp.text.strip() or None

        raise SupabaseRestError(
            status_code=resp.status_code,
            code=code,
            message=message or f"Supabase request failed ({resp.status_code})",
            hint=hint,
            details=details,
        )

    @staticmethod
    def _first_row(data: Any) -> dict[str, Any]:
        if isinstance(data, list):
            return data[0] if data else {}
        return data if isinstance(data, dict) else {}

    async def select(
        self,
        table: str,
        *,
        bearer_token: str,
        params: dict[str, Any],
    ) -> list[dict[str, Any]]:
        url = f"{self._rest_base}/{table}"
        resp = await get_http().get(
            url, headers=self._headers(bearer_token), params=params
        )
        self._raise_for_error(resp)
        data = resp.json()
        if isinstance(data, list):
            return data
        return [data]

    async def upsert_one(
        self,
        table: str,
        *,
        bearer_token: str,
        row: dict[str, Any],
        on_conflict: str,
    ) -> dict[str, Any]:
        url = f"{self._rest_base}/{table}"
        headers = self._headers(
            bearer_token,
            prefer="resolution=merge-duplicates,return=representation",
        )
        resp = await get_http().post(
            url, headers=headers, params={"on_conflict": on_conflict}, json=row
        )
        self._raise_for_error(resp)
        return self._first_row(resp.json())

    async def insert_one(
        self,
        table: str,
        *,
        bearer_token: str,
        row: dict[str, Any],
    ) -> dict[str, Any]:
        url = f"{self._rest_base}/{table}"
        headers = self._headers(bearer_token, prefer="return=representation")
        resp = await get_http().post(url, headers=headers, json=row)
        self._raise_for_error(resp)
        return self._first_row(resp.json())

    async def invoke_function(
        self,
        fn_name: str,
        *,
        bearer_token: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        url = f"{self._functions_base}/{fn_name}"
        resp = await get_http().post(
            url, headers=self._headers(bearer_token), json=payload
        )
        self._raise_for_error(resp)
        if not resp.content:
            return {}
        try:
            return self._first_row(resp.json())
        except ValueError:
            return {}
