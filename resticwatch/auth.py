"""OneDrive sign-in through the OAuth2 device code flow."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import requests

PUBLIC_CLIENT_ID = "d3590ed6-52b3-4102-aeff-aad2292ab01c"
DEVICE_CODE_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/devicecode"
TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
SCOPE = "https://graph.microsoft.com/Files.Read.All offline_access"
DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"
REQUEST_TIMEOUT = 30

_DEVICE_CODE_FIELDS = {
    "user_code": str,
    "device_code": str,
    "verification_uri": str,
    "expires_in": int,
    "interval": int,
    "message": str,
    "verification_uri_complete": str,
}

_TOKEN_FIELDS = {
    "access_token": str,
    "refresh_token": str,
    "expires_in": int,
    "token_type": str,
    "scope": str,
    "error": str,
    "error_description": str,
}


class AuthError(Exception):
    """Raised when signing in or refreshing a token fails."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _read_fields(payload: Any, spec: dict[str, type]) -> dict[str, Any]:
    """Pick typed fields out of a JSON object; absent fields get zero values."""
    if not isinstance(payload, dict):
        raise ValueError("expected a JSON object")
    result: dict[str, Any] = {}
    for name, kind in spec.items():
        value = payload.get(name)
        if value is None:
            result[name] = kind()
        elif isinstance(value, bool):
            raise ValueError(f"field {name!r} has the wrong type")
        elif kind is int and isinstance(value, float) and value.is_integer():
            result[name] = int(value)
        elif isinstance(value, kind):
            result[name] = value
        else:
            raise ValueError(f"field {name!r} has the wrong type")
    return result


@dataclass
class DeviceCode:
    """What the device code endpoint hands back."""

    user_code: str = ""
    device_code: str = ""
    verification_uri: str = ""
    expires_in: int = 0
    interval: int = 0
    message: str = ""
    verification_uri_complete: str = ""


@dataclass
class Token:
    """An OAuth2 access token with its refresh token and expiry."""

    access_token: str = ""
    refresh_token: str = ""
    token_type: str = ""
    expiry: datetime | None = None


class Authenticator:
    """Obtains and refreshes OneDrive tokens for a public client."""

    def __init__(
        self,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session = session if session is not None else requests.Session()
        self._sleep = sleep
        self._clock = clock

    def authenticate(self) -> Token:
        """Run the whole device code flow, printing instructions for the user."""
        try:
            device_code = self.request_device_code()
        except AuthError as exc:
            raise AuthError(f"failed to get device code: {exc}") from exc

        print("\n🔐 OneDrive Authentication Required")
        print(f"Please visit: {device_code.verification_uri}")
        print(f"Enter this code: {device_code.user_code}\n")
        print("Waiting for authorization...", end="", flush=True)

        try:
            token = self.poll_for_token(device_code)
        except AuthError as exc:
            raise AuthError(f"failed to get token: {exc}") from exc

        print("\n✅ Successfully authenticated!\n")
        return token

    def request_device_code(self) -> DeviceCode:
        form = {"client_id": PUBLIC_CLIENT_ID, "scope": SCOPE}
        try:
            response = self._session.post(DEVICE_CODE_URL, data=form, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            raise AuthError(f"failed to request device code: {exc}") from exc
        if response.status_code != 200:
            raise AuthError(f"device code request failed with status {response.status_code}")
        try:
            fields = _read_fields(response.json(), _DEVICE_CODE_FIELDS)
        except ValueError as exc:
            raise AuthError(f"failed to decode device code response: {exc}") from exc
        return DeviceCode(**fields)

    def poll_for_token(self, device_code: DeviceCode) -> Token:
        """Poll the token endpoint until the user approves, refuses or time runs out."""
        form = {
            "client_id": PUBLIC_CLIENT_ID,
            "grant_type": DEVICE_CODE_GRANT,
            "device_code": device_code.device_code,
        }
        deadline = self._clock() + timedelta(seconds=device_code.expires_in)
        while self._clock() < deadline:
            try:
                response = self._session.post(TOKEN_URL, data=form, timeout=REQUEST_TIMEOUT)
            except requests.RequestException as exc:
                raise AuthError(f"failed to poll token endpoint: {exc}") from exc
            try:
                fields = _read_fields(response.json(), _TOKEN_FIELDS)
            except ValueError as exc:
                raise AuthError(f"failed to decode token response: {exc}") from exc

            if fields["error"]:
                if fields["error"] == "authorization_pending":
                    print(".", end="", flush=True)
                    self._sleep(device_code.interval)
                    continue
                raise AuthError(
                    f"authentication failed: {fields['error']} - {fields['error_description']}"
                )
            if fields["access_token"]:
                return self._token(fields)
            self._sleep(device_code.interval)

        raise AuthError("authentication timeout")

    def refresh_token(self, token: Token) -> Token:
        """Exchange a token's refresh token for a new token."""
        if not token.refresh_token:
            raise AuthError("no refresh token available")
        form = {
            "client_id": PUBLIC_CLIENT_ID,
            "grant_type": "refresh_token",
            "refresh_token": token.refresh_token,
            "scope": SCOPE,
        }
        try:
            response = self._session.post(TOKEN_URL, data=form, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            raise AuthError(f"failed to refresh token: {exc}") from exc
        if response.status_code != 200:
            raise AuthError(f"token refresh failed with status {response.status_code}")
        try:
            fields = _read_fields(response.json(), _TOKEN_FIELDS)
        except ValueError as exc:
            raise AuthError(f"failed to decode token response: {exc}") from exc
        if fields["error"]:
            raise AuthError(
                f"token refresh failed: {fields['error']} - {fields['error_description']}"
            )
        return self._token(fields)

    def _token(self, fields: dict[str, Any]) -> Token:
        return Token(
            access_token=fields["access_token"],
            refresh_token=fields["refresh_token"],
            token_type=fields["token_type"],
            expiry=self._clock() + timedelta(seconds=fields["expires_in"]),
        )