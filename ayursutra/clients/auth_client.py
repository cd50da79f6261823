import logging
from typing import Any, Dict, Optional

import aiohttp
from aiohttp import ClientTimeout

from ayursutra.models.user import AuthenticatedUser, LoginRequest, RegisterRequest


class AuthError(Exception):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class AuthClient:
    """Client for the backend `/auth` endpoints.

    Responses use the `{success, message, data}` envelope; anything other than
    a successful envelope raises AuthError. The bearer token lives on the
    instance only.
    """

    def __init__(self, base_url: str, timeout: float = 30.0, token: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token = token
        self.client: Optional[aiohttp.ClientSession] = None
        self.logger = logging.getLogger(__name__)

    async def get_client(self) -> aiohttp.ClientSession:
        if self.client is None:
            self.client = aiohttp.ClientSession(timeout=ClientTimeout(total=self.timeout))
        return self.client

    async def close_client(self):
        if self.client:
            await self.client.close()
            self.client = None

    async def make_request(
        self, method: str, endpoint: str, data: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        client = await self.get_client()
        url = f"{self.base_url}{endpoint}"
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}

        self.logger.debug(f"Making {method} request to {endpoint}")
        try:
            async with client.request(method, url, json=data, headers=headers) as response:
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None
                if not isinstance(body, dict):
                    body = {}

                if response.status >= 400 or not body.get("success"):
                    message = body.get("message") or response.reason or "Request failed"
                    self.logger.warning(
                        f"{method} {endpoint} failed with status {response.status}: {message}"
                    )
                    raise AuthError(message, response.status)

                return body.get("data") or {}

        except aiohttp.ClientError as e:
            self.logger.error(f"Network error occurred: {str(e)}")
            raise AuthError(f"Network error: {e}") from e

    async def login(self, email: str, password: str) -> tuple[AuthenticatedUser, str]:
        credentials = LoginRequest(email=email, password=password)
        data = await self.make_request("POST", "/auth/login", credentials.model_dump())
        return self._accept_session(data, "Login failed")

    async def register(self, form: Dict[str, Any]) -> tuple[AuthenticatedUser, str]:
        request = RegisterRequest.from_form(form)
        data = await self.make_request(
            "POST", "/auth/register", request.model_dump(by_alias=True, exclude_none=True)
        )
        return self._accept_session(data, "Registration failed")

    async def logout(self) -> None:
        try:
            if self.token:
                await self.make_request("POST", "/auth/logout")
        except AuthError as e:
            self.logger.warning(f"Logout error: {e.message}")
        finally:
            self.token = None

    async def get_profile(self) -> AuthenticatedUser:
        data = await self.make_request("GET", "/auth/profile")
        if not data.get("user"):
            raise AuthError("Failed to fetch profile")
        return AuthenticatedUser.model_validate(data["user"])

    async def update_profile(self, update: Dict[str, Any]) -> AuthenticatedUser:
        data = await self.make_request("PUT", "/auth/profile", update)
        if not data.get("user"):
            raise AuthError("Failed to update profile")
        return AuthenticatedUser.model_validate(data["user"])

    async def refresh_token(self) -> str:
        if not self.token:
            raise AuthError("No token to refresh")
        try:
            data = await self.make_request("POST", "/auth/refresh", {"token": self.token})
            if not data.get("token"):
                raise AuthError("Token refresh failed")
        except AuthError:
            await self.logout()
            raise
        self.token = data["token"]
        return self.token

    def _accept_session(self, data: Dict[str, Any], failure: str) -> tuple[AuthenticatedUser, str]:
        user, token = data.get("user"), data.get("token")
        if not user or not token:
            raise AuthError(failure)
        self.token = token
        return AuthenticatedUser.model_validate(user), token

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close_client()
