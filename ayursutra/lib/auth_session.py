# ayursutra/lib/auth_session.py

import logging
from typing import Any, Callable, Dict, Optional

from ayursutra.clients.auth_client import AuthClient, AuthError
from ayursutra.models.user import AuthenticatedUser

UserListener = Callable[[Optional[AuthenticatedUser]], Any]


class AuthSession:
    """Authentication state of the running client.

    Listeners are called with the current user, or None, after every login,
    registration, restore, profile update and logout.
    """

    def __init__(self, auth_client: AuthClient):
        self.auth_client = auth_client
        self.user: Optional[AuthenticatedUser] = None
        self.error: Optional[str] = None
        self.is_loading = False
        self._listeners: list[UserListener] = []
        self.logger = logging.getLogger(__name__)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def subscribe(self, listener: UserListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: UserListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def login(self, email: str, password: str) -> Optional[AuthenticatedUser]:
        self.is_loading, self.error = True, None
        try:
            user, _ = await self.auth_client.login(email, password)
        except AuthError as e:
            self.logger.warning(f"Login failed for {email}: {e.message}")
            self._set_user(None, error=e.message or "Login failed")
            return None
        self.logger.info(f"User {user.id} logged in")
        self._set_user(user)
        return user

    async def register(self, form: Dict[str, Any]) -> Optional[AuthenticatedUser]:
        self.is_loading, self.error = True, None
        try:
            user, _ = await self.auth_client.register(form)
        except AuthError as e:
            self.logger.warning(f"Registration failed: {e.message}")
            self._set_user(None, error=e.message or "Registration failed")
            return None
        self.logger.info(f"User {user.id} registered")
        self._set_user(user)
        return user

    async def restore(self, token: Optional[str] = None) -> Optional[AuthenticatedUser]:
        """Resume a session from a stored token by validating it against the profile endpoint."""
        if token:
            self.auth_client.token = token
        if not self.auth_client.token:
            self._set_user(None)
            return None

        self.is_loading = True
        try:
            user = await self.auth_client.get_profile()
        except AuthError as e:
            self.logger.info(f"Stored session is no longer valid: {e.message}")
            await self.auth_client.logout()
            self._set_user(None)
            return None
        self.logger.info(f"Session restored for user {user.id}")
        self._set_user(user)
        return user

    async def update_user(self, update: Dict[str, Any]) -> AuthenticatedUser:
        user = await self.auth_client.update_profile(update)
        self._set_user(user)
        return user

    async def logout(self) -> None:
        try:
            await self.auth_client.logout()
        finally:
            self.logger.info("User logged out")
            self._set_user(None)

    def clear_error(self) -> None:
        self.error = None

    def _set_user(self, user: Optional[AuthenticatedUser], error: Optional[str] = None) -> None:
        self.user = user
        self.error = error
        self.is_loading = False
        for listener in list(self._listeners):
            try:
                listener(user)
            except Exception:
                self.logger.exception("Error in auth session listener")
