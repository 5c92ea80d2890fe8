"""
Auth session.

Holds the signed-in user reported by the identity provider and tells
subscribers when it changes. Only users whose claims grant ``access`` are
kept; anyone else is turned away with a message in the error slot.
"""

import inspect
from typing import Awaitable, Callable, Optional, Union

from .audit_logger import AuditLogger
from .enums import LogLevel
from .i18n import get_message
from .models import AuthUser


# Listeners may be coroutine functions; their result is awaited in turn
AuthListener = Callable[[Optional[AuthUser]], Union[None, Awaitable[None]]]


class AuthSession:
    """Current user plus change notifications."""

    def __init__(self, language: str = "es", logger: Optional[AuditLogger] = None) -> None:
        self._language = language
        self._logger = logger
        self._user: Optional[AuthUser] = None
        self._listeners: list[AuthListener] = []
        self.error: Optional[str] = None

    @property
    def user(self) -> Optional[AuthUser]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    @property
    def is_authorized(self) -> bool:
        return self._user is not None and self._user.has_access

    async def set_user(self, user: Optional[AuthUser]) -> bool:
        """
        Replace the current user and notify subscribers, awaiting any
        listener that returns an awaitable before the next one runs.

        Args:
            user: Newly signed-in user, or None on sign-out

        Returns:
            False if the user lacks the access claim (the session is left
            signed out), True otherwise
        """
        accepted = user is None or user.has_access
        if accepted:
            self.error = None
            self._user = user
        else:
            self.error = get_message("auth.unauthorized", self._language, email=user.email or "")
            self._user = None
            if self._logger:
                self._logger.log(
                    LogLevel.WARN,
                    "AuthSession",
                    "Sign-in rejected, missing access claim",
                    {"uid": user.uid, "email": user.email},
                )

        for listener in list(self._listeners):
            result = listener(self._user)
            if inspect.isawaitable(result):
                await result
        return accepted

    async def sign_out(self) -> None:
        await self.set_user(None)

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            A callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
