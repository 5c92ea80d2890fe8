"""
Theme store.

Keeps the console's colour theme: the current theme, the saved themes
(global ``themes`` plus the signed-in user's named ``userThemes``) and the
user's preference document ``userThemes/{uid}``. Reads the signed-in user
from an AuthSession it subscribes to: a sign-in loads the user's preference
and themes, a sign-out drops them. The session only knows the store as one
of its listeners.
"""

from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from .audit_logger import AuditLogger
from .auth import AuthSession
from .document_store import DocumentStore
from .enums import LogLevel
from .exceptions import UrlModeratorError
from .i18n import get_message
from .models import AuthUser, Theme
from .url_records import utc_now


THEMES_COLLECTION = "themes"
USER_THEMES_COLLECTION = "userThemes"


class ThemeStore:
    """Current and saved colour themes of the console."""

    def __init__(
        self,
        store: DocumentStore,
        auth: AuthSession,
        language: str = "es",
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._auth = auth
        self._language = language
        self._logger = logger
        self._clock = clock
        self.current_theme = Theme()
        self.saved_themes: list[Theme] = []
        self.loading = False
        self.error: Optional[str] = None
        self._unsubscribe = auth.subscribe(self._on_user_changed)

    @property
    def css_vars(self) -> dict[str, str]:
        """CSS custom properties for the current theme."""
        theme = self.current_theme
        return {
            "--color-primary": theme.primary,
            "--color-secondary": theme.secondary,
            "--color-primary-2": theme.primary,
            "--color-secondary-2": theme.secondary,
            "--color-accent": theme.accent,
            "--color-background": theme.background,
            "--color-text": theme.text,
            "--color-accent-2": theme.accent,
            "--color-background-2": theme.background,
            "--color-text-2": theme.text,
        }

    @property
    def _uid(self) -> Optional[str]:
        user = self._auth.user
        return user.uid if user is not None else None

    async def init(self) -> bool:
        """
        Load the user's preferred theme (or the default), then the saved
        themes.
        """
        self.loading = True
        self.error = None
        try:
            uid = self._uid
            if uid is not None:
                data = await self._store.get(USER_THEMES_COLLECTION, uid)
                self.current_theme = Theme.from_document(data) if data is not None else Theme()
                await self.apply_theme()

            await self.fetch_saved_themes()
        except UrlModeratorError as e:
            self._set_error("theme.init_failed", e)
            return False
        finally:
            self.loading = False
        return self.error is None

    async def fetch_saved_themes(self) -> list[Theme]:
        """
        Reload the saved themes.

        Global themes come first, followed by the user's own themes that
        carry a name (the bare preference document has none).
        """
        try:
            themes = [
                Theme.from_document(doc.data, doc.id)
                for doc in await self._store.list_all(THEMES_COLLECTION)
            ]

            uid = self._uid
            if uid is not None:
                for doc in await self._store.query_equal(USER_THEMES_COLLECTION, "userId", uid):
                    if doc.data.get("name"):
                        themes.append(Theme.from_document(doc.data, doc.id, is_user_theme=True))
        except UrlModeratorError as e:
            self._set_error("theme.load_failed", e)
            return list(self.saved_themes)

        self.saved_themes = themes
        self._log_info("Saved themes loaded", {"count": len(themes)})
        return list(themes)

    async def save_current_theme(self, name: str) -> bool:
        """Save the current colours as a new named theme."""
        name = name.strip() if isinstance(name, str) else ""
        if not name:
            self.error = get_message("theme.empty_name", self._language)
            return False

        self.loading = True
        self.error = None
        try:
            now = self._clock()
            theme = replace(self.current_theme, name=name, created_at=now, updated_at=now, id=None)
            user = self._auth.user
            if user is not None:
                theme.user_id = user.uid
                theme.user_email = user.email

            theme.id = await self._store.create(THEMES_COLLECTION, theme.to_document())
        except UrlModeratorError as e:
            self._set_error("theme.save_failed", e)
            return False
        finally:
            self.loading = False

        self.saved_themes.append(theme)
        self._log_info("Theme saved", {"id": theme.id, "name": name})
        return True

    async def apply_theme(self, theme: Optional[Theme] = None) -> dict[str, str]:
        """
        Make ``theme`` current (or re-apply the current one).

        The preference is persisted when a user is signed in.

        Returns:
            The CSS variables of the applied theme
        """
        if theme is not None:
            self.current_theme = replace(theme)

        if self._uid is not None:
            await self.save_user_theme_preference()
        return self.css_vars

    async def save_user_theme_preference(self) -> bool:
        uid = self._uid
        if uid is None:
            return False

        preference = replace(self.current_theme, user_id=uid, updated_at=self._clock())
        document = preference.to_document()
        document.pop("userEmail", None)
        try:
            await self._store.set(USER_THEMES_COLLECTION, uid, document)
        except UrlModeratorError as e:
            self._set_error("theme.preference_failed", e)
            return False

        self._log_info("Theme preference saved", {"uid": uid})
        return True

    async def reset_to_default(self) -> dict[str, str]:
        return await self.apply_theme(Theme())

    def detach(self) -> None:
        """Stop following the auth session."""
        self._unsubscribe()

    async def _on_user_changed(self, user: Optional[AuthUser]) -> None:
        # Signed out: drop the personal themes, back to the default colours
        if user is None:
            self.current_theme = Theme()
            self.saved_themes = [theme for theme in self.saved_themes if not theme.is_user_theme]
            return
        await self.init()

    def _set_error(self, key: str, error: UrlModeratorError) -> None:
        self.error = get_message(key, self._language, error=error.message)
        if self._logger:
            self._logger.log_error("ThemeStore", self.error, error)

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(LogLevel.INFO, "ThemeStore", message, data)
