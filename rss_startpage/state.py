"""Persistent read/favourite/hidden state and display settings."""

from __future__ import annotations

import logging

from .models import UserState
from .storage import SETTINGS_KEY, Storage

logger = logging.getLogger(__name__)

DEFAULT_THEME = "light"


class UserStateStore:
    """Holds the UserState and writes it back after every change."""

    def __init__(self, storage: Storage, default_theme: str = DEFAULT_THEME):
        self._storage = storage
        self._default_theme = default_theme
        self.state = UserState(theme=default_theme)

    def load(self) -> UserState:
        raw = self._storage.load_json(SETTINGS_KEY)
        if isinstance(raw, dict):
            try:
                self.state = UserState.from_dict(raw, default_theme=self._default_theme)
            except TypeError as exc:
                logger.warning("Ignoring malformed settings record: %s", exc)
                self.state = UserState(theme=self._default_theme)
        else:
            self.state = UserState(theme=self._default_theme)
        return self.state

    def save(self) -> None:
        self._storage.save_json(SETTINGS_KEY, self.state.to_dict())

    def mark_read(self, item_id: str) -> None:
        if item_id in self.state.read:
            return
        self.state.read.add(item_id)
        self.save()

    def mark_unread(self, item_id: str) -> None:
        if item_id not in self.state.read:
            return
        self.state.read.discard(item_id)
        self.save()

    def toggle_favorite(self, item_id: str) -> bool:
        """Flip the favourite flag and return the new value."""
        if item_id in self.state.favorites:
            self.state.favorites.discard(item_id)
            is_favorite = False
        else:
            self.state.favorites.add(item_id)
            is_favorite = True
        self.save()
        return is_favorite

    def hide(self, item_id: str) -> None:
        if item_id in self.state.hidden:
            return
        self.state.hidden.add(item_id)
        self.save()

    def unhide(self, item_id: str) -> None:
        if item_id not in self.state.hidden:
            return
        self.state.hidden.discard(item_id)
        self.save()

    def clear_read(self) -> None:
        if not self.state.read:
            return
        self.state.read.clear()
        self.save()

    def clear_hidden(self) -> None:
        if not self.state.hidden:
            return
        self.state.hidden.clear()
        self.save()

    def set_theme(self, theme: str) -> None:
        theme = theme.strip()
        if not theme or theme == self.state.theme:
            return
        self.state.theme = theme
        self.save()
