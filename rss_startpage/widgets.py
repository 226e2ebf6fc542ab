"""Persisted widget records and their JSON export."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional

from .registry import validate_http_url
from .storage import WIDGETS_KEY, Storage

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Link:
    title: str
    url: str
    id: str = field(default_factory=new_id)


@dataclass
class Site:
    name: str
    url: str
    id: str = field(default_factory=new_id)


@dataclass
class Todo:
    text: str
    completed: bool = False
    id: str = field(default_factory=new_id)


@dataclass
class Widget:
    id: str
    title: str

    TYPE: ClassVar[str] = ""

    def to_dict(self, include_transient: bool = True) -> Dict[str, Any]:
        return {"id": self.id, "type": self.TYPE, "title": self.title}


@dataclass
class BookmarksWidget(Widget):
    links: List[Link] = field(default_factory=list)

    TYPE: ClassVar[str] = "bookmarks"

    def add_link(self, title: str, url: str) -> Link:
        link = Link(title=title, url=validate_http_url(url))
        self.links.append(link)
        return link

    def remove_link(self, link_id: str) -> bool:
        remaining = [link for link in self.links if link.id != link_id]
        removed = len(remaining) != len(self.links)
        self.links = remaining
        return removed

    def to_dict(self, include_transient: bool = True) -> Dict[str, Any]:
        payload = super().to_dict(include_transient)
        payload["links"] = [
            {"id": link.id, "title": link.title, "url": link.url}
            for link in self.links
        ]
        return payload


@dataclass
class LaunchpadWidget(Widget):
    sites: List[Site] = field(default_factory=list)

    TYPE: ClassVar[str] = "launchpad"

    def add_site(self, name: str, url: str) -> Site:
        site = Site(name=name, url=validate_http_url(url))
        self.sites.append(site)
        return site

    def to_dict(self, include_transient: bool = True) -> Dict[str, Any]:
        payload = super().to_dict(include_transient)
        payload["sites"] = [
            {"id": site.id, "name": site.name, "url": site.url}
            for site in self.sites
        ]
        return payload


@dataclass
class NotesWidget(Widget):
    notes: str = ""

    TYPE: ClassVar[str] = "notes"

    def to_dict(self, include_transient: bool = True) -> Dict[str, Any]:
        payload = super().to_dict(include_transient)
        payload["notes"] = self.notes
        return payload


@dataclass
class WeatherWidget(Widget):
    location: str = ""
    # Live readings; never exported.
    weather: Optional[Dict[str, Any]] = None

    TYPE: ClassVar[str] = "weather"

    def to_dict(self, include_transient: bool = True) -> Dict[str, Any]:
        payload = super().to_dict(include_transient)
        payload["location"] = self.location
        if include_transient and self.weather is not None:
            payload["weather"] = dict(self.weather)
        return payload


@dataclass
class TodoWidget(Widget):
    todos: List[Todo] = field(default_factory=list)

    TYPE: ClassVar[str] = "todo"

    def add_todo(self, text: str) -> Todo:
        todo = Todo(text=text.strip())
        self.todos.append(todo)
        return todo

    def toggle_todo(self, todo_id: str) -> bool:
        for todo in self.todos:
            if todo.id == todo_id:
                todo.completed = not todo.completed
                return todo.completed
        raise KeyError(f"Unknown todo: {todo_id}")

    def to_dict(self, include_transient: bool = True) -> Dict[str, Any]:
        payload = super().to_dict(include_transient)
        payload["todos"] = [
            {"id": todo.id, "text": todo.text, "completed": todo.completed}
            for todo in self.todos
        ]
        return payload


WIDGET_TYPES = {
    cls.TYPE: cls
    for cls in (BookmarksWidget, LaunchpadWidget, NotesWidget, WeatherWidget, TodoWidget)
}


def widget_from_dict(data: Dict[str, Any]) -> Widget:
    """Build the widget variant named by ``data["type"]``."""
    widget_type = data.get("type")
    if widget_type not in WIDGET_TYPES:
        raise ValueError(f"Unsupported widget type: {widget_type!r}")

    base = {"id": str(data.get("id") or new_id()), "title": str(data.get("title") or "")}
    if widget_type == BookmarksWidget.TYPE:
        return BookmarksWidget(
            links=[
                Link(title=link.get("title", ""), url=validate_http_url(link["url"]), id=str(link.get("id") or new_id()))
                for link in data.get("links") or []
            ],
            **base,
        )
    if widget_type == LaunchpadWidget.TYPE:
        return LaunchpadWidget(
            sites=[
                Site(name=site.get("name", ""), url=validate_http_url(site["url"]), id=str(site.get("id") or new_id()))
                for site in data.get("sites") or []
            ],
            **base,
        )
    if widget_type == NotesWidget.TYPE:
        return NotesWidget(notes=str(data.get("notes") or ""), **base)
    if widget_type == WeatherWidget.TYPE:
        return WeatherWidget(
            location=str(data.get("location") or ""),
            weather=data.get("weather"),
            **base,
        )
    return TodoWidget(
        todos=[
            Todo(
                text=todo.get("text", ""),
                completed=bool(todo.get("completed", False)),
                id=str(todo.get("id") or new_id()),
            )
            for todo in data.get("todos") or []
        ],
        **base,
    )


class WidgetStore:
    """Ordered widgets persisted under the widgets-data record."""

    def __init__(self, storage: Storage):
        self._storage = storage
        self.widgets: List[Widget] = []

    def load(self) -> List[Widget]:
        raw = self._storage.load_json(WIDGETS_KEY, default=[])
        widgets: List[Widget] = []
        if isinstance(raw, list):
            for item in raw:
                try:
                    widgets.append(widget_from_dict(item))
                except (AttributeError, KeyError, TypeError, ValueError) as exc:
                    logger.warning("Skipping malformed widget %r: %s", item, exc)
        self.widgets = widgets
        return self.widgets

    def save(self) -> None:
        self._storage.save_json(WIDGETS_KEY, [widget.to_dict() for widget in self.widgets])

    def get(self, widget_id: str) -> Widget:
        for widget in self.widgets:
            if widget.id == widget_id:
                return widget
        raise KeyError(f"Unknown widget: {widget_id}")

    def add(self, widget_type: str, title: str, **fields: Any) -> Widget:
        widget = widget_from_dict({"type": widget_type, "title": title, **fields})
        self.widgets.append(widget)
        self.save()
        logger.info("Added %s widget %s", widget.TYPE, widget.id)
        return widget

    def remove(self, widget_id: str) -> bool:
        remaining = [widget for widget in self.widgets if widget.id != widget_id]
        if len(remaining) == len(self.widgets):
            return False
        self.widgets = remaining
        self.save()
        return True

    def update_title(self, widget_id: str, title: str) -> None:
        widget = self.get(widget_id)
        if widget.title == title:
            return
        widget.title = title
        self.save()

    def move(self, from_index: int, to_index: int) -> None:
        """Move the widget at from_index so it ends up at to_index."""
        if not 0 <= from_index < len(self.widgets):
            raise IndexError(f"No widget at position {from_index}")
        to_index = min(max(to_index, 0), len(self.widgets) - 1)
        if from_index == to_index:
            return
        widget = self.widgets.pop(from_index)
        self.widgets.insert(to_index, widget)
        self.save()

    def export(self) -> str:
        """Serialise the widgets without transient fetched data."""
        return json.dumps(
            [widget.to_dict(include_transient=False) for widget in self.widgets],
            indent=2,
            ensure_ascii=False,
        )
