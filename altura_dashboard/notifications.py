from typing import Literal

from pydantic import BaseModel

Color = Literal["green", "red", "blue"]


class Notification(BaseModel):
    """A user-visible toast produced at an operation boundary."""
    title: str
    message: str
    color: Color = "blue"


class Notifier:
    """Collects notifications for the page that raised them."""

    def __init__(self):
        self.items: list[Notification] = []

    def show(self, title: str, message: str, color: Color = "blue") -> Notification:
        note = Notification(title=title, message=message, color=color)
        self.items.append(note)
        return note

    def success(self, title: str, message: str) -> Notification:
        return self.show(title, message, "green")

    def error(self, title: str, message: str) -> Notification:
        return self.show(title, message, "red")

    @property
    def last(self) -> Notification | None:
        return self.items[-1] if self.items else None

    def drain(self) -> list[Notification]:
        items, self.items = self.items, []
        return items
