from dataclasses import dataclass
from typing import List, Protocol


@dataclass(frozen=True)
class Toast:
    title: str
    description: str = ""
    variant: str = "default"


class Notifier(Protocol):
    """User-facing notifications (toasts)."""

    def toast(self, title: str, description: str = "", variant: str = "default") -> None:
        ...


class RecordingNotifier:
    """Keeps every toast in memory."""

    def __init__(self):
        self.toasts: List[Toast] = []

    def toast(self, title: str, description: str = "", variant: str = "default") -> None:
        self.toasts.append(Toast(title=title, description=description, variant=variant))

    @property
    def errors(self) -> List[Toast]:
        return [t for t in self.toasts if t.variant == "destructive"]

    def clear(self) -> None:
        self.toasts.clear()
