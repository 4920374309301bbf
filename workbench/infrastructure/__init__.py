"""Infrastructure layer exports."""

from .gateway import HttpRemoteGateway, Preview, RemoteGateway, UploadFile
from .notifications import InMemoryNotifier, Notification, Notifier

__all__ = [
    "HttpRemoteGateway",
    "InMemoryNotifier",
    "Notification",
    "Notifier",
    "Preview",
    "RemoteGateway",
    "UploadFile",
]
