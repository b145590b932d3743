from smartmarks.client.config import ClientConfig
from smartmarks.client.editor import BookmarkEditor
from smartmarks.client.feed import ChangeFeed, Subscription
from smartmarks.client.monitor import ConnectionMonitor
from smartmarks.client.reconciler import BookmarkReconciler
from smartmarks.client.session import ClientSession
from smartmarks.client.store import StoreClient, StoreError

__all__ = [
    "BookmarkEditor",
    "BookmarkReconciler",
    "ChangeFeed",
    "ClientConfig",
    "ClientSession",
    "ConnectionMonitor",
    "StoreClient",
    "StoreError",
    "Subscription",
]
