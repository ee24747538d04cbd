from binance_stream.connections.sockets import StreamConnectionManager
from binance_stream.subscription.reconciler import SubscriptionReconciler

__version__ = "0.1.0"

__all__ = ["StreamConnectionManager", "SubscriptionReconciler", "__version__"]
