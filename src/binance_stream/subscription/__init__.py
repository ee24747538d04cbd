"""
Subscription management for Binance WebSocket streams.

This module provides the reconciler that tracks desired and confirmed topics,
the operator command ingress, and the CLI tool that runs the client.
"""

from binance_stream.subscription.reconciler import PendingRequest, SubscriptionReconciler

__all__ = ["PendingRequest", "SubscriptionReconciler"]
