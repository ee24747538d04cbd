"""Subscription reconciliation between desired and confirmed topics.

The reconciler never touches the network. Each operation returns the
``StreamRequest`` that must be written to the connection (or ``None`` for a
no-op) and records it as pending under its id; responses are applied through
``handle_response``.

State:
    desired    topics the operator wants. Updated optimistically by commands and
               rolled back when the server rejects the request. Survives reconnects.
    confirmed  topics the server acknowledged. Cleared on reconnect.
    pending    in-flight requests keyed by id. Cleared on reconnect.

``active`` is reported as ``confirmed & desired`` so a topic whose unsubscribe
is still in flight is no longer reported live.
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from binance_stream.config.enumerations import RequestKind, RequestMethod
from binance_stream.messaging.models.messages import ApiResponse, StreamRequest
from binance_stream.utils.helpers import normalize_topic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingRequest:
    id: int
    kind: RequestKind
    topics: Tuple[str, ...] = ()


class SubscriptionReconciler:
    def __init__(self, initial_topics: Iterable[str] = ()) -> None:
        self.desired: Set[str] = {normalize_topic(topic) for topic in initial_topics if topic.strip()}
        self.confirmed: Set[str] = set()
        self.pending: Dict[int, PendingRequest] = {}
        self.next_request_id: int = 1

    # --- Views ---------------------------------------------------------------

    @property
    def active(self) -> FrozenSet[str]:
        return frozenset(self.confirmed & self.desired)

    def snapshot(self) -> Tuple[List[str], List[str]]:
        """Sorted (desired, active) lists."""
        return sorted(self.desired), sorted(self.active)

    # --- Session lifecycle ---------------------------------------------------

    def reset(self) -> None:
        """Forget server-side state; a new connection starts with no subscriptions."""
        if self.pending:
            logger.info("Discarding %d pending requests", len(self.pending))
        self.confirmed.clear()
        self.pending.clear()

    def resync(self) -> Optional[StreamRequest]:
        """Build one subscribe request replaying the whole desired set."""
        if not self.desired:
            return None
        return self._issue(RequestKind.SUBSCRIBE, sorted(self.desired))

    # --- Commands ------------------------------------------------------------

    def subscribe(self, topic: str) -> Optional[StreamRequest]:
        topic = normalize_topic(topic)
        if topic in self.desired:
            logger.info("Already requested: %s", topic)
            return None

        self.desired.add(topic)
        return self._issue(RequestKind.SUBSCRIBE, [topic])

    def unsubscribe(self, topic: str) -> Optional[StreamRequest]:
        topic = normalize_topic(topic)
        if topic not in self.desired:
            logger.warning("Stream not in desired set: %s", topic)
            return None

        self.desired.discard(topic)
        return self._issue(RequestKind.UNSUBSCRIBE, [topic])

    def list_server(self) -> StreamRequest:
        return self._issue(RequestKind.LIST_SERVER, [])

    # --- Responses -----------------------------------------------------------

    def handle_response(self, response: ApiResponse) -> Optional[PendingRequest]:
        """Apply a response to the bookkeeping.

        Returns the pending request it resolved, or None when the id is unknown.
        """
        pending = self.pending.pop(response.id, None)
        if pending is None:
            logger.warning("Received response for unknown request id=%d: %s", response.id, response)
            return None

        if response.is_error:
            self._rollback(pending)
            logger.error("Request id=%d failed: %s", response.id, response.error)
            return pending

        if pending.kind is RequestKind.SUBSCRIBE:
            for topic in pending.topics:
                self.confirmed.add(topic)
                logger.info("Subscription confirmed for %s (id=%d)", topic, response.id)
        elif pending.kind is RequestKind.UNSUBSCRIBE:
            for topic in pending.topics:
                self.confirmed.discard(topic)
                logger.info("Unsubscription confirmed for %s (id=%d)", topic, response.id)
        else:
            logger.info("Server subscriptions (id=%d): %s", response.id, response.result_list)

        return pending

    # --- Internals -----------------------------------------------------------

    def _rollback(self, pending: PendingRequest) -> None:
        if pending.kind is RequestKind.SUBSCRIBE:
            self.desired.difference_update(pending.topics)
        elif pending.kind is RequestKind.UNSUBSCRIBE:
            self.desired.update(pending.topics)

    def _allocate_id(self) -> int:
        request_id = self.next_request_id
        self.next_request_id += 1
        return request_id

    def _issue(self, kind: RequestKind, topics: List[str]) -> StreamRequest:
        request_id = self._allocate_id()

        method = {
            RequestKind.SUBSCRIBE: RequestMethod.SUBSCRIBE,
            RequestKind.UNSUBSCRIBE: RequestMethod.UNSUBSCRIBE,
            RequestKind.LIST_SERVER: RequestMethod.LIST_SUBSCRIPTIONS,
        }[kind]
        request = StreamRequest(
            method=method,
            params=topics if kind is not RequestKind.LIST_SERVER else None,
            id=request_id,
        )
        self.pending[request_id] = PendingRequest(id=request_id, kind=kind, topics=tuple(topics))
        logger.info("Issued %s id=%d streams=%s", method.value, request_id, topics)
        return request
