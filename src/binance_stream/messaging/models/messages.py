"""Pydantic models for the Binance WebSocket request/response protocol.

Outbound requests::

    {"method":"SUBSCRIBE","params":["ethusdt@trade"],"id":1}
    {"method":"LIST_SUBSCRIPTIONS","id":3}

Inbound responses carry the request ``id`` back, with either ``result`` or
``error``::

    {"result":null,"id":1}
    {"result":["ethusdt@trade"],"id":3}
    {"error":{"code":-1,"msg":"x"},"id":2}

Everything else on the stream is a domain event, see ``events.py``.
"""

import json
import logging
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

from binance_stream.common.exceptions import MessageDecodeError
from binance_stream.config.enumerations import RequestMethod
from binance_stream.messaging.models.events import DomainEvent, decode_event

logger = logging.getLogger(__name__)


class StreamRequest(BaseModel):
    """Outbound request frame. ``params`` is omitted from the wire when unset."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    method: RequestMethod
    params: Optional[List[str]] = None
    id: StrictInt = Field(gt=0)

    def to_wire(self) -> str:
        return self.model_dump_json(exclude_none=True)


class ApiResponse(BaseModel):
    """Inbound response correlated to a request by ``id``.

    Failure is signalled by the presence of the ``error`` key, whatever its value.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    id: StrictInt
    result: Any = None
    error: Any = None

    @property
    def is_error(self) -> bool:
        return "error" in self.model_fields_set

    @property
    def result_list(self) -> List[str]:
        if not isinstance(self.result, list):
            return []
        return [item for item in self.result if isinstance(item, str)]


class UnknownMessage(BaseModel):
    """A decodable JSON payload that is neither a response nor a known event."""

    model_config = ConfigDict(frozen=True)

    payload: Any


InboundMessage = Union[ApiResponse, DomainEvent, UnknownMessage]


def parse_frame(text: str) -> InboundMessage:
    """Classify an inbound text frame.

    Objects carrying an ``id`` are responses; otherwise a domain event decode is
    attempted, falling back to an opaque ``UnknownMessage``.

    Raises:
        MessageDecodeError: the text is not JSON, or an ``id``-bearing object is
            not a valid response (e.g. a non-integer id).
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise MessageDecodeError(f"Failed to deserialize message: {e}", text, e) from e

    if isinstance(raw, dict) and "id" in raw:
        try:
            return ApiResponse.model_validate(raw)
        except ValidationError as e:
            raise MessageDecodeError(f"Received response without numeric id: {raw}", text, e) from e

    if isinstance(raw, dict):
        event = decode_event(raw)
        if event is not None:
            return event

    return UnknownMessage(payload=raw)
