from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Dict


class InboundWebhook(BaseModel):
    """Fields a sender submits (and signs)."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    source: str = Field(..., description="Origin identifier")
    event_type: str = Field(..., description="Event type discriminator")
    payload: Dict[str, Any] = Field(..., min_length=1)


class Event(InboundWebhook):
    """An accepted webhook as held by the event store."""

    id: str
    received_at: datetime
    provided_tag: str | None = None
    verified: bool = False
