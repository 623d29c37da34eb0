import orjson
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List
from ..event_models import Event, InboundWebhook
from ..security.signature import canonical_payload


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WebhookCreateRequest(_WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    source: str = Field(..., min_length=1, max_length=100)
    event_type: str = Field(..., min_length=1, max_length=100)
    payload: Dict[str, Any] = Field(..., min_length=1)

    @field_validator("payload")
    @classmethod
    def payload_must_serialize(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        """Reject payloads the signature check cannot serialize (e.g. integers wider than 64 bits)."""
        try:
            canonical_payload("", "", v)
        except (orjson.JSONEncodeError, TypeError) as e:
            raise ValueError(f"payload cannot be serialized: {e}") from e
        return v

    def to_inbound(self) -> InboundWebhook:
        return InboundWebhook(**self.model_dump())


class WebhookCreateResponse(_WireModel):
    id: str
    message: str = "Webhook received"


class WebhookListResponse(_WireModel):
    items: List[Event]
    count: int
    page: int
    limit: int
    total_pages: int


class MessageResponse(_WireModel):
    message: str
