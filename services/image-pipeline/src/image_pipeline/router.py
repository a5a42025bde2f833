"""
Content-based routing contract for the image topic.

One topic fans out to several subscriptions. Each subscription may carry a
filter policy (attribute name -> allow-list, exact string match); a message
reaches a subscription when every filtered attribute is present with an
allowed value. Unfiltered subscriptions receive every message.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

from image_pipeline.models import STATUS_UPDATE_MESSAGE_TYPE, MetadataType


class EndpointKind(Enum):
    QUEUE = "queue"
    PUSH = "push"


@dataclass(frozen=True)
class FilterPolicy:
    allowlists: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.allowlists

    def matches(self, attributes: Mapping[str, str]) -> bool:
        for name, allowed in self.allowlists.items():
            if attributes.get(name) not in allowed:
                return False
        return True

    def to_sns(self) -> str:
        """Render as an SNS subscription ``FilterPolicy`` document."""
        return json.dumps(
            {name: list(allowed) for name, allowed in self.allowlists.items()},
            sort_keys=True,
        )


@dataclass(frozen=True)
class Subscription:
    name: str
    endpoint: EndpointKind
    policy: FilterPolicy = field(default_factory=FilterPolicy)
    batch_size: int = 1

    def accepts(self, attributes: Mapping[str, str]) -> bool:
        return self.policy.matches(attributes)


@dataclass(frozen=True)
class RedrivePolicy:
    """Queue redelivery budget before a message is dead-lettered."""
    max_receive_count: int = 3
    dead_letter_batch_size: int = 1


IMAGE_PROCESS_QUEUE = Subscription(
    name="image-process",
    endpoint=EndpointKind.QUEUE,
    batch_size=5,
)

ADD_METADATA = Subscription(
    name="add-metadata",
    endpoint=EndpointKind.PUSH,
    policy=FilterPolicy({"metadata_type": tuple(t.value for t in MetadataType)}),
)

UPDATE_STATUS = Subscription(
    name="update-status",
    endpoint=EndpointKind.PUSH,
    policy=FilterPolicy({"message_type": (STATUS_UPDATE_MESSAGE_TYPE,)}),
)

SUBSCRIPTIONS: tuple[Subscription, ...] = (IMAGE_PROCESS_QUEUE, ADD_METADATA, UPDATE_STATUS)

IMAGE_PROCESS_REDRIVE = RedrivePolicy(max_receive_count=3, dead_letter_batch_size=1)


def route(
    attributes: Optional[Mapping[str, str]],
    subscriptions: tuple[Subscription, ...] = SUBSCRIPTIONS,
) -> list[Subscription]:
    """Subscriptions that receive a message carrying ``attributes``."""
    attrs = attributes or {}
    return [sub for sub in subscriptions if sub.accepts(attrs)]


def message_attributes_from_sns(sns_message: Mapping) -> dict[str, str]:
    """
    Flatten SNS ``MessageAttributes`` to ``{name: value}``.

    Accepts both the Lambda record shape (``{"Type": ..., "Value": ...}``)
    and the publish-API shape (``{"DataType": ..., "StringValue": ...}``).
    """
    flattened = {}
    for name, attr in (sns_message.get("MessageAttributes") or {}).items():
        if not isinstance(attr, Mapping):
            continue
        value = attr.get("Value", attr.get("StringValue"))
        if isinstance(value, str):
            flattened[name] = value
    return flattened
