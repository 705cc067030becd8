# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Event bus module for session-scoped event management."""

import logging

from collections import defaultdict
from typing import Callable, Dict, List
from pydantic import BaseModel, ConfigDict, PrivateAttr

from ..types.event_types import EventType, Event

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class EventBus(BaseModel):
    """
    Publish/subscribe hub for the events of one agent session.

    Every agent owns its own bus so that concurrent sessions never observe
    each other's events. Subscribers are async callables; an exception raised
    by a subscriber is logged and does not reach the publisher.
    """

    _subscribers: Dict[EventType, List[Callable]] = PrivateAttr(
        default_factory=lambda: defaultdict(list)
    )
    _event_store: List[Event] = PrivateAttr(default_factory=list)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    async def publish(self, event: Event, publisher_id: str) -> None:
        """Publish an event to the bus.

        Args:
            event: The event to publish
            publisher_id: ID of the publishing agent
        """
        logger.debug(f"New event from {publisher_id}: {event.type}")
        event.metadata["publisher_id"] = publisher_id
        self._event_store.append(event)

        for callback in list(self._subscribers[event.type]):
            try:
                await callback(event)
            except Exception as e:
                logger.error(f"Error in event subscriber {callback}: {e}")

    def subscribe(
        self,
        event_type: EventType | set[EventType] | list[EventType] | tuple[EventType],
        callback: Callable,
    ) -> None:
        """Subscribe to events of a specific type.

        Args:
            event_type: Single EventType or collection of EventTypes to subscribe to
            callback: Async callback function for event handling
        """
        if isinstance(event_type, (set, list, tuple)):
            for et in event_type:
                logger.debug(f"Subscribing {callback} to {et}")
                self._subscribers[et].append(callback)
        else:
            logger.debug(f"Subscribing {callback} to {event_type}")
            self._subscribers[event_type].append(callback)

    def subscribe_all(self, callback: Callable) -> None:
        self.subscribe(list(EventType), callback)

    def unsubscribe(
        self,
        event_type: EventType | set[EventType] | list[EventType] | tuple[EventType],
        callback: Callable,
    ) -> None:
        if isinstance(event_type, (set, list, tuple)):
            for et in event_type:
                if callback in self._subscribers[et]:
                    self._subscribers[et].remove(callback)
        else:
            if callback in self._subscribers[event_type]:
                self._subscribers[event_type].remove(callback)

    def get_events(self) -> List[Event]:
        return list(self._event_store)

    def get_events_by_type(self, event_type: EventType) -> List[Event]:
        return [e for e in self._event_store if e.type == event_type]

    def clear(self) -> None:
        """Clear stored events; subscribers are kept."""
        self._event_store.clear()
