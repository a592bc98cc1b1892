import logging
import threading
from enum import Enum
from typing import Any, Dict, List, Protocol, Set, Union

logger = logging.getLogger(__name__)


class ClientHandle(Protocol):
    """
    Anything that can receive a live event. ``send`` must not block: handles
    that talk to a slow network peer buffer internally.
    """

    def send(self, event_type: str, payload: Dict[str, Any]) -> None:
        ...


class Broadcaster:
    """
    Room registry mapping organization ids to connected client handles.

    Delivery is fire-and-forget and at-most-once: a publish reaches the
    handles that are in the room at that moment and nothing is kept for
    handles that join later. Route handlers run in a worker thread pool, so
    membership changes go through a lock; sends happen outside of it on a
    snapshot of the room.
    """

    def __init__(self) -> None:
        self._rooms: Dict[str, Set[ClientHandle]] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def join(self, organization_id: str, handle: ClientHandle) -> None:
        if not organization_id:
            logger.warning("join without organization id ignored")
            return
        with self._lock:
            self._rooms.setdefault(organization_id, set()).add(handle)
        logger.info("client joined room", extra={"organization_id": organization_id})

    def leave(self, organization_id: str, handle: ClientHandle) -> None:
        if not organization_id:
            logger.warning("leave without organization id ignored")
            return
        with self._lock:
            members = self._rooms.get(organization_id)
            if members is None:
                return
            members.discard(handle)
            if not members:
                del self._rooms[organization_id]
        logger.info("client left room", extra={"organization_id": organization_id})

    def disconnect(self, handle: ClientHandle) -> List[str]:
        """Drop ``handle`` from every room. Returns the rooms it was in."""
        left: List[str] = []
        with self._lock:
            for organization_id, members in list(self._rooms.items()):
                if handle in members:
                    members.discard(handle)
                    left.append(organization_id)
                    if not members:
                        del self._rooms[organization_id]
        return left

    def publish(
        self,
        organization_id: str,
        event_type: Union[str, Enum],
        payload: Dict[str, Any],
    ) -> int:
        """
        Send ``payload`` to every handle in the organization's room and return
        how many sends succeeded. A failing handle is logged and skipped.
        """
        event_name = event_type.value if isinstance(event_type, Enum) else str(event_type)
        if self._closed:
            logger.warning(
                "broadcaster closed, event dropped",
                extra={"organization_id": organization_id, "event": event_name},
            )
            return 0

        with self._lock:
            targets = list(self._rooms.get(organization_id, ()))

        delivered = 0
        for handle in targets:
            try:
                handle.send(event_name, payload)
                delivered += 1
            except Exception:
                logger.warning(
                    "event delivery failed",
                    exc_info=True,
                    extra={"organization_id": organization_id, "event": event_name},
                )
        logger.debug(
            "event published",
            extra={"organization_id": organization_id, "event": event_name, "delivered": delivered},
        )
        return delivered

    def members(self, organization_id: str) -> Set[ClientHandle]:
        with self._lock:
            return set(self._rooms.get(organization_id, ()))

    def rooms(self) -> List[str]:
        with self._lock:
            return list(self._rooms)

    def close(self) -> None:
        with self._lock:
            self._rooms.clear()
            self._closed = True
        logger.info("broadcaster closed")
