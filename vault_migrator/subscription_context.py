"""
Subscription Context Module

Tracks which subscription is "active" for a pipeline run. Every service call
takes an explicit subscription id; the context is the bookkeeping layer above
them. Components call switch_to() immediately before each operation and read
the id back through current(), so a stale or wrong context can never route a
write to the wrong subscription silently.

Handles are scoped: scoped_context() creates one per environment pipeline and
releases it afterwards. Handles are never shared between concurrent pipelines.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Set

from .exceptions import ContextSwitchError
from .services.base import SubscriptionService

logger = logging.getLogger(__name__)


def _mask(subscription_id: str) -> str:
    return subscription_id[:8] + "..." if len(subscription_id) > 8 else subscription_id


class SubscriptionContext:
    """
    The active subscription of one pipeline run.

    Attributes:
        history: Every subscription passed to switch_to, in call order
    """

    def __init__(
        self,
        subscription_service: SubscriptionService,
        initial: Optional[str] = None,
        label: str = "",
    ) -> None:
        self.subscription_service = subscription_service
        self.label = label
        self.history: List[str] = []
        self._current: Optional[str] = initial
        self._verified: Set[str] = set()
        self._released = False
        self._lock = threading.Lock()

    def switch_to(self, subscription_id: str) -> None:
        """
        Make subscription_id the active subscription.

        Access is verified the first time a subscription is used on this
        handle; every call re-asserts the active value.

        Raises:
            ContextSwitchError: If the handle was released or the subscription
                is not accessible with the current credentials
        """
        if not subscription_id:
            raise ContextSwitchError("Cannot switch to an empty subscription id")

        with self._lock:
            if self._released:
                raise ContextSwitchError(
                    "Subscription context used after release",
                    subscription_id=subscription_id,
                )

            self.history.append(subscription_id)

            if subscription_id not in self._verified:
                try:
                    self.subscription_service.get_subscription(subscription_id)
                except Exception as e:
                    raise ContextSwitchError(
                        f"Subscription {subscription_id} is not accessible",
                        subscription_id=subscription_id,
                        cause=e,
                    ) from e
                self._verified.add(subscription_id)

            if self._current != subscription_id:
                logger.debug(
                    f"[{self.label or 'context'}] Switching to subscription "
                    f"{_mask(subscription_id)}"
                )
            self._current = subscription_id

    def current(self) -> str:
        """
        Return the active subscription.

        Raises:
            ContextSwitchError: If no subscription is active or the handle
                was released
        """
        with self._lock:
            if self._released:
                raise ContextSwitchError("Subscription context used after release")
            if not self._current:
                raise ContextSwitchError("No active subscription")
            return self._current

    def release(self) -> None:
        with self._lock:
            self._released = True
            self._current = None

    @property
    def released(self) -> bool:
        return self._released


@contextmanager
def scoped_context(
    subscription_service: SubscriptionService,
    initial: Optional[str] = None,
    label: str = "",
) -> Iterator[SubscriptionContext]:
    """Create a context handle for one pipeline run and release it afterwards."""
    context = SubscriptionContext(subscription_service, initial=initial, label=label)
    try:
        yield context
    finally:
        context.release()
