"""
Listener registration with detachable subscriptions.
"""

from typing import Callable, List


class Subscription:
    """Handle returned by ``subscribe``; ``detach()`` stops further deliveries."""

    def __init__(self, owner: "Observable", listener: Callable):
        self._owner = owner
        self.listener = listener
        self.active = True

    def detach(self) -> None:
        if self.active:
            self.active = False
            self._owner._subscriptions.remove(self)


class Observable:
    """Mixin for client state that consumers watch.

    Work that settles after a consumer detached still updates the object's own
    state, but never reaches the consumer.
    """

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def subscribe(self, listener: Callable) -> Subscription:
        subscription = Subscription(self, listener)
        self._subscriptions.append(subscription)
        return subscription

    def _notify(self) -> None:
        for subscription in list(self._subscriptions):
            if subscription.active:
                subscription.listener(self)
