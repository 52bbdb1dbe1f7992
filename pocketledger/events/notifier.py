"""
Change Notifier

Synchronous observer registry. Repositories publish one ChangeEvent per
successful mutation; every registered observer receives it before the
mutating call returns.

RULES:
1. Delivery is synchronous - no queue, no dropped events
2. An observer removed during delivery receives nothing further
3. Observers must NOT mutate a repository while an event is being delivered.
   Follow-up work goes through `call_later`, which runs once the outermost
   mutation has returned, so it never sees a half-finished cascade.
4. An observer or deferred callback that raises does not stop the others;
   failures are logged and re-raised together as NotificationFailedError
"""

from collections import deque
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator, Optional, Union

import structlog

from pocketledger.models.events import ChangeEvent
from pocketledger.services.storage.interface import (
    NotificationFailedError,
    ReentrantMutationError,
)


Observer = Callable[[ChangeEvent], None]


class Subscription:
    """Handle returned by `ChangeNotifier.subscribe`."""

    def __init__(
        self,
        notifier: "ChangeNotifier",
        observer: Observer,
        families: Optional[frozenset[str]],
    ):
        self._notifier = notifier
        self.observer = observer
        self.families = families
        self.active = True

    def wants(self, event: ChangeEvent) -> bool:
        return self.families is None or event.family in self.families

    def cancel(self) -> bool:
        """Deregister. Safe to call more than once."""
        return self._notifier.unsubscribe(self)


class ChangeNotifier:
    """
    Delivers change events to observers.

    One notifier is shared by every repository of a ledger, so the
    reentrancy guard covers cross-family mutations too.
    """

    def __init__(self):
        self._subscriptions: list[Subscription] = []
        self._delivering = False
        self._depth = 0
        self._deferred: deque[Callable[[], None]] = deque()
        self._logger = structlog.get_logger(__name__)

    @property
    def delivering(self) -> bool:
        """True while observers are being called."""
        return self._delivering

    @property
    def in_mutation(self) -> bool:
        """True while any mutation scope is open."""
        return self._depth > 0

    @property
    def observer_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self,
        observer: Observer,
        families: Optional[Iterable[str]] = None,
    ) -> Subscription:
        """
        Register an observer.

        Args:
            observer: Called with each ChangeEvent
            families: Only deliver events for these families (all if None)
        """
        subscription = Subscription(
            self,
            observer,
            frozenset(families) if families is not None else None,
        )
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, target: Union[Subscription, Observer]) -> bool:
        """
        Deregister by subscription handle or by observer callable.

        Returns:
            True if something was removed
        """
        removed = False
        for subscription in list(self._subscriptions):
            # Equality, not identity: each access to a bound method
            # builds a new object
            if subscription is target or subscription.observer == target:
                subscription.active = False
                self._subscriptions.remove(subscription)
                removed = True
        return removed

    def call_later(self, callback: Callable[[], None]) -> None:
        """
        Run callback once the outermost mutation has returned.

        Outside of any mutation or delivery it runs immediately.
        """
        if not self._delivering and not self.in_mutation:
            callback()
            return
        self._deferred.append(callback)

    def ensure_idle(self) -> None:
        """
        Raises:
            ReentrantMutationError: If called from inside an observer
        """
        if self._delivering:
            raise ReentrantMutationError(
                "Repositories cannot be mutated while a change is being "
                "delivered; use notifier.call_later()"
            )

    @contextmanager
    def mutation(self) -> Iterator[None]:
        """
        Scope one logical mutation, including every nested change it causes.

        Deferred callbacks run when the outermost scope exits. Their
        failures are raised as NotificationFailedError, or attached to the
        exception already leaving the scope so that it is still the one
        the caller sees.
        """
        self._depth += 1
        try:
            yield
        except BaseException as e:
            self._depth -= 1
            if not self.in_mutation:
                self._attach_errors(e, self._run_deferred())
            raise
        self._depth -= 1
        if not self.in_mutation:
            errors = self._run_deferred()
            if errors:
                raise NotificationFailedError(
                    f"{len(errors)} deferred callback(s) failed",
                    errors=errors,
                )

    def publish(self, event: ChangeEvent) -> None:
        """
        Deliver event to every interested, still-registered observer.

        Raises:
            NotificationFailedError: If any observer raised
        """
        self.ensure_idle()

        with self.mutation():
            errors: list[BaseException] = []
            self._delivering = True
            try:
                for subscription in list(self._subscriptions):
                    # Snapshot iteration; re-check in case an earlier observer
                    # deregistered this one
                    if not subscription.active or not subscription.wants(event):
                        continue
                    try:
                        subscription.observer(event)
                    except Exception as e:
                        self._logger.error(
                            "observer_failed",
                            family=event.family,
                            kind=event.kind.value,
                            observer=repr(subscription.observer),
                            error=str(e),
                        )
                        errors.append(e)
            finally:
                self._delivering = False

            if errors:
                raise NotificationFailedError(
                    f"{len(errors)} observer(s) failed handling "
                    f"{event.kind.value} on {event.family}",
                    errors=errors,
                )

    def _run_deferred(self) -> list[BaseException]:
        """Drain the deferred queue, collecting failures."""
        errors: list[BaseException] = []
        while self._deferred and not self._delivering and not self.in_mutation:
            callback = self._deferred.popleft()
            try:
                callback()
            except Exception as e:
                self._logger.error(
                    "deferred_callback_failed",
                    callback=repr(callback),
                    error=str(e),
                )
                errors.append(e)
        return errors

    @staticmethod
    def _attach_errors(exc: BaseException, errors: list[BaseException]) -> None:
        if not errors:
            return
        if isinstance(exc, NotificationFailedError):
            exc.errors.extend(errors)
        elif isinstance(exc.__cause__, NotificationFailedError):
            exc.__cause__.errors.extend(errors)
        elif exc.__cause__ is None:
            exc.__cause__ = NotificationFailedError(
                f"{len(errors)} deferred callback(s) failed",
                errors=errors,
            )
