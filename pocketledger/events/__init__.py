"""Change notification package."""

from pocketledger.events.notifier import ChangeNotifier, Observer, Subscription

__all__ = ["ChangeNotifier", "Observer", "Subscription"]
