from .ports import Notification, NotificationDisplay


class ConsoleNotificationDisplay(NotificationDisplay):
    """Adapter: print to console, keep what was shown in memory. For dev/testing."""

    def __init__(self):
        self.shown: list[Notification] = []

    async def show(self, notification: Notification) -> None:
        self.shown.append(notification)

        print(f"\n{'=' * 60}")
        print(f"  {notification.title}")
        if notification.data:
            print(f"  → {notification.data}")
        print(f"{'=' * 60}")
        if notification.body:
            print(notification.body)
        for action in notification.actions:
            print(f"  [{action.action}] {action.title}")
        print(f"{'=' * 60}\n")
