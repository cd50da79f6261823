import logging

from ayursutra.lib.local_notifier import (
    LocalNotifier,
    LogNotifier,
    NotificationPermission,
    NullNotifier,
)
from ayursutra.models.notification import NotificationRecord

from tests.conftest import StubNotifier


async def test_null_notifier_denies_and_shows_nothing():
    notifier = NullNotifier()
    assert await notifier.request_permission() == NotificationPermission.DENIED
    assert notifier.show(NotificationRecord(message="hi")) is False


def test_base_display_is_a_noop_even_when_granted(caplog):
    for notifier in (LocalNotifier(), NullNotifier()):
        notifier.permission = NotificationPermission.GRANTED
        with caplog.at_level(logging.WARNING):
            assert notifier.show(NotificationRecord(message="hi")) is True
    assert "Could not display" not in caplog.text


async def test_permission_is_asked_only_once():
    notifier = StubNotifier(answer=NotificationPermission.DENIED)
    await notifier.request_permission()
    await notifier.request_permission()
    assert notifier.requests == 1
    assert not notifier.granted


async def test_log_notifier_writes_structured_line(caplog):
    notifier = LogNotifier()
    await notifier.request_permission()
    record = NotificationRecord(title="Booking Update", message="Confirmed", type="booking")

    with caplog.at_level(logging.INFO, logger="ayursutra.lib.local_notifier"):
        assert notifier.show(record) is True

    shown = [r for r in caplog.records if getattr(r, "notification_id", None) == record.id]
    assert len(shown) == 1
    assert shown[0].notification_type == "booking"
    assert "Booking Update: Confirmed" in shown[0].getMessage()


def test_display_failure_is_logged_not_raised(caplog):
    class Broken(StubNotifier):
        def _display(self, record):
            raise OSError("no display")

    notifier = Broken()
    notifier.permission = NotificationPermission.GRANTED
    with caplog.at_level(logging.WARNING):
        assert notifier.show(NotificationRecord(message="hi")) is False
    assert "no display" in caplog.text
