from decimal import Decimal

from app.services.email_service import EmailService
from app.services.notification_service import NotificationDispatcher, OrderConfirmation


def _confirmation() -> OrderConfirmation:
    return OrderConfirmation(
        customer_email="casey@example.com",
        customer_name="Casey Tremblay",
        order_id="0b7c1b9e-0000-4000-8000-000000000001",
        order_number="ORD-20261018-ABCDEF12",
        total=Decimal("113.00"),
        items=[{"name": "Widget", "quantity": 5, "unit_price": "20.00", "line_total": "100.00"}],
        shipping_address={"street": "100 King St W", "city": "Toronto", "province": "ON"},
    )


class RecordingEmail:
    def __init__(self):
        self.calls = []

    def send_order_confirmation_email(self, **kwargs):
        self.calls.append(kwargs)
        return True


async def test_dispatch_runs_in_background():
    email = RecordingEmail()
    dispatcher = NotificationDispatcher(email_service=email)

    task = dispatcher.dispatch_order_confirmation(_confirmation())
    await NotificationDispatcher.drain()

    assert task.done()
    assert task.result() is True
    assert email.calls[0]["order_number"] == "ORD-20261018-ABCDEF12"
    assert email.calls[0]["total_amount"] == Decimal("113.00")


async def test_unconfigured_smtp_is_logged_not_raised(caplog):
    dispatcher = NotificationDispatcher(email_service=EmailService(smtp_user="", smtp_password=""))

    sent = await dispatcher.send_order_confirmation(_confirmation())

    assert sent is False
    assert "was not sent" in caplog.text


async def test_email_exception_is_swallowed(caplog):
    class Exploding:
        def send_order_confirmation_email(self, **kwargs):
            raise OSError("network unreachable")

    sent = await NotificationDispatcher(email_service=Exploding()).send_order_confirmation(_confirmation())

    assert sent is False
    assert "network unreachable" in caplog.text
