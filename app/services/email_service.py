"""Transactional email over SMTP. Order confirmations only."""
import logging
import smtplib
from dataclasses import dataclass
from decimal import Decimal
from email.message import EmailMessage
from email.utils import formataddr
from html import escape
from typing import Dict, List

logger = logging.getLogger(__name__)


@dataclass
class EmailService:
    """SMTP sender. Unconfigured credentials disable sending instead of raising."""

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = "Order Desk"
    timeout: float = 10.0

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    @property
    def sender(self) -> str:
        return formataddr((self.from_name, self.from_email or self.smtp_user))

    def send_email(self, to_email: str, subject: str, html_content: str, text_content: str = "") -> bool:
        """Send a multipart (text + HTML) message with STARTTLS. Returns False on any delivery problem."""
        if not self.is_configured:
            logger.warning(f"SMTP credentials missing, skipping email to {to_email}")
            return False

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = to_email
        message.set_content(text_content or subject)
        message.add_alternative(html_content, subtype="html")

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.send_message(message)
        except smtplib.SMTPAuthenticationError:
            logger.error(f"SMTP login rejected for {self.smtp_user}")
            return False
        except (smtplib.SMTPException, OSError) as e:
            # OSError covers refused connections and socket timeouts
            logger.error(f"Could not deliver email to {to_email}: {e}")
            return False

        logger.info(f"Email '{subject}' sent to {to_email}")
        return True

    def send_order_confirmation_email(
        self,
        to_email: str,
        customer_name: str,
        order_number: str,
        total_amount: Decimal,
        items: List[Dict],
        shipping_address: Dict,
    ) -> bool:
        """
        Send the order confirmation.

        Args:
            items: dicts with name, quantity, line_total
            shipping_address: street, city, province, postal_code
        """
        subject = f"Order Confirmed - {order_number}"

        rows = "".join(
            f"<tr><td>{escape(str(item.get('name', 'Product')))}</td>"
            f"<td style=\"text-align: center;\">{item.get('quantity', 1)}</td>"
            f"<td style=\"text-align: right;\">${Decimal(str(item.get('line_total', 0))):,.2f}</td></tr>"
            for item in items
        )
        address = ", ".join(
            escape(str(shipping_address[key]))
            for key in ("street", "city", "province", "postal_code")
            if shipping_address.get(key)
        )

        html_content = f"""
        <html>
        <body style="font-family: Arial, sans-serif; color: #333;">
            <h2>Thank you for your order, {escape(customer_name)}!</h2>
            <p>Your order <strong>{escape(order_number)}</strong> has been received and is awaiting approval.</p>
            <table style="width: 100%; border-collapse: collapse;">
                <tr><th style="text-align: left;">Item</th><th>Qty</th><th style="text-align: right;">Total</th></tr>
                {rows}
            </table>
            <p><strong>Order total: ${Decimal(total_amount):,.2f}</strong></p>
            <p>Shipping to: {address}</p>
        </body>
        </html>
        """
        text_content = (
            f"Thank you for your order, {customer_name}.\n"
            f"Order {order_number} total: ${Decimal(total_amount):,.2f}\n"
            f"Shipping to: {address}\n"
        )
        return self.send_email(to_email, subject, html_content, text_content)


def get_email_service() -> EmailService:
    """Get configured email service instance."""
    from app.config import settings

    return EmailService(
        smtp_host=settings.SMTP_HOST,
        smtp_port=settings.SMTP_PORT,
        smtp_user=settings.SMTP_USER,
        smtp_password=settings.SMTP_PASSWORD,
        from_email=settings.SMTP_FROM_EMAIL,
        from_name=settings.SMTP_FROM_NAME,
    )
