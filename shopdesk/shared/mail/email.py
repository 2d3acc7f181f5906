"""
Transactional email.

Sending is best-effort: the service is disabled when SMTP is not configured,
and delivery failures are logged, never raised. Callers schedule these
coroutines with ``BackgroundTasks`` so the triggering request never waits on SMTP.
"""
import asyncio
import html
import re
import smtplib
from email.message import EmailMessage
from typing import Any

import structlog

from shopdesk.shared.config import settings

logger = structlog.get_logger(__name__)


def format_currency(value: float | None) -> str:
    amount = f"{float(value or 0):,.2f}"
    # 1,234.56 -> 1.234,56
    return "R$ " + amount.replace(",", "_").replace(".", ",").replace("_", ".")


def strip_html(markup: str) -> str:
    return re.sub(r"\s{2,}", " ", re.sub(r"<[^>]*>", "", markup)).strip()


class EmailService:
    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        user: str | None = None,
        password: str | None = None,
        secure: bool | None = None,
        sender: str | None = None,
    ):
        self.host = host if host is not None else settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.user = user if user is not None else settings.SMTP_USER
        self.password = password if password is not None else settings.SMTP_PASS
        self.secure = settings.SMTP_SECURE if secure is None else secure
        self.sender = sender or settings.MAIL_FROM
        self.enabled = bool(self.host and self.user and self.password)

        if not self.enabled:
            logger.warning("email_disabled", reason="SMTP not configured")

    def _deliver(self, message: EmailMessage) -> None:
        if self.secure:
            with smtplib.SMTP_SSL(self.host, self.port) as server:
                server.login(self.user, self.password)
                server.send_message(message)
        else:
            with smtplib.SMTP(self.host, self.port) as server:
                server.starttls()
                server.login(self.user, self.password)
                server.send_message(message)

    async def send_mail(self, to: str, subject: str, html_body: str, text: str | None = None) -> bool:
        if not self.enabled:
            logger.info("email_skipped", to=to, subject=subject)
            return False

        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text or strip_html(html_body))
        message.add_alternative(html_body, subtype="html")

        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("email_failed", to=to, subject=subject, error=str(e))
            return False

        logger.info("email_sent", to=to, subject=subject)
        return True

    @staticmethod
    def _item_lines(items: list[dict[str, Any]] | None, with_price: bool = True) -> str:
        lines = []
        for item in items or []:
            quantity = item.get("quantity") or 1
            title = html.escape(str(item.get("title") or item.get("name") or "Product"))
            if with_price:
                lines.append(f"<li>{quantity}x {title} - {format_currency((item.get('price') or 0) * quantity)}</li>")
            else:
                lines.append(f"<li>{quantity}x {title}</li>")
        return f"<ul>{''.join(lines)}</ul>" if lines else ""

    async def send_order_confirmation(self, order) -> bool:
        if not order.customer_email:
            return False

        subject = f"We received your order #{order.order_number}"
        body = (
            f"<p>Hello {html.escape(order.customer_name)},</p>"
            f"<p>We received your order <strong>#{order.order_number}</strong>.</p>"
            f"{self._item_lines(order.items)}"
            f"<p>Total: <strong>{format_currency(order.total)}</strong></p>"
            "<p>As soon as the payment is confirmed we will send another email releasing your downloads.</p>"
            f"<p>{html.escape(settings.STORE_NAME)}</p>"
        )
        return await self.send_mail(order.customer_email, subject, body)

    async def send_payment_confirmation(self, order) -> bool:
        if not order.customer_email:
            return False

        subject = f"Payment confirmed - Order #{order.order_number}"
        body = (
            f"<p>Hello {html.escape(order.customer_name)},</p>"
            f"<p>We received the payment for order <strong>#{order.order_number}</strong>. "
            "Your digital products are now available for download.</p>"
            f"<p>Use {html.escape(order.customer_email)} to access your downloads.</p>"
            f"<p>Total paid: <strong>{format_currency(order.total)}</strong></p>"
            f"{self._item_lines(order.items, with_price=False)}"
            f"<p>{html.escape(settings.STORE_NAME)}</p>"
        )
        return await self.send_mail(order.customer_email, subject, body)


_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
