"""
Outbound customer and admin notifications.

Email goes through the Resend HTTP API, WhatsApp through the Twilio
Messages API, both over aiohttp. Every send_* method returns True on
success and False on any delivery failure (logged). Notifications are
best effort: callers never depend on them for order state.
"""

import asyncio
import logging

import aiohttp

import config
from models.booking import BookingDTO
from models.order import OrderDTO
from models.orderItem import OrderItemDTO
from models.user import UserDTO
from utils.html_escape import safe_html, safe_url

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
TWILIO_API_URL = "https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json"


def format_amount(amount: int | None, currency) -> str:
    """Minor units -> '64.99 USD'."""
    code = getattr(currency, "value", currency) or ""
    return f"{(amount or 0) / 100:.2f} {code}".strip()


class NotificationService:

    @staticmethod
    def _timeout() -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=config.NOTIFICATION_TIMEOUT_SECONDS)

    @staticmethod
    async def send_email(to: str, subject: str, html_body: str) -> bool:
        if not config.RESEND_API_KEY:
            logger.debug("Email not sent: RESEND_API_KEY not configured")
            return False
        headers = {
            "Authorization": f"Bearer {config.RESEND_API_KEY}",
            "Content-Type": "application/json",
        }
        payload = {"from": config.EMAIL_FROM, "to": [to], "subject": subject, "html": html_body}
        try:
            async with aiohttp.ClientSession(timeout=NotificationService._timeout()) as http:
                async with http.post(RESEND_API_URL, json=payload, headers=headers) as response:
                    if response.status >= 400:
                        body = await response.text()
                        logger.error(f"❌ Resend rejected email '{subject}': HTTP {response.status} {body[:200]}")
                        return False
            logger.info(f"📧 Email '{subject}' sent")
            return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"❌ Email '{subject}' failed: {type(e).__name__}: {e}")
            return False

    @staticmethod
    async def send_whatsapp(to: str, body: str) -> bool:
        if not (config.TWILIO_ACCOUNT_SID and config.TWILIO_AUTH_TOKEN and config.TWILIO_WHATSAPP_FROM):
            logger.debug("WhatsApp not sent: Twilio not configured")
            return False
        url = TWILIO_API_URL.format(account_sid=config.TWILIO_ACCOUNT_SID)
        form = {
            "From": f"whatsapp:{config.TWILIO_WHATSAPP_FROM}",
            "To": f"whatsapp:{to}",
            "Body": body,
        }
        auth = aiohttp.BasicAuth(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)
        try:
            async with aiohttp.ClientSession(timeout=NotificationService._timeout()) as http:
                async with http.post(url, data=form, auth=auth) as response:
                    if response.status >= 400:
                        text = await response.text()
                        logger.error(f"❌ Twilio rejected WhatsApp message: HTTP {response.status} {text[:200]}")
                        return False
            logger.info("💬 WhatsApp message sent")
            return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"❌ WhatsApp message failed: {type(e).__name__}: {e}")
            return False

    @staticmethod
    async def send_to_admins(message: str) -> int:
        """Returns the number of admins reached."""
        delivered = 0
        for number in config.ADMIN_WHATSAPP_NUMBERS:
            if await NotificationService.send_whatsapp(number, message):
                delivered += 1
        return delivered

    @staticmethod
    def build_order_confirmation_email(order: OrderDTO, items: list[OrderItemDTO],
                                       user: UserDTO | None) -> tuple[str, str]:
        subject = f"Order #{order.id} confirmed"
        greeting = f"Hi {safe_html(user.name)}," if user and user.name else "Hi,"
        rows = "".join(
            f"<tr><td>{safe_html(item.title)}</td><td>{item.quantity}</td>"
            f"<td>{format_amount(item.price * item.quantity, order.currency)}</td></tr>"
            for item in items
        )
        orders_url = safe_url(f"{config.BASE_URL}/account/orders/{order.id}")
        body = (
            f"<p>{greeting}</p>"
            f"<p>Thank you for your purchase. Your payment for order #{order.id} was received.</p>"
            f"<table><tr><th>Item</th><th>Qty</th><th>Amount</th></tr>{rows}</table>"
            f"<p><strong>Total: {format_amount(order.total_amount, order.currency)}</strong></p>"
            f"<p><a href=\"{orders_url}\">View your order</a></p>"
        )
        return subject, body

    @staticmethod
    async def order_confirmation(order: OrderDTO, items: list[OrderItemDTO], user: UserDTO | None) -> bool:
        if not order.contact_email:
            return False
        subject, body = NotificationService.build_order_confirmation_email(order, items, user)
        return await NotificationService.send_email(order.contact_email, subject, body)

    @staticmethod
    async def booking_confirmation_whatsapp(booking: BookingDTO, event_title: str, user: UserDTO | None) -> bool:
        if user is None or not user.phone:
            return False
        message = (
            f"✅ Your booking for {event_title} is confirmed "
            f"({booking.attendees} attendee{'s' if booking.attendees != 1 else ''}). See you there!"
        )
        return await NotificationService.send_whatsapp(user.phone, message)

    @staticmethod
    async def admin_new_order(order: OrderDTO, items: list[OrderItemDTO]) -> int:
        lines = "\n".join(f"- {item.quantity}x {item.title}" for item in items)
        message = (
            f"🛒 New paid order #{order.id}\n"
            f"{lines}\n"
            f"Total: {format_amount(order.total_amount, order.currency)}"
        )
        return await NotificationService.send_to_admins(message)

    @staticmethod
    async def admin_alert(message: str) -> int:
        return await NotificationService.send_to_admins(f"⚠️ {message}")
