# src/infrastructure/notifications/mailer.py

import logging
import os
import smtplib
from datetime import date, datetime
from email.message import EmailMessage
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parents[2] / "templates" / "emails"

DEFAULT_EMAIL_FROM = "Rutland Farm Park <bookings@rutlandfarmpark.co.uk>"
DEFAULT_CONTACT_EMAIL = "info@rutlandfarmpark.com"
VENUE_NAME = "Rutland Farm Park"


def pounds(amount: int) -> str:
    return f"£{amount / 100:.2f}"


def long_date(value: date) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return f"{value:%A} {value.day} {value:%B %Y}"


def build_template_environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html"]),
    )
    env.filters["pounds"] = pounds
    env.filters["long_date"] = long_date
    return env


class SmtpMailer:
    """Renders confirmation emails and sends them over SMTP."""

    def __init__(
        self,
        host: str = "smtp.gmail.com",
        port: int = 587,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        sender: str = DEFAULT_EMAIL_FROM,
        contact_email: str = DEFAULT_CONTACT_EMAIL,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.contact_email = contact_email
        self.templates = build_template_environment()

    @classmethod
    def from_env(cls) -> "SmtpMailer":
        return cls(
            host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
            port=int(os.getenv("SMTP_PORT", "587")),
            username=os.getenv("SMTP_USER", ""),
            password=os.getenv("SMTP_PASS", ""),
            use_tls=os.getenv("SMTP_USE_TLS", "true").lower() == "true",
            sender=os.getenv("EMAIL_FROM", DEFAULT_EMAIL_FROM),
            contact_email=os.getenv("EMAIL_NOTIFICATION_TO", DEFAULT_CONTACT_EMAIL),
        )

    def render(self, template_name: str, **context) -> str:
        template = self.templates.get_template(template_name)
        return template.render(
            venue_name=VENUE_NAME,
            contact_email=self.contact_email,
            **context,
        )

    def send_booking_confirmation(self, booking) -> bool:
        html = self.render("booking_confirmation.html", booking=booking)
        return self.send(
            to=booking.customer_email,
            subject=f"Booking Confirmation - {booking.booking_reference}",
            html=html,
        )

    def send_order_confirmation(self, order, vouchers=(), adoptions=()) -> bool:
        html = self.render(
            "order_confirmation.html",
            order=order,
            vouchers=list(vouchers),
            adoptions=list(adoptions),
        )
        return self.send(
            to=order.customer_email,
            subject=f"Order Confirmation - {order.order_reference}",
            html=html,
        )

    def send(self, to: str, subject: str, html: str) -> bool:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content("Please view this email in an HTML-capable mail client.")
        message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send email %r to %s", subject, to)
            return False

        logger.info("Sent email %r to %s", subject, to)
        return True
