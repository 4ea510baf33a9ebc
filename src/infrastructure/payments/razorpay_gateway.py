# src/infrastructure/payments/razorpay_gateway.py

"""
Hosted payments through Razorpay Payment Links.

A payment link is the hosted checkout page for one booking or order. The
record id, reference and record type travel in the link's ``notes`` and come
back on every webhook, which is how reconciliation finds the record.
"""

import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Sequence

import razorpay
from razorpay.errors import SignatureVerificationError

from src.domain.exceptions import InvalidSignatureError, PaymentSessionError

logger = logging.getLogger(__name__)

PROVIDER = "RAZORPAY"
SIGNATURE_HEADER = "X-Razorpay-Signature"
EVENT_ID_HEADER = "X-Razorpay-Event-Id"

EVENT_COMPLETED = "completed"
EVENT_EXPIRED = "expired"
EVENT_IGNORED = "ignored"

_EVENT_KINDS = {
    "payment_link.paid": EVENT_COMPLETED,
    "payment_link.expired": EVENT_EXPIRED,
    "payment_link.cancelled": EVENT_EXPIRED,
}

# Razorpay rejects links that expire less than 15 minutes out.
MIN_EXPIRY_MINUTES = 16


@dataclass(frozen=True)
class HostedSession:
    id: str
    url: str


@dataclass(frozen=True)
class SessionLine:
    name: str
    unit_amount: int
    quantity: int


@dataclass(frozen=True)
class PaymentEvent:
    event_type: str
    kind: str
    event_id: str | None = None
    session_id: str | None = None
    payment_id: str | None = None
    notes: dict = field(default_factory=dict)


def _describe(lines: Sequence[SessionLine], heading: str) -> str:
    parts = [heading]
    for line in lines:
        parts.append(f"{line.quantity} x {line.name} @ £{line.unit_amount / 100:.2f}")
    # Razorpay caps descriptions at 2048 characters.
    return "\n".join(parts)[:2048]


class RazorpayPaymentGateway:

    provider = PROVIDER

    def __init__(
        self,
        key_id: str | None = None,
        key_secret: str | None = None,
        webhook_secret: str | None = None,
        currency: str = "GBP",
        expiry_minutes: int = 30,
        client: razorpay.Client | None = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.currency = currency
        self.expiry_minutes = max(expiry_minutes, MIN_EXPIRY_MINUTES)
        self._client = client

    @classmethod
    def from_env(cls) -> "RazorpayPaymentGateway":
        return cls(
            key_id=os.getenv("RAZORPAY_KEY_ID"),
            key_secret=os.getenv("RAZORPAY_KEY_SECRET"),
            webhook_secret=os.getenv("RAZORPAY_WEBHOOK_SECRET"),
            currency=os.getenv("PAYMENT_CURRENCY", "GBP"),
            expiry_minutes=int(os.getenv("PAYMENT_LINK_EXPIRY_MINUTES", "30")),
        )

    @property
    def client(self) -> razorpay.Client:
        if self._client is None:
            if self.key_id and self.key_secret:
                self._client = razorpay.Client(auth=(self.key_id, self.key_secret))
            else:
                self._client = razorpay.Client()
        return self._client

    def create_hosted_session(
        self,
        amount: int,
        reference: str,
        heading: str,
        lines: Sequence[SessionLine],
        customer_name: str,
        customer_email: str,
        customer_phone: str | None,
        notes: dict,
        success_url: str,
        cancel_url: str,
    ) -> HostedSession:
        if not self.key_id or not self.key_secret:
            logger.error(
                "Razorpay keys not configured. Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET."
            )
            raise PaymentSessionError("Razorpay keys not configured")

        customer = {"name": customer_name, "email": customer_email}
        if customer_phone:
            customer["contact"] = customer_phone

        request = {
            "amount": amount,
            "currency": self.currency,
            "accept_partial": False,
            "reference_id": reference,
            "description": _describe(lines, heading),
            "customer": customer,
            "notify": {"sms": False, "email": False},
            "reminder_enable": False,
            "notes": {**notes, "cancel_url": cancel_url},
            "callback_url": success_url,
            "callback_method": "get",
            "expire_by": int(time.time()) + self.expiry_minutes * 60,
        }

        try:
            link = self.client.payment_link.create(request)
        except Exception as exc:
            logger.exception("Razorpay payment link creation failed for %s", reference)
            raise PaymentSessionError(str(exc)) from exc

        link_id = link.get("id")
        link_url = link.get("short_url")
        if not link_id or not link_url:
            logger.error("Razorpay returned an incomplete payment link for %s: %s", reference, link)
            raise PaymentSessionError("Incomplete payment link response")

        return HostedSession(id=link_id, url=link_url)

    def verify_webhook(self, body: str, signature: str | None) -> None:
        if not signature:
            raise InvalidSignatureError("Missing signature.")
        if not self.webhook_secret:
            logger.error("RAZORPAY_WEBHOOK_SECRET is not set; rejecting webhook.")
            raise InvalidSignatureError("Webhook secret not configured.")

        try:
            self.client.utility.verify_webhook_signature(body, signature, self.webhook_secret)
        except SignatureVerificationError as exc:
            raise InvalidSignatureError("Invalid signature.") from exc

    def parse_event(self, body: str, event_id: str | None = None) -> PaymentEvent:
        try:
            data = json.loads(body)
        except ValueError:
            logger.warning("Verified webhook body is not JSON; ignoring.")
            return PaymentEvent(event_type="unknown", kind=EVENT_IGNORED, event_id=event_id)

        event_type = data.get("event") or "unknown"
        payload = data.get("payload") or {}
        link = (payload.get("payment_link") or {}).get("entity") or {}
        payment = (payload.get("payment") or {}).get("entity") or {}

        return PaymentEvent(
            event_type=event_type,
            kind=_EVENT_KINDS.get(event_type, EVENT_IGNORED),
            event_id=event_id,
            session_id=link.get("id"),
            payment_id=payment.get("id"),
            notes=link.get("notes") or {},
        )
