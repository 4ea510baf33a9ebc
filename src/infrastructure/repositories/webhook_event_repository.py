# src/infrastructure/repositories/webhook_event_repository.py

import hashlib

from sqlalchemy.orm import Session
from sqlalchemy import select

from src.infrastructure.db.models import PaymentWebhookEvent


def hash_payload(body: str) -> str:
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


class WebhookEventRepository:

    def __init__(self, db: Session):
        self.db = db

    def get(self, provider: str, event_id: str) -> PaymentWebhookEvent | None:
        stmt = (
            select(PaymentWebhookEvent)
            .where(PaymentWebhookEvent.provider == provider)
            .where(PaymentWebhookEvent.event_id == event_id)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def record(
        self,
        provider: str,
        event_id: str,
        event_type: str,
        record_type: str | None,
        record_id: str | None,
        body: str,
        status: str = "PROCESSED",
    ) -> PaymentWebhookEvent:
        event = PaymentWebhookEvent(
            provider=provider,
            event_id=event_id,
            event_type=event_type,
            record_type=record_type,
            record_id=record_id,
            payload_hash=hash_payload(body),
            status=status,
        )
        self.db.add(event)
        return event
