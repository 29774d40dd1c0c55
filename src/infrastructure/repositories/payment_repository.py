# src/infrastructure/repositories/payment_repository.py

from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import select

from src.infrastructure.db.models import Payment, PaymentWebhookEvent


class PaymentRepository:

    def __init__(self, db: Session):
        self.db = db

    def record_payment(
        self,
        order_id: str,
        method: str,
        amount: Decimal,
        created_at: datetime,
        provider_payment_id: str | None = None,
    ) -> Payment:
        payment = Payment(
            order_id=order_id,
            method=method,
            amount=amount,
            status="SUCCESS",
            provider_payment_id=provider_payment_id,
            created_at=created_at,
        )
        self.db.add(payment)
        return payment

    def get_webhook_event(self, provider: str, payment_id: str) -> PaymentWebhookEvent | None:
        stmt = (
            select(PaymentWebhookEvent)
            .where(PaymentWebhookEvent.provider == provider)
            .where(PaymentWebhookEvent.payment_id == payment_id)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def record_webhook_event(
        self,
        provider: str,
        payment_id: str,
        order_id: str,
        payload_hash: str,
    ) -> PaymentWebhookEvent:
        event = PaymentWebhookEvent(
            provider=provider,
            payment_id=payment_id,
            order_id=order_id,
            payload_hash=payload_hash,
            status="PROCESSED",
        )
        self.db.add(event)
        return event
