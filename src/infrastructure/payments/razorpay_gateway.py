# src/infrastructure/payments/razorpay_gateway.py

import logging
import os
from dataclasses import dataclass
from decimal import Decimal

import razorpay

logger = logging.getLogger(__name__)

PROVIDER = "RAZORPAY"


class PaymentGatewayNotConfigured(RuntimeError):
    pass


class InvalidPaymentSignature(Exception):
    pass


@dataclass(frozen=True)
class ProviderOrder:
    provider_order_id: str
    amount: int
    currency: str
    key_id: str


def to_minor_units(amount: Decimal) -> int:
    """Provider amounts are integers in the smallest currency unit (paise)."""
    return int((Decimal(amount) * 100).to_integral_value())


class RazorpayGateway:
    """
    Thin wrapper over the Razorpay SDK.
    Never call it while a database transaction holds seat locks.
    """

    def __init__(
        self,
        key_id: str | None = None,
        key_secret: str | None = None,
        currency: str | None = None,
    ):
        self.key_id = key_id or os.getenv("RAZORPAY_KEY_ID")
        self.key_secret = key_secret or os.getenv("RAZORPAY_KEY_SECRET")
        self.currency = currency or os.getenv("PAYMENT_CURRENCY", "INR")

    def _client(self):
        if not self.key_id or not self.key_secret:
            raise PaymentGatewayNotConfigured(
                "Razorpay keys not configured. Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET."
            )
        return razorpay.Client(auth=(self.key_id, self.key_secret))

    def create_order(self, receipt: str, amount: Decimal) -> ProviderOrder:
        minor_amount = to_minor_units(amount)
        order = self._client().order.create(
            {
                "amount": minor_amount,
                "currency": self.currency,
                "receipt": receipt,
            }
        )
        logger.info(
            "Provider order created. receipt=%s provider_order_id=%s amount=%s",
            receipt,
            order.get("id"),
            minor_amount,
        )
        return ProviderOrder(
            provider_order_id=order.get("id"),
            amount=minor_amount,
            currency=self.currency,
            key_id=self.key_id,
        )

    def verify_signature(
        self,
        provider_order_id: str,
        payment_id: str,
        signature: str,
    ) -> None:
        try:
            self._client().utility.verify_payment_signature(
                {
                    "razorpay_order_id": provider_order_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            )
        except razorpay.errors.SignatureVerificationError as exc:
            logger.warning(
                "Invalid payment signature. provider_order_id=%s payment_id=%s",
                provider_order_id,
                payment_id,
            )
            raise InvalidPaymentSignature("Invalid payment signature") from exc
