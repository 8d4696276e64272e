"""
Payment gateway capability.

PaymentGateway — what the coordinator awaits; provider specifics live
behind it. Methods may raise; the coordinator lifts every call with
catching_async into a DEPENDENCY failure.

HmacGateway — deterministic in-process gateway. Signatures are
HMAC-SHA256 over `{intent_id}|{reference_id}`.
"""

from __future__ import annotations

import hashlib
import hmac
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from orderflow.payment._types import PaymentMethod, RefundStatus


# ═══════════════════════════════════════════════════════════════════════════════
# Gateway Data
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class GatewayIntent:
    gateway: str
    intent_id: str


@dataclass(frozen=True, slots=True)
class GatewayProof:
    """What the client hands back after paying: ids plus the gateway's signature."""

    intent_id: str
    reference_id: str
    signature: str


@dataclass(frozen=True, slots=True)
class GatewayRefund:
    transaction_id: str
    status: RefundStatus
    message: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentGateway(Protocol):
    name: str

    async def create_intent(
        self,
        payment_id: str,
        amount: Decimal,
        currency: str,
        method: PaymentMethod,
    ) -> GatewayIntent: ...

    async def verify_signature(self, proof: GatewayProof) -> bool: ...

    async def refund(self, reference_id: str, amount: Decimal, reason: str) -> GatewayRefund: ...


# ═══════════════════════════════════════════════════════════════════════════════
# HMAC Gateway
# ═══════════════════════════════════════════════════════════════════════════════


class HmacGateway:
    """
    Local gateway for development and tests.

    Example:
        gateway = HmacGateway(secret="test")
        intent = await gateway.create_intent("pay_1", Decimal("236"), "INR", PaymentMethod.UPI)
        proof = GatewayProof(intent.intent_id, "pay_ref_1", gateway.sign(intent.intent_id, "pay_ref_1"))
        assert await gateway.verify_signature(proof)
    """

    name = "hmac"

    def __init__(self, secret: str) -> None:
        self._secret = secret.encode()
        self.refunds: list[tuple[str, Decimal, str]] = []

    def sign(self, intent_id: str, reference_id: str) -> str:
        message = f"{intent_id}|{reference_id}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    async def create_intent(
        self,
        payment_id: str,
        amount: Decimal,
        currency: str,
        method: PaymentMethod,
    ) -> GatewayIntent:
        if amount <= 0:
            raise ValueError(f"intent amount must be positive, got {amount}")
        return GatewayIntent(gateway=self.name, intent_id=f"intent_{uuid.uuid4().hex[:16]}")

    async def verify_signature(self, proof: GatewayProof) -> bool:
        expected = self.sign(proof.intent_id, proof.reference_id)
        return hmac.compare_digest(expected, proof.signature)

    async def refund(self, reference_id: str, amount: Decimal, reason: str) -> GatewayRefund:
        self.refunds.append((reference_id, amount, reason))
        return GatewayRefund(
            transaction_id=f"rfnd_{uuid.uuid4().hex[:16]}",
            status=RefundStatus.COMPLETED,
        )


__all__ = (
    "GatewayIntent",
    "GatewayProof",
    "GatewayRefund",
    "PaymentGateway",
    "HmacGateway",
)
