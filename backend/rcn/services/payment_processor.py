"""
Payment Processor

External payment collaborator. The referral service only decides whether a
charge is required and what unlocks once success is reported; card handling
lives behind this interface.

Implementations:
- StripePaymentProcessor: PaymentIntents via the Stripe API
- DemoPaymentProcessor: local demo mode, no network (declines Stripe's
  "charge declined" test payment methods)
"""

from abc import ABC, abstractmethod
from decimal import Decimal
import logging
import secrets
from typing import Optional

import stripe

from rcn.domain.billing import ChargeResult, PaymentRecord, PaymentSource, PaymentSummary
from rcn.errors import NetworkError, PaymentFailed
from rcn.services.pricing import build_payment_summary


# Stripe test payment methods that always decline
DECLINED_TEST_METHODS = {
    "pm_card_chargeDeclined",
    "pm_card_visa_chargeDeclined",
    "pm_card_chargeDeclinedInsufficientFunds",
}


class PaymentProcessor(ABC):
    """
    Quote, charge and credit-debit operations.

    Subclasses implement the card side (``create_intent`` / ``charge`` / ``refund``).
    Quotes and credit debits are shared.
    """

    def __init__(
        self,
        directory,
        price_per_referral: Decimal,
        fee_percent: Decimal,
        currency: str = "USD",
    ):
        self.directory = directory
        self.price_per_referral = Decimal(str(price_per_referral))
        self.fee_percent = Decimal(str(fee_percent))
        self.currency = currency
        self.logger = logging.getLogger(f"service.{self.__class__.__name__}")

    def quote(
        self,
        referral_id: str,
        department_id: Optional[str],
        payment_method_id: Optional[str],
        source: PaymentSource = PaymentSource.PAYMENT,
        recipients: int = 1,
    ) -> PaymentSummary:
        """Advisory quote for unlocking ``recipients`` departments."""
        return build_payment_summary(
            referral_id=referral_id,
            source=source,
            price_per_referral=self.price_per_referral,
            fee_percent=self.fee_percent,
            currency=self.currency,
            recipients=recipients,
            department_id=department_id,
            payment_method_id=payment_method_id,
        )

    def debit_credits(
        self,
        organization_id: str,
        amount: Decimal,
        reference_id: Optional[str] = None,
        user_id: Optional[str] = None,
        description: str = "Referral payment",
    ) -> bool:
        """Debit the organization's credit balance. False when insufficient."""
        transaction = self.directory.debit_credits(
            organization_id,
            amount,
            reference_id=reference_id,
            user_id=user_id,
            description=description,
        )
        if transaction is None:
            self.logger.warning("Credit debit of %s refused for %s", amount, organization_id)
            return False
        self.logger.info("Debited %s credits from %s (%s)", amount, organization_id, transaction.transaction_id)
        return True

    @abstractmethod
    def create_intent(self, payment: PaymentRecord) -> str:
        """Register the pending charge; returns the client secret."""

    @abstractmethod
    def charge(self, payment_method_id: str, client_secret: str) -> ChargeResult:
        """Confirm the charge. Raises NetworkError when unreachable."""

    @abstractmethod
    def refund(self, provider_reference: str) -> ChargeResult:
        """Return a succeeded charge in full. Raises NetworkError when unreachable."""


class StripePaymentProcessor(PaymentProcessor):
    """Card payments through Stripe PaymentIntents."""

    def __init__(self, directory, api_key: str, **kwargs):
        super().__init__(directory, **kwargs)
        self.api_key = api_key

    def _client(self):
        stripe.api_key = self.api_key
        return stripe

    def create_intent(self, payment: PaymentRecord) -> str:
        client = self._client()
        try:
            intent = client.PaymentIntent.create(
                amount=int((payment.total * 100).to_integral_value()),
                currency=(payment.currency or self.currency).lower(),
                payment_method=payment.payment_method_id,
                payment_method_types=["card"],
                metadata={
                    "rcn_payment_id": payment.payment_id,
                    "rcn_referral_id": payment.referral_id,
                    "rcn_department_id": payment.department_id or "",
                },
            )
        except stripe.APIConnectionError as e:
            self.logger.error("Stripe unreachable creating intent for %s: %s", payment.payment_id, str(e))
            raise NetworkError("Payment service is unreachable. Please try again.") from e
        except stripe.StripeError as e:
            self.logger.error("Stripe refused intent for %s: %s", payment.payment_id, str(e))
            raise PaymentFailed(e.user_message or "The payment could not be started.") from e

        self.logger.info("Created Stripe PaymentIntent %s for %s", intent.id, payment.payment_id)
        return intent.client_secret

    def charge(self, payment_method_id: str, client_secret: str) -> ChargeResult:
        client = self._client()
        intent_id = client_secret.split("_secret_")[0]
        try:
            intent = client.PaymentIntent.retrieve(intent_id)
            if intent.status in ("requires_confirmation", "requires_payment_method"):
                intent = client.PaymentIntent.confirm(intent_id, payment_method=payment_method_id)
        except stripe.CardError as e:
            self.logger.warning("Card declined for intent %s: %s", intent_id, e.user_message)
            return ChargeResult(success=False, message=e.user_message or "Your card was declined.")
        except stripe.APIConnectionError as e:
            self.logger.error("Stripe unreachable confirming %s: %s", intent_id, str(e))
            raise NetworkError("Payment service is unreachable. Please try again.") from e
        except stripe.StripeError as e:
            self.logger.error("Stripe error confirming %s: %s", intent_id, str(e))
            return ChargeResult(
                success=False,
                message=e.user_message or "Payment confirmation failed.",
                provider_reference=intent_id,
            )

        if intent.status == "succeeded":
            return ChargeResult(success=True, message="Payment succeeded.", provider_reference=intent.id)

        self.logger.warning("PaymentIntent %s ended in status %s", intent_id, intent.status)
        return ChargeResult(
            success=False,
            message="Payment confirmation failed.",
            provider_reference=intent.id,
        )

    def refund(self, provider_reference: str) -> ChargeResult:
        client = self._client()
        try:
            refund = client.Refund.create(payment_intent=provider_reference)
        except stripe.APIConnectionError as e:
            self.logger.error("Stripe unreachable refunding %s: %s", provider_reference, str(e))
            raise NetworkError("Payment service is unreachable. Please try again.") from e
        except stripe.StripeError as e:
            self.logger.error("Refund of %s refused: %s", provider_reference, str(e))
            return ChargeResult(success=False, message=e.user_message or "Refund failed.",
                                provider_reference=provider_reference)

        self.logger.info("Refunded PaymentIntent %s (%s)", provider_reference, refund.id)
        return ChargeResult(success=refund.status in ("succeeded", "pending"), message="Payment refunded.",
                            provider_reference=refund.id)


class DemoPaymentProcessor(PaymentProcessor):
    """Local demo mode: approves every charge except declined test methods."""

    def create_intent(self, payment: PaymentRecord) -> str:
        return f"demo_{payment.payment_id}_secret_{secrets.token_hex(8)}"

    def charge(self, payment_method_id: str, client_secret: str) -> ChargeResult:
        intent_id = client_secret.split("_secret_")[0]
        if payment_method_id in DECLINED_TEST_METHODS:
            self.logger.info("Demo charge declined for %s", intent_id)
            return ChargeResult(success=False, message="Your card was declined.", provider_reference=intent_id)
        return ChargeResult(success=True, message="Payment succeeded.", provider_reference=intent_id)

    def refund(self, provider_reference: str) -> ChargeResult:
        self.logger.info("Demo refund for %s", provider_reference)
        return ChargeResult(success=True, message="Payment refunded.", provider_reference=provider_reference)
