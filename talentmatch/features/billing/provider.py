"""
Billing provider protocol.

Defines the interface for billing providers (Stripe, etc.) so the webhook
flow and checkout can be exercised without the real SDK.
"""
from typing import Dict, Optional, Protocol

from talentmatch.models.entitlement import EntitlementChangeEvent


class BillingProvider(Protocol):
    """
    Implementations must handle:
    - Customer creation
    - Checkout and portal session creation
    - Webhook signature verification and normalization
    """

    def ensure_customer(self, user_id: int, email: Optional[str] = None, name: Optional[str] = None) -> str:
        """
        Create a billing customer for the user.

        Returns:
            Provider customer ID (e.g., Stripe customer ID)

        Raises:
            BillingProviderError: If customer creation fails
        """
        ...

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Create a subscription checkout session and return its URL."""
        ...

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        """Create a self-service billing portal session and return its URL."""
        ...

    def parse_webhook(self, headers: Dict[str, str], body: bytes) -> Optional[EntitlementChangeEvent]:
        """
        Verify the webhook signature and normalize the event.

        Returns:
            EntitlementChangeEvent, or None for event types that do not
            change entitlements

        Raises:
            BillingWebhookError: If signature invalid or payload unparsable
        """
        ...


class BillingProviderError(Exception):
    """Base exception for billing provider errors."""
    pass


class BillingWebhookError(BillingProviderError):
    """Exception for webhook verification/parsing errors."""
    pass
