"""Read-only query selectors returning domain DTOs."""

from billing_kernel.selectors.billing_selector import BillingSelector

__all__ = ["BillingSelector"]
