"""
Billing ledger error taxonomy.

Raised synchronously to callers and never retried inside the services.
The API layer maps NotFound to 404 and the others to 400.
"""


class BillingError(Exception):
     """Base class for billing ledger failures."""

     def __init__(self, message: str):
          super().__init__(message)
          self.message = message


class NotFound(BillingError):
     """Invoice, payment, account, arrangement or installment is absent or outside the club."""


class InvalidAllocation(BillingError):
     """An allocation exceeds the invoice balance, or allocations exceed the payment."""


class InvalidState(BillingError):
     """The requested transition is not allowed from the entity's current state."""


class ConfigurationError(BillingError):
     """Billing configuration is incomplete for the requested calculation."""
