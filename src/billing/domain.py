"""Billing bounded context: invoice lifecycle and payment reconciliation.

Holds the Invoice aggregate (CQRS, not event sourced), its payment ledger and
status machine, and the gateway abstraction used to collect card payments.
"""

from protean.domain import Domain

from billing.utils.logging import configure_logging

configure_logging()

billing = Domain(name="billing")
