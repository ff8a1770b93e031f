"""SmartMess ledger service: off-day reconciliation, credits, billing and subscription gating."""

__version__ = "1.0.0"
