"""
============================================================================
Gift Fund Orchestrator v1.0.0
============================================================================

Funding and gift issuance for charitable giving funds: percentage funded,
redeem codes, recipient batches, and the authorize-then-act transaction
protocol against a remote ledger.

============================================================================
"""

__version__ = "1.0.0"
