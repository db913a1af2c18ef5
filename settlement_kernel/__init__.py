"""
Settlement Kernel

Allocates payment-gateway transaction events into zero-sum settlement legs
across an organization hierarchy, with:
- Margin-based fee distribution (merchant -> resellers -> distributor)
- Residual absorption of rounding loss by the distributor leg
- Proportional partial-cancel reversal
- Review-flagged persistence on invariant violation
- Idempotent daily batching per settlement cycle
"""

__version__ = "0.1.0"
