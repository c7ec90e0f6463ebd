"""
Flatledger - Source Package

Shared household finance tracking for a flat: bank transactions are
attributed to flatmates, and every flatmate's payments are reconciled
against their weekly rent schedule.

DESIGN PRINCIPLES:
1. Matching is deterministic and manual overrides always win
2. Balances are derived on demand, never stored
3. Configuration gaps degrade to empty results, not errors
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Flatledger Team"
