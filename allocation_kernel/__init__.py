"""
Allocation Kernel

Distributes a project's budget among members by percentage share and
spreads each share over the project's duration as monthly installments:
- Percentage ledger capped at 100% per project
- Half-up rounded member allocations
- Truncated monthly installments with the remainder on the last month
- Atomic recalculation when budget, dates, or percentages change
- Typed audit events emitted to an external recorder
"""

__version__ = "0.1.0"
