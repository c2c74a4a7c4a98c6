"""
FinTracker - Source Package

A small personal expense tracker: record expenses, list them by month
and look at a spending dashboard.

DESIGN PRINCIPLES:
1. Every expense belongs to exactly one user
2. Bad input is rejected, never silently coerced
3. Dashboards are derived on demand, never stored
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "FinTracker Team"
