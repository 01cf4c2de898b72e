"""
Receipt Interpreter - Source Package

Reconstructs structured financial data (total, category, merchant,
transaction date) from noisy text recognized in receipt photos.

DESIGN PRINCIPLES:
1. Every extracted field is a suggestion → a human confirms
2. Confidence is the single trust signal
3. A failed pass degrades the result, never the call
4. Every pass must be auditable
5. The text recognizer is swappable
"""

__version__ = "1.0.0"
__author__ = "Personal Accountant Team"
