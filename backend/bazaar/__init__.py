"""
Bazaar - multi-vendor marketplace backend

Checkout, payment reconciliation and commission accounting.
"""
__version__ = "1.0.0"
