"""
                Restaurant QR Table Service

Backend for multi-tenant restaurants that issue time-limited QR codes
granting diners access to a table's live menu.
"""

__version__ = "1.0.0"
