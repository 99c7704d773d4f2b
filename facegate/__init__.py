"""
Facegate - Multi-tenant Face Verification Gateway

Matches a live face sample against a tenant's enrolled whitelist and
forwards positive matches to the tenant's webhook, whose answer gates
a door or turnstile.
"""

__version__ = "1.0.0"
__author__ = "Facegate Team"
