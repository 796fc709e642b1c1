"""
Scrapes rental listings, keeps the ones available late enough and appends the new ones to a ledger
"""

__version__ = "0.1.0"
