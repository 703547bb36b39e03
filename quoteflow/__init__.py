"""
QuoteFlow - tracks prices of Chinese market holdings with source failover
"""

__version__ = "0.1.0"
