"""Goldie — Scraper Package.

Fetches the NBKR gold bar price table and stores it. Components:
  - NbkrClient: Async HTTP client with retry and rate limiting
  - parse_gold_prices: HTML table parser
  - PriceImporter: Database-integrated import pipeline
"""

from goldie.scraper.client import NbkrClient
from goldie.scraper.parser import parse_gold_prices
from goldie.scraper.importer import FIRST_PRICE_DATE, PriceImporter

__all__ = [
    "NbkrClient",
    "parse_gold_prices",
    "PriceImporter",
    "FIRST_PRICE_DATE",
]
