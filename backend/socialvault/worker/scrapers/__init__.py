"""Scrape providers and the run-budget guard."""

from socialvault.worker.scrapers.apify_scraper import ApifyScraper
from socialvault.worker.scrapers.base_scraper import BaseScraper, ScrapeResult
from socialvault.worker.scrapers.budgeted_scraper import BudgetedScraper, ScrapeBudgetExhausted

__all__ = [
    "ApifyScraper",
    "BaseScraper",
    "BudgetedScraper",
    "ScrapeBudgetExhausted",
    "ScrapeResult",
]
