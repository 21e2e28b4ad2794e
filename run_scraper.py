"""
Simple runner - just run: python run_scraper.py <command>

Usage:
    python run_scraper.py create-batches          # Split the worklist into batches
    python run_scraper.py scrape-batch 0          # Scrape one batch
    python run_scraper.py scrape-all              # Scrape every batch
    python run_scraper.py resume                  # Continue an interrupted run
    python run_scraper.py status                  # Show progress
    python run_scraper.py aggregate --report      # Build the aggregated dataset
    python run_scraper.py scrape-batch 0 --no-headless  # Show browser window
"""
import sys

from law_scraper.main import main


if __name__ == "__main__":
    sys.exit(main())
