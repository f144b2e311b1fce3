"""
Roster CSV Package
Scrape-and-cache engine that turns a player's character roster into CSV.

CLI Usage:
    python -m rostercsv <command> [options]

    Commands:
        fetch REGION NAME   Scrape one roster to stdout (or --output FILE)
        refresh             Bulk refresh of the priority characters
        serve               Run the HTTP server

    Options:
        --concurrency   Concurrent character fetches per run (default: 1)
        --timeout       Navigation timeout in seconds (default: 45)
        --headed        Show the browser window
        --storage-state Session state file (default: storage.json)
"""

from .engine import RosterEngine
from .errors import (
    RosterError,
    NoEngineAvailable,
    FetchError,
    NavigationTimeout,
    NetworkTransient,
    EmptyRosterError,
    IncompleteDataError,
)
from .run_config import EngineConfig
from .scrape_pipeline import RosterScraper
from .priority_cache import PriorityCache, CacheStore, CacheEntry
from .gate import SerializationGate
from .refresh_clock import RefreshClock
from .roster_model import CharacterRecord, to_csv, is_complete
from .utils import RetryHandler

__all__ = [
    'RosterEngine',
    'EngineConfig',
    'RosterScraper',
    'PriorityCache',
    'CacheStore',
    'CacheEntry',
    'SerializationGate',
    'RefreshClock',
    'CharacterRecord',
    'to_csv',
    'is_complete',
    'RetryHandler',
    # Errors
    'RosterError',
    'NoEngineAvailable',
    'FetchError',
    'NavigationTimeout',
    'NetworkTransient',
    'EmptyRosterError',
    'IncompleteDataError',
]

__version__ = '1.0.0'
