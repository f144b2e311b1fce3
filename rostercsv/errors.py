"""
Error Taxonomy
==============
Exceptions raised by the scrape-and-cache engine.

Propagation:
    - ``NoEngineAvailable``: fatal at startup, nothing can be served.
    - ``NavigationTimeout`` / ``NetworkTransient``: retried by the
      pipeline against the same URL, then treated as "no data for
      this URL".
    - ``EmptyRosterError``: surfaced to the caller.
    - ``IncompleteDataError``: internal to the cache refresh loop.
"""


class RosterError(Exception):
    """Base class for every engine error."""


class NoEngineAvailable(RosterError):
    """None of the configured browser engines could be launched."""


class FetchError(RosterError):
    """A page could not be loaded."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{message} ({url})")
        self.url = url


class NavigationTimeout(FetchError):
    """Navigation exceeded the configured timeout."""


class NetworkTransient(FetchError):
    """Connection reset, empty response, or a similar network blip."""


class EmptyRosterError(RosterError):
    """No characters produced any data."""

    def __init__(self, region: str, name: str):
        super().__init__(f"No characters found for {region}/{name}")
        self.region = region
        self.name = name


class IncompleteDataError(RosterError):
    """A scraped roster failed the completeness check."""

    def __init__(self, csv_text: str):
        super().__init__("Scraped roster is missing name, class or item level")
        self.csv_text = csv_text
