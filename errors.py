"""
Failure kinds raised by the calculator and the droplist fetcher.
Callers at the edge (Flask views, CLI) turn these into a single status message.
"""

from typing import List, Optional, Tuple


class LandedCostError(Exception):
    """Base class for all expected failures"""

    default_message = "Something went wrong."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class InvalidInput(LandedCostError):
    """Price list could not be parsed or contained a non-positive value"""

    default_message = "Enter item prices separated by commas (numbers only)."


class RateUnavailable(LandedCostError):
    """Exchange rate endpoint unreachable or missing the CAD rate"""

    default_message = "Could not update rates right now. Please try again."


class FetchFailed(LandedCostError):
    """Every candidate droplist URL failed to load"""

    default_message = "Droplist page could not be retrieved."

    def __init__(self, message: Optional[str] = None,
                 attempts: Optional[List[Tuple[str, str]]] = None):
        super().__init__(message)
        # (url, reason) for each candidate tried, in order
        self.attempts = attempts or []


class NoEntriesFound(FetchFailed):
    """At least one candidate loaded, but no items could be parsed from any"""

    default_message = "No droplist items found."
