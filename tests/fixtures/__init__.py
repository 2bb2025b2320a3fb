"""
Shared test fixtures for kvcoord.

Provides sample versioned entities and the backend conformance suite.
"""

from tests.fixtures.conformance import BackendConformance
from tests.fixtures.entities import Auction, Bidder, Unkeyed

__all__ = [
    "Auction",
    "BackendConformance",
    "Bidder",
    "Unkeyed",
]
