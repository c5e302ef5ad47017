"""Storage access for bets, placements and profiles."""

from wagerfeed.repositories.base import BetRepository
from wagerfeed.repositories.bets import SupabaseBetRepository

__all__ = ["BetRepository", "SupabaseBetRepository"]
