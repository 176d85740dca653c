"""Query services shared by the route modules."""

from .ranking import rank_teams

__all__ = ["rank_teams"]
