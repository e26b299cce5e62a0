"""
Score-based matching of treated units to untreated units.
"""

from .greedy import NO_MATCH, MatchResult, greedy_match

__all__ = ['NO_MATCH', 'MatchResult', 'greedy_match']
