"""
Services package for the team competition.
"""

from .base import BaseService
from .competition import TeamCompetition
from .locks import CompetitionLocks

__all__ = ['BaseService', 'CompetitionLocks', 'TeamCompetition']
