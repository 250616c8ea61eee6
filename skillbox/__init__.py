"""Skillbox - reconcile agent skills across catalogs, agents and scopes."""

__version__ = "0.1.0"

from skillbox.config import Config
from skillbox.context import SkillboxContext

__all__ = ["Config", "SkillboxContext", "__version__"]
