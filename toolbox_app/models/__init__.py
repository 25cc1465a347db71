"""
Database models for the toolbox service.

Analytics events are not modelled here: they travel through the queue to an
external sink. Click events are the only analytics rows kept locally.
"""

from .catalog import Category, Status, Project, Tool
from .shortlink import ShortLink, ClickEvent

__all__ = ["Category", "Status", "Project", "Tool", "ShortLink", "ClickEvent"]
