"""Helpers composing the core services into user-facing operations."""

from .inline_status import InlineStatusHelper
from .branch_actions import BranchActionsHelper

__all__ = ["InlineStatusHelper", "BranchActionsHelper"]
