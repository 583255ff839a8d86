"""
gitlane - A terminal UI for git with a responsive, concurrent core
"""

from .__version__ import __version__
from .config import Config
from .gui import Gui
from .cli.main import main

__all__ = ["Config", "Gui", "main", "__version__"]
