"""
Statly - stats widget refresh engine with a YAML-configured local daemon
"""

__version__ = "0.3.0"

from .controller import StatlyController

__all__ = ["StatlyController"]
