"""
clawkit - config validation and media preprocessing for chat bots
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("clawkit")
except PackageNotFoundError:  # running from a source tree that was never installed
    __version__ = "0.0.0-unknown"

__logo__ = "🦀"
