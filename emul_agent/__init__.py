"""Emul Agent - a chat-triggered assistant with tool-calling conversations."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("emul-agent")
except PackageNotFoundError:
    __version__ = "0.1.0"

__logo__ = "🐰"
__brand__ = "emul"
