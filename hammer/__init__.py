"""
Hammer: a WebSocket chat gateway built on Trio.

Clients connect with a token, identify themselves, and then
exchange channel messages and status updates through a small
opcode protocol (see hammer.protocol).
"""

__version__ = "0.3.0"
