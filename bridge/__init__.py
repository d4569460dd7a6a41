"""
Local command bridge for the GUI front-end
"""

from .websocket_server import CommandBridgeServer

__all__ = ["CommandBridgeServer"]
