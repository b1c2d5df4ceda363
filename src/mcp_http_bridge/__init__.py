"""
MCP HTTP Bridge - expose un serveur MCP stdio derrière une API HTTP.
"""

__version__ = "0.1.0"
