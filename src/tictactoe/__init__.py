"""
Tic-Tac-Toe - 权威服务器联机井字棋

A two-player tic-tac-toe game with an authoritative Python server.
"""

__version__ = "0.1.0"
__author__ = "Tic-Tac-Toe Team"
__license__ = "MIT"

# 导出主要组件
from . import client, server, shared

__all__ = ["client", "server", "shared", "__version__"]
