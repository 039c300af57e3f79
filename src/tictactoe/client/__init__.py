"""
客户端模块

提供连接井字棋服务器的轻量网络封装，不包含界面。

模块组成：
- network: 连接服务器、发送 MOVE、在后台线程接收并解析广播
"""

from . import network

__all__ = ["network"]
