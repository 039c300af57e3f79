"""
服务器端模块

负责处理客户端连接、消息路由与权威棋局。

模块组成：
- game: 井字棋状态机（落子校验、胜负判定、快照序列化）
- network: 传输层适配、会话登记表与服务器 tick 循环

使用方式：
- 入口参见 tictactoe/server/main.py，init() 绑定端口后按固定 tick 率驱动 NetworkServer
"""

from . import game, network

__all__ = ["game", "network"]
