"""
游戏逻辑模块

实现井字棋核心逻辑：落子校验、胜负/平局判定、回合轮换与状态序列化。
"""

from .session import WIN_LINES, GameSession, Outcome

__all__ = ["GameSession", "Outcome", "WIN_LINES"]
