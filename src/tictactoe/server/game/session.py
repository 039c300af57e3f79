from enum import Enum
from typing import List, Optional, Tuple

from tictactoe.shared.constants import BOARD_SIZE, EMPTY, PLAYER_ONE, PLAYER_TWO
from tictactoe.shared.protocols import StateUpdate

Line = Tuple[Tuple[int, int], ...]


def _build_win_lines(size: int) -> List[Line]:
    """生成所有获胜线：每行、每列与两条对角线"""
    lines: List[Line] = []
    for i in range(size):
        lines.append(tuple((i, j) for j in range(size)))
    for j in range(size):
        lines.append(tuple((i, j) for i in range(size)))
    lines.append(tuple((i, i) for i in range(size)))
    lines.append(tuple((i, size - 1 - i) for i in range(size)))
    return lines


WIN_LINES = _build_win_lines(BOARD_SIZE)


class Outcome(Enum):
    """一次落子尝试的结果"""

    REJECTED = "rejected"
    CONTINUED = "continued"
    WON = "won"
    DRAWN = "drawn"


class GameSession:
    """
    权威棋局状态机，独占棋盘、当前行棋方与对局进行标志。

    状态只通过 apply_move 改变；服务器循环与网络层不直接修改棋盘。
    """

    def __init__(self):
        self.board: List[List[int]] = []
        self.current_mover = PLAYER_ONE
        self.active = True
        self.winner: Optional[int] = None
        self.reset()

    def reset(self) -> None:
        """清空棋盘，玩家 1 先手"""
        self.board = [[EMPTY] * BOARD_SIZE for _ in range(BOARD_SIZE)]
        self.current_mover = PLAYER_ONE
        self.active = True
        self.winner = None

    def cell(self, x: int, y: int) -> int:
        return self.board[x][y]

    def is_full(self) -> bool:
        return all(cell != EMPTY for row in self.board for cell in row)

    def winning_lines(self, player: int) -> List[Line]:
        """返回被 player 连成的所有线（全部 8 条都检查）"""
        return [
            line for line in WIN_LINES
            if all(self.board[x][y] == player for x, y in line)
        ]

    def apply_move(self, player: int, x: int, y: int) -> Outcome:
        """校验并执行落子。

        前置条件按顺序检查，任一失败即返回 REJECTED 且不产生副作用：
        对局已结束、坐标越界、格子已被占、不是 player 的回合。

        Returns:
            REJECTED / CONTINUED / WON（winner 为该玩家）/ DRAWN
        """
        if not self.active:
            return Outcome.REJECTED
        # 负数下标在 Python 中合法，必须显式检查范围
        if not (0 <= x < BOARD_SIZE and 0 <= y < BOARD_SIZE):
            return Outcome.REJECTED
        if self.board[x][y] != EMPTY:
            return Outcome.REJECTED
        if player != self.current_mover:
            return Outcome.REJECTED

        self.board[x][y] = player
        # 只有刚落子的一方可能获胜
        if self.winning_lines(player):
            self.active = False
            self.winner = player
            return Outcome.WON
        if self.is_full():
            self.active = False
            return Outcome.DRAWN

        self.current_mover = PLAYER_TWO if self.current_mover == PLAYER_ONE else PLAYER_ONE
        return Outcome.CONTINUED

    def snapshot(self) -> StateUpdate:
        return StateUpdate(
            board=tuple(tuple(row) for row in self.board),
            current_mover=self.current_mover,
            active=self.active,
        )

    def serialize(self) -> str:
        """棋局快照文本，例如 "1,0,0;0,0,0;0,0,0|2|True" """
        return self.snapshot().to_text()
