"""
协议定义

长度前缀文本帧与井字棋消息的编解码。

帧格式：
    [4 字节小端 int32 长度][UTF-16-LE 文本]

文本格式：
- 入站：MOVE|<player>|<x>|<y>
- 出站：WIN|<player>、DRAW、状态快照 "r0;r1;r2|<mover>|<True|False>"，
  每行单元格以逗号连接，取值 0/1/2
"""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from tictactoe.shared.constants import (
    CELL_SEP,
    FIELD_SEP,
    FRAME_HEADER_FORMAT,
    FRAME_HEADER_SIZE,
    MAX_FRAME_SIZE,
    MSG_DRAW,
    MSG_MOVE,
    MSG_WIN,
    ROW_SEP,
    TEXT_ENCODING,
)

# 整数字段最多 9 位，更长的数字串视为非法字段
_INT_RE = re.compile(r"\s*[+-]?[0-9]{1,9}\s*")
_BOOL_LITERALS = {"True": True, "False": False}

Board = Tuple[Tuple[int, ...], ...]


class FrameError(ValueError):
    """帧格式错误（长度头非法或正文超长）"""


@dataclass(frozen=True)
class Move:
    """入站落子命令"""

    player: int
    x: int
    y: int

    def to_text(self) -> str:
        return FIELD_SEP.join([MSG_MOVE, str(self.player), str(self.x), str(self.y)])


@dataclass(frozen=True)
class StateUpdate:
    """出站棋局快照"""

    board: Board
    current_mover: int
    active: bool

    def to_text(self) -> str:
        rows = ROW_SEP.join(CELL_SEP.join(str(cell) for cell in row) for row in self.board)
        return FIELD_SEP.join([rows, str(self.current_mover), str(bool(self.active))])


@dataclass(frozen=True)
class Win:
    """出站胜利事件"""

    player: int

    def to_text(self) -> str:
        return FIELD_SEP.join([MSG_WIN, str(self.player)])


@dataclass(frozen=True)
class Draw:
    """出站平局事件"""

    def to_text(self) -> str:
        return MSG_DRAW


@dataclass(frozen=True)
class Malformed:
    """解析失败的结果，携带原文与原因"""

    text: str
    reason: str


Message = Union[Move, StateUpdate, Win, Draw]


# 帧编解码
def encode_frame(text: str) -> bytes:
    """文本 -> 长度前缀帧"""
    body = text.encode(TEXT_ENCODING)
    if len(body) > MAX_FRAME_SIZE:
        raise FrameError(f"frame too large: {len(body)} > {MAX_FRAME_SIZE}")
    return struct.pack(FRAME_HEADER_FORMAT, len(body)) + body


def encode_message(msg: Message) -> bytes:
    return encode_frame(msg.to_text())


def decode_frame(payload: bytes) -> Optional[str]:
    """完整帧 -> 文本；任何不合法的帧返回 None，不抛异常"""
    if len(payload) < FRAME_HEADER_SIZE:
        return None
    (length,) = struct.unpack_from(FRAME_HEADER_FORMAT, payload)
    if length < 0 or length > MAX_FRAME_SIZE:
        return None
    if len(payload) != FRAME_HEADER_SIZE + length:
        return None
    try:
        return bytes(payload[FRAME_HEADER_SIZE:]).decode(TEXT_ENCODING)
    except UnicodeDecodeError:
        return None


def split_frames(buffer: bytearray) -> List[bytes]:
    """从流缓冲区中切出所有完整帧（原地消费 buffer）。

    不完整的尾部保留在 buffer 中等待后续数据。长度头非法时流已无法
    重新同步，抛出 FrameError。
    """
    frames: List[bytes] = []
    while len(buffer) >= FRAME_HEADER_SIZE:
        (length,) = struct.unpack_from(FRAME_HEADER_FORMAT, buffer)
        if length < 0 or length > MAX_FRAME_SIZE:
            raise FrameError(f"invalid frame length: {length}")
        end = FRAME_HEADER_SIZE + length
        if len(buffer) < end:
            break
        frames.append(bytes(buffer[:end]))
        del buffer[:end]
    return frames


# 文本解析
def _parse_int(token: str) -> Optional[int]:
    if not _INT_RE.fullmatch(token):
        return None
    return int(token)


def parse_command(text: str) -> Union[Move, Malformed]:
    """解析入站命令，目前只识别 MOVE|<player>|<x>|<y>"""
    parts = text.split(FIELD_SEP)
    if parts[0] != MSG_MOVE:
        return Malformed(text, f"unknown verb: {parts[0]!r}")
    if len(parts) != 4:
        return Malformed(text, f"expected 4 fields, got {len(parts)}")
    values = [_parse_int(p) for p in parts[1:]]
    if any(v is None for v in values):
        return Malformed(text, "non-integer field")
    player, x, y = values
    return Move(player, x, y)


def _parse_board(text: str) -> Optional[Board]:
    rows = []
    for row_text in text.split(ROW_SEP):
        cells = [_parse_int(c) for c in row_text.split(CELL_SEP)]
        if any(c is None for c in cells):
            return None
        rows.append(tuple(cells))
    if any(len(row) != len(rows) for row in rows):
        return None
    return tuple(rows)


def parse_event(text: str) -> Union[StateUpdate, Win, Draw, Malformed]:
    """解析出站消息（客户端使用）"""
    if text == MSG_DRAW:
        return Draw()
    parts = text.split(FIELD_SEP)
    if parts[0] == MSG_WIN:
        player = _parse_int(parts[1]) if len(parts) == 2 else None
        if player is None:
            return Malformed(text, "bad WIN event")
        return Win(player)
    if len(parts) != 3:
        return Malformed(text, f"expected 3 fields, got {len(parts)}")
    board = _parse_board(parts[0])
    mover = _parse_int(parts[1])
    if board is None or mover is None or parts[2] not in _BOOL_LITERALS:
        return Malformed(text, "bad state snapshot")
    return StateUpdate(board, mover, _BOOL_LITERALS[parts[2]])


__all__ = [
    "Board",
    "Draw",
    "FrameError",
    "Malformed",
    "Message",
    "Move",
    "StateUpdate",
    "Win",
    "decode_frame",
    "encode_frame",
    "encode_message",
    "parse_command",
    "parse_event",
    "split_frames",
]
