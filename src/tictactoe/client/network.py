"""
简单的客户端网络封装：负责连接服务器、收发帧并提供事件队列。
"""
from __future__ import annotations

import logging
import socket
import threading
from queue import Empty, SimpleQueue
from typing import List, Optional, Union

from tictactoe.shared.constants import BUFFER_SIZE, DEFAULT_PORT
from tictactoe.shared.protocols import (
    Draw,
    FrameError,
    Move,
    StateUpdate,
    Win,
    decode_frame,
    encode_frame,
    parse_event,
    split_frames,
)

logger = logging.getLogger(__name__)

ServerEvent = Union[StateUpdate, Win, Draw]


class NetworkClient:
    """线程驱动的轻量客户端，接收服务器广播的棋局事件。"""

    def __init__(self, host: str = "127.0.0.1", port: int = DEFAULT_PORT) -> None:
        self.host = host
        self.port = port
        self.sock: Optional[socket.socket] = None
        self._recv_thread: Optional[threading.Thread] = None
        self._running = threading.Event()
        self._buf = bytearray()
        self.events: SimpleQueue[ServerEvent] = SimpleQueue()

    @property
    def connected(self) -> bool:
        return bool(self.sock) and self._running.is_set()

    def connect(self, timeout: float = 5.0) -> bool:
        """连接服务器。"""
        if self.connected:
            return True
        try:
            self.sock = socket.create_connection((self.host, self.port), timeout=timeout)
            # 连接成功后取消超时，接收线程阻塞读取
            self.sock.settimeout(None)
            self._running.set()
            self._recv_thread = threading.Thread(target=self._recv_loop, name="client-recv", daemon=True)
            self._recv_thread.start()
            return True
        except OSError as e:
            logger.warning(f"连接失败: {e}")
            self.close()
            return False

    def send_move(self, player: int, x: int, y: int) -> None:
        self.send_text(Move(player, x, y).to_text())

    def send_text(self, text: str) -> None:
        """发送任意命令文本（用于调试）"""
        sock = self.sock
        if not sock:
            return
        try:
            sock.sendall(encode_frame(text))
        except OSError:
            self.close()

    def drain_events(self) -> List[ServerEvent]:
        items: List[ServerEvent] = []
        while True:
            try:
                items.append(self.events.get_nowait())
            except Empty:
                break
        return items

    def close(self) -> None:
        self._running.clear()
        sock, self.sock = self.sock, None
        if sock:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()

    # 内部方法
    def _recv_loop(self) -> None:
        sock = self.sock
        if sock is None:
            return
        try:
            while self._running.is_set():
                data = sock.recv(BUFFER_SIZE)
                if not data:
                    break
                self._buf.extend(data)
                for frame in split_frames(self._buf):
                    self._handle_frame(frame)
        except (OSError, FrameError):
            pass
        finally:
            self.close()

    def _handle_frame(self, frame: bytes) -> None:
        text = decode_frame(frame)
        if text is None:
            return
        event = parse_event(text)
        if isinstance(event, (StateUpdate, Win, Draw)):
            self.events.put(event)
        else:
            # 忽略无法解析的消息
            logger.debug(f"忽略无法解析的消息: {text!r}")


__all__ = ["NetworkClient", "ServerEvent"]
