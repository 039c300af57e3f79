"""
传输层适配

定义服务器循环依赖的传输接口（接受连接、逐个弹出事件、发送帧、存活检查），
并提供基于非阻塞 TCP 套接字的实现。所有调用都不阻塞，保证一次 tick 在有限时间内完成。
"""

from __future__ import annotations

import abc
import logging
import selectors
import socket
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, Optional, Tuple

from tictactoe.shared.constants import BUFFER_SIZE, LISTEN_BACKLOG, MAX_FRAME_SIZE
from tictactoe.shared.protocols import FrameError, split_frames

logger = logging.getLogger(__name__)

# 单个连接待发送字节上限，超过即视为对端失联
SEND_BUFFER_LIMIT = MAX_FRAME_SIZE * 16


@dataclass(frozen=True)
class Connection:
    """一个对端会话的不透明句柄"""

    id: int
    address: Tuple[str, int] = field(default=("", 0), compare=False)


class EventType(Enum):
    DATA = "data"
    DISCONNECT = "disconnect"


@dataclass(frozen=True)
class NetworkEvent:
    type: EventType
    payload: bytes = b""


class Transport(abc.ABC):
    """服务器循环所依赖的传输接口"""

    @abc.abstractmethod
    def bind(self, host: str, port: int) -> None:
        """绑定并监听；失败时抛出 OSError"""

    @abc.abstractmethod
    def update(self) -> None:
        """推进一次传输层（收包、接受连接、冲刷发送队列）"""

    @abc.abstractmethod
    def accept(self) -> Optional[Connection]:
        """返回一个新连接，没有则返回 None"""

    @abc.abstractmethod
    def pop_event(self, conn: Connection) -> Optional[NetworkEvent]:
        """弹出该连接的下一个事件，没有则返回 None"""

    @abc.abstractmethod
    def send(self, conn: Connection, payload: bytes) -> bool:
        """尽力发送一帧，失败返回 False，不抛异常"""

    @abc.abstractmethod
    def is_live(self, conn: Connection) -> bool:
        ...

    @abc.abstractmethod
    def disconnect(self, conn: Connection) -> None:
        ...

    @abc.abstractmethod
    def close(self) -> None:
        ...


class _Peer:
    """TCP 对端的缓冲区与事件队列"""

    def __init__(self, conn: Connection, sock: socket.socket):
        self.conn = conn
        self.sock = sock
        self.live = True
        self.closed = False
        self.writing = False
        self.recv_buffer = bytearray()
        self.send_buffer = bytearray()
        self.events: Deque[NetworkEvent] = deque()


class TcpTransport(Transport):
    """非阻塞 TCP 传输：把字节流重组为长度前缀帧，逐帧投递"""

    def __init__(self):
        self._sock: Optional[socket.socket] = None
        self._selector = selectors.DefaultSelector()
        self._peers: Dict[int, _Peer] = {}
        self._pending: Deque[Connection] = deque()
        self._next_id = 1
        self.port: Optional[int] = None

    @property
    def listening(self) -> bool:
        return self._sock is not None

    # 生命周期
    def bind(self, host: str, port: int, backlog: int = LISTEN_BACKLOG) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            # // 允许快速重启服务
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(backlog)
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise
        self._sock = sock
        self.port = sock.getsockname()[1]
        self._selector.register(sock, selectors.EVENT_READ, data=None)

    def close(self) -> None:
        for peer in list(self._peers.values()):
            self._close_peer(peer)
        self._peers.clear()
        self._pending.clear()
        if self._sock is not None:
            self._selector.unregister(self._sock)
            self._sock.close()
            self._sock = None
        self._selector.close()

    def update(self) -> None:
        if not self._selector.get_map():
            return
        for key, mask in self._selector.select(timeout=0):
            if key.data is None:
                self._accept_pending()
                continue
            peer = key.data
            if mask & selectors.EVENT_READ:
                self._read(peer)
            if mask & selectors.EVENT_WRITE and not peer.closed:
                self._flush(peer)

    # 接口实现
    def accept(self) -> Optional[Connection]:
        if not self._pending:
            return None
        return self._pending.popleft()

    def pop_event(self, conn: Connection) -> Optional[NetworkEvent]:
        peer = self._peers.get(conn.id)
        if peer is None:
            return None
        if not peer.events:
            return None
        event = peer.events.popleft()
        if event.type is EventType.DISCONNECT:
            # // 断开事件被取走后才对外表现为失效，之前收到的帧仍会投递
            peer.live = False
        return event

    def send(self, conn: Connection, payload: bytes) -> bool:
        peer = self._peers.get(conn.id)
        if peer is None or peer.closed:
            return False
        if len(peer.send_buffer) + len(payload) > SEND_BUFFER_LIMIT:
            self._drop(peer, "发送缓冲区溢出")
            return False
        peer.send_buffer.extend(payload)
        self._flush(peer)
        return not peer.closed

    def is_live(self, conn: Connection) -> bool:
        peer = self._peers.get(conn.id)
        return peer is not None and peer.live

    def disconnect(self, conn: Connection) -> None:
        peer = self._peers.pop(conn.id, None)
        if peer is not None:
            self._close_peer(peer)

    # 内部方法
    def _accept_pending(self) -> None:
        while True:
            try:
                sock, addr = self._sock.accept()  # type: ignore[union-attr]
            except BlockingIOError:
                return
            except OSError as e:
                logger.warning(f"accept 失败: {e}")
                return
            sock.setblocking(False)
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            conn = Connection(self._next_id, addr)
            self._next_id += 1
            peer = _Peer(conn, sock)
            self._peers[conn.id] = peer
            self._selector.register(sock, selectors.EVENT_READ, data=peer)
            self._pending.append(conn)

    def _read(self, peer: _Peer) -> None:
        try:
            data = peer.sock.recv(BUFFER_SIZE)
        except BlockingIOError:
            return
        except OSError as e:
            self._drop(peer, f"接收失败: {e}")
            return
        if not data:
            self._drop(peer, "对端关闭连接")
            return
        peer.recv_buffer.extend(data)
        try:
            frames = split_frames(peer.recv_buffer)
        except FrameError as e:
            # // 长度头非法，流无法再同步
            self._drop(peer, str(e))
            return
        for frame in frames:
            peer.events.append(NetworkEvent(EventType.DATA, frame))

    def _flush(self, peer: _Peer) -> None:
        if peer.send_buffer:
            try:
                sent = peer.sock.send(peer.send_buffer)
                del peer.send_buffer[:sent]
            except BlockingIOError:
                pass
            except OSError as e:
                logger.warning(f"发送失败 {peer.conn.address}: {e}")
                self._drop(peer, f"发送失败: {e}")
                return
        want_write = bool(peer.send_buffer)
        if want_write != peer.writing:
            mask = selectors.EVENT_READ | (selectors.EVENT_WRITE if want_write else 0)
            self._selector.modify(peer.sock, mask, data=peer)
            peer.writing = want_write

    def _drop(self, peer: _Peer, reason: str) -> None:
        """关闭套接字并投递断开事件，槽位由 disconnect() 回收"""
        if peer.closed:
            return
        logger.debug(f"连接 {peer.conn.address} 失效: {reason}")
        self._close_peer(peer)
        peer.events.append(NetworkEvent(EventType.DISCONNECT))

    def _close_peer(self, peer: _Peer) -> None:
        if peer.closed:
            return
        peer.closed = True
        try:
            self._selector.unregister(peer.sock)
        except (KeyError, ValueError):
            pass
        try:
            peer.sock.close()
        except OSError:
            pass


__all__ = [
    "Connection",
    "EventType",
    "NetworkEvent",
    "TcpTransport",
    "Transport",
]
