"""
网络通信模块

处理连接登记、事件排空、命令路由与广播。

服务器是单线程协作式 tick 循环：每个 tick 依次推进传输层、清理失效会话、
接受新连接、逐个连接排空事件并把 MOVE 交给棋局状态机，
因此棋局永远只有一个修改者，不需要额外加锁。
"""

from __future__ import annotations

import logging
import threading
from typing import Iterator, List, Optional, Set

import pygame

from tictactoe.shared.constants import (
	DEFAULT_HOST,
	DEFAULT_PORT,
	MAX_CONNECTIONS,
	TICK_RATE,
)
from tictactoe.shared.protocols import (
	Draw,
	Malformed,
	Message,
	Move,
	Win,
	decode_frame,
	encode_message,
	parse_command,
)
from tictactoe.server.game import GameSession, Outcome
from tictactoe.server.network.transport import (
	Connection,
	EventType,
	NetworkEvent,
	TcpTransport,
	Transport,
)

logger = logging.getLogger(__name__)


class ServerStartupError(RuntimeError):
	"""服务器无法开始监听（例如端口绑定失败）"""


class SessionRegistry:
	"""在线连接登记表：无序、成员唯一，失效条目在一个 tick 内被回收"""

	def __init__(self, transport: Transport, max_connections: int = MAX_CONNECTIONS):
		self._transport = transport
		self.max_connections = max_connections
		self._connections: List[Connection] = []
		self._members: Set[Connection] = set()

	def __len__(self) -> int:
		return len(self._connections)

	def __iter__(self) -> Iterator[Connection]:
		return iter(list(self._connections))

	def __contains__(self, conn: object) -> bool:
		return conn in self._members

	def prune(self) -> int:
		"""移除所有失效连接（与末尾交换后收缩），返回移除数量"""
		removed = 0
		i = 0
		while i < len(self._connections):
			conn = self._connections[i]
			if self._transport.is_live(conn):
				i += 1
				continue
			# // 顺序无关紧要，用末尾元素填补空位
			self._connections[i] = self._connections[-1]
			self._connections.pop()
			self._members.discard(conn)
			self._transport.disconnect(conn)
			removed += 1
		return removed

	def admit(self, conn: Connection) -> bool:
		"""登记新连接；已满或重复时返回 False"""
		if conn in self._members:
			return False
		if len(self._connections) >= self.max_connections:
			return False
		self._connections.append(conn)
		self._members.add(conn)
		return True

	def broadcast(self, payload: bytes) -> int:
		"""发送给所有在线连接；单个失败不影响其他连接，也不重试"""
		delivered = 0
		for conn in self._connections:
			if not self._transport.is_live(conn):
				continue
			if self._transport.send(conn, payload):
				delivered += 1
		return delivered

	def clear(self) -> None:
		self._connections.clear()
		self._members.clear()


class NetworkServer:
	"""权威服务器：驱动传输层、会话登记表与棋局状态机"""

	def __init__(
		self,
		transport: Optional[Transport] = None,
		host: str = DEFAULT_HOST,
		port: int = DEFAULT_PORT,
		max_connections: int = MAX_CONNECTIONS,
	):
		self.host = host
		self.port = port
		self.transport = transport or TcpTransport()
		self.sessions = SessionRegistry(self.transport, max_connections)
		self.game = GameSession()
		self._running = threading.Event()

	# 服务器生命周期
	def init(self) -> None:
		"""绑定端口并重置棋局；绑定失败属于启动故障"""
		try:
			self.transport.bind(self.host, self.port)
		except OSError as e:
			logger.error(f"无法绑定端口 {self.port}: {e}")
			raise ServerStartupError(f"failed to bind to port {self.port}") from e
		self.game.reset()
		logger.info(f"监听地址: {self.host}:{self.port}")

	def tick(self) -> None:
		"""执行一个 tick，顺序固定"""
		self.transport.update()
		self.sessions.prune()

		while self._accept_incoming_connection():
			pass

		for conn in self.sessions:
			if not self.transport.is_live(conn):
				continue
			# // 排空该连接的全部事件后再处理下一个连接
			while True:
				event = self.transport.pop_event(conn)
				if event is None:
					break
				if not self._handle_event(conn, event):
					break

	def serve_forever(self, tick_rate: int = TICK_RATE) -> None:
		"""按固定 tick 率循环，直到 stop() 被调用"""
		clock = pygame.time.Clock()
		self._running.set()
		while self._running.is_set():
			self.tick()
			clock.tick(tick_rate)

	def stop(self) -> None:
		self._running.clear()

	def shutdown(self) -> None:
		"""停止循环并关闭所有连接"""
		self._running.clear()
		self.transport.close()
		self.sessions.clear()

	# 接入与事件
	def _accept_incoming_connection(self) -> bool:
		conn = self.transport.accept()
		if conn is None:
			return False
		if self.sessions.admit(conn):
			logger.info(f"客户端连接: {conn.address}")
		else:
			logger.warning(f"连接数已达上限 {self.sessions.max_connections}，拒绝 {conn.address}")
			self.transport.disconnect(conn)
		return True

	def _handle_event(self, conn: Connection, event: NetworkEvent) -> bool:
		"""处理单个事件；返回 False 表示该连接已断开，停止排空"""
		if event.type is EventType.DISCONNECT:
			logger.info(f"客户端断开: {conn.address}")
			return False
		text = decode_frame(event.payload)
		if text is None:
			logger.debug(f"无法解码的帧，来自 {conn.address}")
			return True
		self._process_received_msg(text, conn)
		return True

	# 消息处理
	def _process_received_msg(self, text: str, sender: Connection) -> None:
		logger.debug(f"收到消息: {text!r}, from={sender.address}")
		command = parse_command(text)
		if isinstance(command, Malformed):
			# // 非法消息，忽略
			logger.debug(f"忽略非法命令 {command.text!r}: {command.reason}")
			return
		self._process_game_move(command)

	def _process_game_move(self, move: Move) -> None:
		outcome = self.game.apply_move(move.player, move.x, move.y)
		if outcome is Outcome.REJECTED:
			logger.debug(f"落子被拒绝: {move}")
			return
		if outcome is Outcome.WON:
			logger.info(f"玩家 {self.game.winner} 获胜")
			self.send_to_all_clients(Win(self.game.winner))
		elif outcome is Outcome.DRAWN:
			logger.info("平局")
			self.send_to_all_clients(Draw())
		self.send_to_all_clients(self.game.snapshot())

	# 广播
	def send_to_all_clients(self, msg: Message) -> int:
		return self.sessions.broadcast(encode_message(msg))


__all__ = [
	"NetworkServer",
	"ServerStartupError",
	"SessionRegistry",
]
