"""
共享模块

存放客户端和服务器共用的代码，如常量、协议定义等。

组件说明：
- constants: 网络端口、连接上限、棋盘参数、消息动词与分隔符
- protocols: 长度前缀帧编解码与 MOVE/WIN/DRAW/状态快照消息

提示：
- 每帧 = 4 字节小端长度头 + UTF-16-LE 文本，文本为竖线分隔的命令串
- 解析函数返回类型化结果（成功消息或 Malformed），从不抛出异常
"""

from . import constants, protocols

__all__ = ["constants", "protocols"]
