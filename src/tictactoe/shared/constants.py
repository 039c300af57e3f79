"""
常量定义

定义服务器与客户端共用的各种常量。
"""

# 网络配置
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 9001
BUFFER_SIZE = 4096
LISTEN_BACKLOG = 32
MAX_CONNECTIONS = 1000
TICK_RATE = 60  # 每秒 tick 数
LOG_FILE = "server.log"

# 帧格式：长度头 + 文本
FRAME_HEADER_SIZE = 4  # 小端 int32
FRAME_HEADER_FORMAT = "<i"
MAX_FRAME_SIZE = 65536
TEXT_ENCODING = "utf-16-le"

# 棋盘配置
BOARD_SIZE = 3
EMPTY = 0
PLAYER_ONE = 1
PLAYER_TWO = 2

# 消息类型
MSG_MOVE = "MOVE"
MSG_WIN = "WIN"
MSG_DRAW = "DRAW"

# 分隔符
FIELD_SEP = "|"
ROW_SEP = ";"
CELL_SEP = ","
