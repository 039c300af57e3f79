"""
服务器主程序入口

启动井字棋权威服务器，监听客户端连接。
"""

import logging
import os
import sys
from typing import Optional

from tictactoe.shared.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    LOG_FILE,
    MAX_CONNECTIONS,
    TICK_RATE,
)

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        logger.warning(f"环境变量 {name} 不是整数，使用默认值 {default}")
        return default


def configure_logging(log_file: Optional[str] = None) -> None:
    """配置日志：同时输出到文件与终端"""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler(log_file or LOG_FILE), logging.StreamHandler()],
    )


def main() -> int:
    """启动服务器主函数"""
    configure_logging(os.environ.get("LOG_FILE"))

    # 支持通过环境变量覆盖配置
    host = os.environ.get("HOST", DEFAULT_HOST)
    port = _env_int("PORT", DEFAULT_PORT)
    max_connections = _env_int("MAX_CONNECTIONS", MAX_CONNECTIONS)
    tick_rate = _env_int("TICK_RATE", TICK_RATE)

    logger.info("=" * 50)
    logger.info("Tic-Tac-Toe 服务器启动中...")
    logger.info("=" * 50)

    from tictactoe.server.network import NetworkServer, ServerStartupError

    server = NetworkServer(host=host, port=port, max_connections=max_connections)
    try:
        server.init()
    except ServerStartupError as e:
        logger.error(f"服务器启动失败: {e}")
        return 1

    try:
        logger.info("服务器运行中，按 Ctrl+C 停止")
        server.serve_forever(tick_rate)
    except KeyboardInterrupt:
        logger.info("服务器正在关闭...")
    except Exception as e:
        logger.error(f"服务器错误: {e}", exc_info=True)
        return 1
    finally:
        server.shutdown()
        logger.info("服务器已停止")
    return 0


if __name__ == "__main__":
    sys.exit(main())
