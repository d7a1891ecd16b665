"""
Machore MCP服务器 - 提供 Mach-O 二进制文件结构分析能力
"""
import logging
import os
import sys

from mcp.server.fastmcp import FastMCP

from tools import TOOLS

# stdout 用于 MCP stdio 协议，日志只能写到 stderr
logging.basicConfig(
    level=os.environ.get("MACHORE_LOG_LEVEL", "WARNING").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# 创建MCP服务器
mcp = FastMCP("Machore Mach-O Analysis Server")

# 注册工具
for tool in TOOLS:
    mcp.tool()(tool)

if __name__ == "__main__":
    logger.info("starting with %d tools", len(TOOLS))
    mcp.run()
