"""
Machore MCP服务器工具包

此模块包含所有用于 Mach-O 二进制文件结构分析的MCP工具。
所有工具都遵循标准的MCP工具规范，提供统一的接口和异常处理。
"""

# 导入工具函数
from .parse_macho_info import parse_macho_info
from .list_macho_architectures import list_macho_architectures
from .get_macho_header import get_macho_header
from .get_macho_load_commands import get_macho_load_commands
from .list_macho_libraries import list_macho_libraries
from .list_macho_strings import list_macho_strings


# 导出所有工具函数
__all__ = [
    "parse_macho_info",
    "list_macho_architectures",
    "get_macho_header",
    "get_macho_load_commands",
    "list_macho_libraries",
    "list_macho_strings"
]

# 工具列表，便于动态注册
TOOLS = [
    parse_macho_info,
    list_macho_architectures,
    get_macho_header,
    get_macho_load_commands,
    list_macho_libraries,
    list_macho_strings
]
