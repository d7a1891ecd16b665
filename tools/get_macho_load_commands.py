"""
Mach-O 加载命令信息获取工具

此工具专门用于获取 Mach-O 文件中的所有加载命令（Load Commands）信息，包括命令类型、大小、偏移等数据。
加载命令表按照每条命令自身声明的大小逐条遍历，并对每一步进行边界检查。
"""

from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field

from machore import CommandListing, LoadCommand, MachoError, list_load_commands

from .common import format_size, macho_error_result, read_file


_COMMAND_DESCRIPTIONS = {
    "LC_SEGMENT": "32位段加载命令",
    "LC_SEGMENT_64": "64位段加载命令",
    "LC_SYMTAB": "符号表命令",
    "LC_DYSYMTAB": "动态符号表命令",
    "LC_LOAD_DYLIB": "加载动态库命令",
    "LC_LOAD_WEAK_DYLIB": "加载弱引用动态库命令",
    "LC_ID_DYLIB": "动态库标识命令",
    "LC_REEXPORT_DYLIB": "重导出动态库命令",
    "LC_LOAD_UPWARD_DYLIB": "向上加载动态库命令",
    "LC_LAZY_LOAD_DYLIB": "延迟加载动态库命令",
    "LC_LOAD_DYLINKER": "加载动态链接器命令",
    "LC_ID_DYLINKER": "动态链接器标识命令",
    "LC_DYLD_INFO": "动态链接器信息命令",
    "LC_DYLD_INFO_ONLY": "仅动态链接器信息命令",
    "LC_DYLD_EXPORTS_TRIE": "导出符号前缀树命令",
    "LC_DYLD_CHAINED_FIXUPS": "链式修正信息命令",
    "LC_UUID": "UUID标识命令",
    "LC_VERSION_MIN_MACOSX": "macOS最小版本命令",
    "LC_VERSION_MIN_IPHONEOS": "iOS最小版本命令",
    "LC_BUILD_VERSION": "构建版本命令",
    "LC_SOURCE_VERSION": "源代码版本命令",
    "LC_MAIN": "主程序入口点命令",
    "LC_UNIXTHREAD": "线程状态入口点命令",
    "LC_RPATH": "运行时搜索路径命令",
    "LC_CODE_SIGNATURE": "代码签名命令",
    "LC_SEGMENT_SPLIT_INFO": "段分割信息命令",
    "LC_FUNCTION_STARTS": "函数起始地址命令",
    "LC_DATA_IN_CODE": "代码中数据命令",
    "LC_DYLIB_CODE_SIGN_DRS": "动态库代码签名命令",
    "LC_ENCRYPTION_INFO": "加密信息命令",
    "LC_ENCRYPTION_INFO_64": "64位加密信息命令",
}


def get_macho_load_commands(
    file_path: Annotated[str, Field(
        description="Mach-O文件在系统中的完整绝对路径，例如：/Applications/MyApp.app/Contents/MacOS/MyApp 或 /usr/bin/ls 或 /bin/dyld"
    )],
    architecture_index: Annotated[Optional[int], Field(
        description="对于Fat Binary文件，指定要查看的架构索引（从0开始）。不指定则返回所有架构",
        ge=0
    )] = None
) -> Dict[str, Any]:
    """
    获取 Mach-O 文件中的所有加载命令信息。

    该工具遍历每个架构的加载命令表，提供：
    - 加载命令类型编号和名称
    - 命令大小、架构内偏移和文件绝对偏移
    - 命令类型描述
    - 命令统计信息（总大小是否与头部声明的 sizeofcmds 一致）

    支持单架构和 Fat Binary 文件；某个架构的命令表损坏时，其他架构仍会返回结果。
    """
    try:
        data, error = read_file(file_path)
        if error:
            return error

        try:
            kind, listings, failures = list_load_commands(data)
        except MachoError as exc:
            return macho_error_result(exc, file_path)

        result = {
            "file_path": file_path,
            "is_fat_binary": kind.is_fat,
            "architecture_count": len(listings) + len(failures),
            "architectures": []
        }

        for listing in listings:
            if architecture_index is not None and listing.index != architecture_index:
                continue
            result["architectures"].append(_extract_load_commands_info(listing))

        for failure in failures:
            if architecture_index is not None and failure.index != architecture_index:
                continue
            result["architectures"].append({
                "architecture_index": failure.index,
                "slice_offset": failure.offset,
                "error": f"解析架构 {failure.index} 加载命令时发生错误: {str(failure.error)}"
            })

        if architecture_index is not None and not result["architectures"]:
            return {
                "error": f"架构索引 {architecture_index} 超出范围，文件只有 {result['architecture_count']} 个架构",
                "suggestion": f"请使用 0 到 {max(0, result['architecture_count'] - 1)} 之间的架构索引"
            }

        return result

    except Exception as e:
        return {
            "error": f"解析文件加载命令时发生未预期的错误: {str(e)}",
            "file_path": file_path,
            "suggestion": "请检查文件格式是否正确，或联系技术支持"
        }


def _extract_load_commands_info(listing: CommandListing) -> Dict[str, Any]:
    """提取单个架构的加载命令信息"""

    header = listing.header
    commands = [_extract_single_command_info(command, listing.offset) for command in listing.commands]

    return {
        "architecture_index": listing.index,
        "slice_offset": listing.offset,
        "cpu_type": hex(header.cpu_type),
        "cpu_subtype": hex(header.cpu_subtype),
        "load_commands_count": header.ncmds,
        "load_commands_size": header.sizeofcmds,
        "load_commands": commands,
        "command_statistics": _calculate_command_statistics(listing.commands, header.sizeofcmds)
    }


def _extract_single_command_info(command: LoadCommand, slice_offset: int) -> Dict[str, Any]:
    """提取单个加载命令的基本信息"""

    return {
        "index": command.index,
        "command_id": hex(command.kind),
        "command_name": command.name,
        "description": _COMMAND_DESCRIPTIONS.get(command.name, f"加载命令类型: {command.name}"),
        "size": command.size,
        "offset": command.offset,
        "file_offset": slice_offset + command.offset,
        "is_dylib_command": command.is_dylib
    }


def _calculate_command_statistics(commands: List[LoadCommand], sizeofcmds: int) -> Dict[str, Any]:
    """计算加载命令统计信息"""

    command_types: Dict[str, int] = {}
    for command in commands:
        command_types[command.name] = command_types.get(command.name, 0) + 1

    total_size = sum(command.size for command in commands)
    stats = {
        "total_commands": len(commands),
        "total_size": total_size,
        "total_size_formatted": format_size(total_size),
        "matches_declared_size": total_size == sizeofcmds,
        "command_types": command_types,
        "largest_command": None,
        "smallest_command": None
    }

    if commands:
        largest = max(commands, key=lambda command: command.size)
        smallest = min(commands, key=lambda command: command.size)
        stats["largest_command"] = {"index": largest.index, "type": largest.name, "size": largest.size}
        stats["smallest_command"] = {"index": smallest.index, "type": smallest.name, "size": smallest.size}

    return stats
