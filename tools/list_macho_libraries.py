"""
Mach-O 依赖动态库列表工具

此工具专门用于列出 Mach-O 文件中的所有依赖动态库信息，包括库路径、版本信息、加载类型等详细数据。
路径超过容量限制时会被截断，并通过 path_was_truncated 字段明确标记。
"""

import os
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field

from machore import AnalysisOptions, ArchSlice, DylibDependency

from .common import (
    compile_regex_filter,
    failure_entries,
    load_macho,
    normalize_library_name,
    paginate_items,
    select_slices,
    slice_identity,
)


_COMMAND_DESCRIPTIONS = {
    "LC_LOAD_DYLIB": "标准动态库加载 - 程序启动时必须加载",
    "LC_LOAD_WEAK_DYLIB": "弱动态库加载 - 库不存在时程序仍可运行",
    "LC_ID_DYLIB": "动态库自身标识 - 声明本镜像的安装名称",
    "LC_REEXPORT_DYLIB": "重导出动态库 - 将库的符号重新导出给其他模块",
    "LC_LOAD_UPWARD_DYLIB": "向上动态库加载 - 用于解决循环依赖",
    "LC_LAZY_LOAD_DYLIB": "延迟动态库加载 - 首次使用时才加载"
}


def list_macho_libraries(
    file_path: Annotated[str, Field(
        description="Mach-O文件在系统中的完整绝对路径，例如：/Applications/MyApp.app/Contents/MacOS/MyApp 或 /usr/bin/ls 或 /bin/dyld"
    )],
    offset: Annotated[int, Field(
        description="起始位置偏移量，从第几个依赖库开始返回（从0开始计数）",
        ge=0
    )] = 0,
    count: Annotated[int, Field(
        description="返回的依赖库数量，最大100条，0表示返回所有剩余依赖库",
        ge=0,
        le=100
    )] = 20,
    name_filter: Annotated[Optional[str], Field(
        description="依赖库名称过滤器，支持正则表达式匹配。例如：'Foundation' 或 '^/usr/lib/.*' 或 '.*dylib$'"
    )] = None,
    architecture_index: Annotated[Optional[int], Field(
        description="对于Fat Binary文件，指定要分析的架构索引（从0开始）。不指定则返回所有架构",
        ge=0
    )] = None,
    path_capacity: Annotated[int, Field(
        description="依赖库路径的最大容量（字节，含结尾的 NUL），超过时路径会被截断并标记",
        ge=2,
        le=65536
    )] = 1024
) -> Dict[str, Any]:
    """
    列出 Mach-O 文件中的所有依赖动态库信息。

    该工具解析每个架构的动态库加载命令（LC_LOAD_DYLIB、LC_LOAD_WEAK_DYLIB、LC_ID_DYLIB、
    LC_REEXPORT_DYLIB、LC_LOAD_UPWARD_DYLIB、LC_LAZY_LOAD_DYLIB），提供：
    - 依赖库完整路径和名称，以及是否被截断
    - 库的当前版本和兼容版本（MAJOR.MINOR.PATCH）
    - 库加载命令类型
    - 路径类型分析和依赖统计

    支持单架构和 Fat Binary 文件的库依赖信息提取。
    """
    try:
        regex_filter, regex_error = compile_regex_filter(name_filter)
        if regex_error:
            return regex_error

        analysis, error = load_macho(file_path, AnalysisOptions(path_capacity=path_capacity))
        if error:
            return error

        slices, select_error = select_slices(analysis, architecture_index)
        if select_error:
            return select_error

        result = {
            "file_path": file_path,
            "is_fat_binary": analysis.is_multi_architecture,
            "architecture_count": len(analysis.slices) + len(analysis.failures),
            "architectures": []
        }

        for arch_slice in slices:
            arch_libraries = _extract_libraries_info(arch_slice, offset, count, regex_filter, name_filter)
            result["architectures"].append(arch_libraries)

        if architecture_index is None:
            result["architectures"].extend(failure_entries(analysis))

        return result

    except Exception as e:
        return {
            "error": f"解析文件库依赖信息时发生未预期的错误: {str(e)}",
            "file_path": file_path,
            "suggestion": "请检查文件格式是否正确，或联系技术支持"
        }


def _extract_libraries_info(
    arch_slice: ArchSlice,
    offset: int,
    count: int,
    regex_filter,
    name_filter: Optional[str]
) -> Dict[str, Any]:
    """提取单个架构的库依赖详细信息，支持分页和过滤"""

    all_libraries = [
        _extract_single_library_info(dependency)
        for dependency in arch_slice.dependencies
        if not regex_filter or regex_filter.search(dependency.path)
    ]

    arch_info = slice_identity(arch_slice)
    paged_libraries, pagination_info, page_error = paginate_items(all_libraries, offset, count)
    if page_error:
        arch_info.update(page_error)
        return arch_info

    pagination_info["total_libraries_in_binary"] = len(arch_slice.dependencies)
    arch_info.update({
        "pagination_info": pagination_info,
        "filter_info": {
            "name_filter": name_filter,
            "filter_applied": name_filter is not None
        },
        "libraries": paged_libraries,
        "library_statistics": _calculate_library_statistics(all_libraries)
    })
    return arch_info


def _extract_single_library_info(dependency: DylibDependency) -> Dict[str, Any]:
    """提取单个库依赖的详细信息"""

    return {
        "name": dependency.path,
        "short_name": normalize_library_name(dependency.path),
        "path_was_truncated": dependency.path_was_truncated,
        "current_version": dependency.version,
        "compatibility_version": dependency.compatibility_version,
        "raw_current_version": hex(dependency.raw_version),
        "timestamp": dependency.timestamp,
        "command": {
            "type": dependency.command_name,
            "description": _COMMAND_DESCRIPTIONS.get(dependency.command_name, f"未知加载命令类型: {dependency.command_name}")
        },
        "path_analysis": _analyze_library_path(dependency.path)
    }


def _analyze_library_path(library_path: str) -> Dict[str, Any]:
    """分析库路径信息"""

    analysis = {
        "directory": os.path.dirname(library_path),
        "filename": os.path.basename(library_path),
        "extension": os.path.splitext(library_path)[1],
        "is_system_path": False,
        "is_framework": ".framework/" in library_path,
        "path_type": "自定义路径"
    }

    if library_path.startswith('/usr/lib/'):
        analysis.update({"is_system_path": True, "path_type": "系统库路径"})
    elif library_path.startswith('/System/Library/'):
        analysis.update({"is_system_path": True, "path_type": "系统框架路径"})
    elif library_path.startswith('/Library/Frameworks/'):
        analysis["path_type"] = "第三方框架路径"
    elif library_path.startswith('@executable_path/'):
        analysis["path_type"] = "可执行文件相对路径"
    elif library_path.startswith('@loader_path/'):
        analysis["path_type"] = "加载器相对路径"
    elif library_path.startswith('@rpath/'):
        analysis["path_type"] = "运行时搜索路径"
    elif library_path.startswith('/usr/local/') or library_path.startswith('/opt/'):
        analysis["path_type"] = "本地安装路径"

    return analysis


def _calculate_library_statistics(libraries: List[Dict[str, Any]]) -> Dict[str, Any]:
    """计算库依赖统计信息"""

    stats = {
        "total_libraries": len(libraries),
        "system_libraries": 0,
        "third_party_libraries": 0,
        "frameworks": 0,
        "truncated_paths": 0,
        "load_types": {},
        "path_types": {}
    }

    for library in libraries:
        path_analysis = library["path_analysis"]
        if path_analysis["is_system_path"]:
            stats["system_libraries"] += 1
        else:
            stats["third_party_libraries"] += 1
        if path_analysis["is_framework"]:
            stats["frameworks"] += 1
        if library["path_was_truncated"]:
            stats["truncated_paths"] += 1

        load_type = library["command"]["type"]
        stats["load_types"][load_type] = stats["load_types"].get(load_type, 0) + 1
        path_type = path_analysis["path_type"]
        stats["path_types"][path_type] = stats["path_types"].get(path_type, 0) + 1

    return stats
