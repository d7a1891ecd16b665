"""
Mach-O 文件信息解析工具

此工具用于解析 Mach-O 文件的基本信息，包括容器类型、各架构的 CPU 类型、文件类型、
依赖库数量和字符串数量等核心属性。支持 Fat Binary 和单架构文件。
"""

import os
from typing import Annotated, Any, Dict, List

from pydantic import Field

from machore import Analysis, ArchSlice

from .common import failure_entries, format_size, load_macho, slice_identity


def parse_macho_info(
    file_path: Annotated[str, Field(
        description="Mach-O文件在系统中的完整绝对路径，例如：/Applications/MyApp.app/Contents/MacOS/MyApp 或 /usr/bin/ls 或 /bin/dyld"
    )]
) -> Dict[str, Any]:
    """
    解析 Mach-O 文件的基本信息。

    返回内容包括：
    - 容器类型（单架构 / 32位 Fat / 64位 Fat）
    - 每个架构的 CPU 类型、文件类型、加载命令数量
    - 依赖库数量、节数量、提取到的字符串数量
    - 解析失败的架构及其错误原因

    Fat Binary 中某个架构损坏时，其他架构的结果仍会正常返回。
    """
    try:
        analysis, error = load_macho(file_path)
        if error:
            return error

        file_size = os.path.getsize(file_path)
        result = {
            "file_path": file_path,
            "file_size": file_size,
            "file_size_human": format_size(file_size),
            "container": analysis.container.value,
            "is_fat_binary": analysis.is_multi_architecture,
            "architecture_count": len(analysis.slices) + len(analysis.failures),
            "architectures": [_extract_architecture_info(arch_slice) for arch_slice in analysis.slices],
        }
        if analysis.failures:
            result["failed_architectures"] = failure_entries(analysis)

        result["summary"] = _generate_summary(analysis)
        return result

    except Exception as e:
        return {
            "error": f"解析文件时发生未预期的错误: {str(e)}",
            "file_path": file_path,
            "suggestion": "请检查文件格式是否正确，或联系技术支持"
        }


def _extract_architecture_info(arch_slice: ArchSlice) -> Dict[str, Any]:
    """提取单个架构的概要信息"""

    arch_info = slice_identity(arch_slice)
    arch_info.update({
        "file_type": arch_slice.file_type.value,
        "is_64_bit": arch_slice.header.is_64_bit,
        "slice_offset": arch_slice.offset,
        "slice_size": arch_slice.size,
    })

    arch_info["statistics"] = {
        "load_commands_count": arch_slice.header.ncmds,
        "load_commands_size": arch_slice.header.sizeofcmds,
        "sections_count": len(arch_slice.sections),
        "libraries_count": len(arch_slice.dependencies),
        "strings_count": len(arch_slice.strings),
    }

    arch_info["libraries"] = [
        {"name": dependency.path, "current_version": dependency.version}
        for dependency in arch_slice.dependencies
    ]
    return arch_info


def _generate_summary(analysis: Analysis) -> Dict[str, Any]:
    """生成架构汇总信息"""

    architectures: List[str] = []
    file_types = set()
    libraries = set()
    for arch_slice in analysis.slices:
        architectures.append(arch_slice.architecture.value)
        file_types.add(arch_slice.file_type.value)
        libraries.update(dependency.path for dependency in arch_slice.dependencies)

    return {
        "architectures": architectures,
        "unique_file_types": sorted(file_types),
        "unique_libraries_count": len(libraries),
        "parsed_architectures": len(analysis.slices),
        "failed_architectures": len(analysis.failures),
    }
