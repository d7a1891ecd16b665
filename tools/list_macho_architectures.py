"""
Mach-O Fat Binary 架构列表工具

此工具专门用于列出 Fat Binary 中的所有架构信息，提供简洁的架构概览。
适用于快速查看多架构二进制文件的架构组成，包括每个架构在文件中的偏移、大小和对齐方式。
"""

from typing import Annotated, Any, Dict, List

from pydantic import Field

from machore import Analysis, ArchSlice, FatSliceTable, MachoError, parse_macho
from machore.header import architecture_for

from .common import failure_entries, format_size, macho_error_result, read_file


_CPU_SUBTYPE_NAMES = {
    "x86_64": {3: "all", 8: "haswell"},
    "arm64": {0: "all", 1: "v8", 2: "e"},
    "arm": {0: "all", 5: "v4t", 6: "v6", 7: "v5tej", 9: "v7", 10: "v7f", 11: "v7s", 12: "v7k", 14: "v6m", 15: "v7m", 16: "v7em"},
    "x86": {3: "all"},
}


def list_macho_architectures(
    file_path: Annotated[str, Field(
        description="Mach-O文件在系统中的完整绝对路径，例如：/Applications/MyApp.app/Contents/MacOS/MyApp 或 /usr/bin/ls 或 /bin/dyld"
    )]
) -> Dict[str, Any]:
    """
    列出 Fat Binary 中的所有架构信息。

    专门用于快速查看多架构二进制文件的架构组成，提供：
    - Fat 架构表中的 CPU 类型、子类型、偏移、大小和对齐
    - 每个架构镜像的文件类型
    - 架构索引和基本属性
    - 简洁的架构汇总

    对于单架构文件也会正常显示其架构信息。
    """
    try:
        data, error = read_file(file_path)
        if error:
            return error

        try:
            analysis = parse_macho(data)
        except MachoError as exc:
            return macho_error_result(exc, file_path)

        result = {
            "file_path": file_path,
            "container": analysis.container.value,
            "is_fat_binary": analysis.is_multi_architecture,
            "architecture_count": len(analysis.slices) + len(analysis.failures),
            "architectures": []
        }

        if analysis.is_multi_architecture:
            result["fat_table"] = _extract_fat_table(data)

        for arch_slice in analysis.slices:
            result["architectures"].append(_extract_architecture_summary(arch_slice))
        result["architectures"].extend(failure_entries(analysis))

        if analysis.slices:
            result["summary"] = _generate_architecture_summary(analysis)

        return result

    except Exception as e:
        return {
            "error": f"解析文件时发生未预期的错误: {str(e)}",
            "file_path": file_path,
            "suggestion": "请检查文件格式是否正确，或联系技术支持"
        }


def _extract_fat_table(data: bytes) -> List[Dict[str, Any]]:
    """提取 Fat 架构表中每一项的原始信息"""

    table = FatSliceTable(data)
    entries = []
    for index in range(len(table)):
        try:
            entry = table[index]
        except MachoError as e:
            entries.append({"index": index, "error": f"读取架构表项 {index} 时发生错误: {str(e)}"})
            continue
        entries.append({
            "index": entry.index,
            "cpu_type": hex(entry.cpu_type),
            "cpu_type_name": architecture_for(entry.cpu_type).value,
            "cpu_subtype": hex(entry.cpu_subtype),
            "offset": entry.offset,
            "size": entry.size,
            "size_human": format_size(entry.size),
            "align": 1 << entry.align if entry.align < 64 else entry.align
        })
    return entries


def _extract_architecture_summary(arch_slice: ArchSlice) -> Dict[str, Any]:
    """提取单个架构的简要信息"""

    cpu_type_name = arch_slice.architecture.value
    cpu_subtype_name = _get_cpu_subtype_name(cpu_type_name, arch_slice.header.cpu_subtype)

    return {
        "index": arch_slice.index,
        "cpu_type": hex(arch_slice.header.cpu_type),
        "cpu_type_name": cpu_type_name,
        "cpu_subtype": hex(arch_slice.header.cpu_subtype),
        "cpu_subtype_name": cpu_subtype_name,
        "file_type": arch_slice.file_type.value,
        "is_64_bit": arch_slice.header.is_64_bit,
        "architecture_string": f"{cpu_type_name}_{cpu_subtype_name}",
        "offset": arch_slice.offset,
        "size": arch_slice.size
    }


def _generate_architecture_summary(analysis: Analysis) -> Dict[str, Any]:
    """生成架构汇总信息"""

    cpu_type_names = []
    file_types = set()
    architecture_strings = []

    for arch_slice in analysis.slices:
        summary = _extract_architecture_summary(arch_slice)
        if summary["cpu_type_name"] not in cpu_type_names:
            cpu_type_names.append(summary["cpu_type_name"])
        file_types.add(summary["file_type"])
        architecture_strings.append(summary["architecture_string"])

    return {
        "unique_cpu_type_names": cpu_type_names,
        "unique_file_types": sorted(file_types),
        "architecture_strings": architecture_strings,
        "architecture_list": ", ".join(architecture_strings)
    }


def _get_cpu_subtype_name(cpu_type_name: str, cpu_subtype: int) -> str:
    """获取 CPU 子类型的友好名称"""

    subtype = cpu_subtype & 0x00FFFFFF
    return _CPU_SUBTYPE_NAMES.get(cpu_type_name, {}).get(subtype, str(subtype))
