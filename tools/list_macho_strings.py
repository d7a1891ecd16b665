"""
Mach-O 字符串列表工具

此工具专门用于列出 Mach-O 文件 C 字符串节（默认 __TEXT,__cstring）中的可打印字符串，
包括字符串内容、长度、来源节和文件绝对偏移。支持节选择、最小长度、正则过滤和分页。
"""

from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field

from machore import AnalysisOptions, ArchSlice, ExtractedString

from .common import (
    compile_regex_filter,
    error_result,
    failure_entries,
    load_macho,
    paginate_items,
    select_slices,
    slice_identity,
)


def list_macho_strings(
    file_path: Annotated[str, Field(
        description="Mach-O文件在系统中的完整绝对路径，例如：/Applications/MyApp.app/Contents/MacOS/MyApp 或 /usr/bin/ls 或 /bin/dyld"
    )],
    offset: Annotated[int, Field(
        description="起始位置偏移量，从第几个字符串开始返回（从0开始计数）",
        ge=0
    )] = 0,
    count: Annotated[int, Field(
        description="返回的字符串数量，最大500条，0表示返回所有剩余字符串",
        ge=0,
        le=500
    )] = 100,
    string_filter: Annotated[Optional[str], Field(
        description="字符串内容过滤器，支持正则表达式匹配。例如：'http' 或 '^/usr/.*' 或 '%[sd]'"
    )] = None,
    architecture_index: Annotated[Optional[int], Field(
        description="对于Fat Binary文件，指定要分析的架构索引（从0开始）。不指定则返回所有架构",
        ge=0
    )] = None,
    segment_name: Annotated[str, Field(
        description="要扫描的节所属的段名称，例如：__TEXT"
    )] = "__TEXT",
    section_name: Annotated[str, Field(
        description="要扫描的节名称，例如：__cstring、__oslogstring"
    )] = "__cstring",
    all_cstring_sections: Annotated[bool, Field(
        description="是否扫描所有类型为 S_CSTRING_LITERALS 的节（不限于指定的段和节名称）"
    )] = False,
    min_length: Annotated[int, Field(
        description="字符串的最小长度（不含结尾的 NUL），短于此长度的字符串会被忽略",
        ge=1,
        le=4096
    )] = 1
) -> Dict[str, Any]:
    """
    列出 Mach-O 文件中 C 字符串节的可打印字符串。

    字符串定义为以 NUL 结尾的最长可打印 ASCII 片段（含制表符、换行符和回车符），提供：
    - 字符串内容和字节长度（含结尾的 NUL）
    - 来源段和节名称
    - 字符串在整个文件中的绝对偏移
    - 按来源节统计的字符串数量

    支持单架构和 Fat Binary 文件的字符串提取。
    """
    try:
        if not segment_name or not section_name:
            return error_result(
                "段名称和节名称不能为空",
                "请提供有效的段和节名称，例如：__TEXT 和 __cstring"
            )

        regex_filter, regex_error = compile_regex_filter(string_filter)
        if regex_error:
            return regex_error

        options = AnalysisOptions(
            string_sections=((segment_name, section_name),),
            all_cstring_sections=all_cstring_sections,
            min_string_length=min_length,
        )
        analysis, error = load_macho(file_path, options)
        if error:
            return error

        slices, select_error = select_slices(analysis, architecture_index)
        if select_error:
            return select_error

        result = {
            "file_path": file_path,
            "is_fat_binary": analysis.is_multi_architecture,
            "architecture_count": len(analysis.slices) + len(analysis.failures),
            "scanned_sections": {
                "segment_name": segment_name,
                "section_name": section_name,
                "all_cstring_sections": all_cstring_sections
            },
            "architectures": []
        }

        for arch_slice in slices:
            result["architectures"].append(
                _extract_strings_info(arch_slice, options, offset, count, regex_filter, string_filter)
            )

        if architecture_index is None:
            result["architectures"].extend(failure_entries(analysis))

        return result

    except Exception as e:
        return {
            "error": f"提取字符串时发生未预期的错误: {str(e)}",
            "file_path": file_path,
            "suggestion": "请检查文件格式是否正确，或联系技术支持"
        }


def _extract_strings_info(
    arch_slice: ArchSlice,
    options: AnalysisOptions,
    offset: int,
    count: int,
    regex_filter,
    string_filter: Optional[str]
) -> Dict[str, Any]:
    """提取单个架构的字符串信息，支持分页和过滤"""

    matched = [
        extracted for extracted in arch_slice.strings
        if not regex_filter or regex_filter.search(extracted.content)
    ]

    arch_info = slice_identity(arch_slice)
    arch_info["scanned_sections"] = [
        f"{section.segment_name},{section.section_name}"
        for section in arch_slice.sections
        if not section.is_zerofill
        and options.selects(section.segment_name, section.section_name, section.is_cstring_literals)
    ]

    paged_strings, pagination_info, page_error = paginate_items(matched, offset, count)
    if page_error:
        arch_info.update(page_error)
        return arch_info

    pagination_info["total_strings_in_binary"] = len(arch_slice.strings)
    arch_info.update({
        "pagination_info": pagination_info,
        "filter_info": {
            "string_filter": string_filter,
            "filter_applied": string_filter is not None
        },
        "strings": [_extract_single_string_info(extracted) for extracted in paged_strings],
        "string_statistics": _calculate_string_statistics(matched)
    })
    return arch_info


def _extract_single_string_info(extracted: ExtractedString) -> Dict[str, Any]:
    return {
        "content": extracted.content,
        "byte_length": extracted.byte_length,
        "section": f"{extracted.source_segment},{extracted.source_section}",
        "file_offset": extracted.file_absolute_offset,
        "file_offset_hex": hex(extracted.file_absolute_offset)
    }


def _calculate_string_statistics(strings: List[ExtractedString]) -> Dict[str, Any]:
    """计算字符串统计信息"""

    stats: Dict[str, Any] = {
        "total_strings": len(strings),
        "total_bytes": sum(extracted.byte_length for extracted in strings),
        "longest_string_length": 0,
        "multiline_strings": 0,
        "by_section": {}
    }

    for extracted in strings:
        length = extracted.byte_length - 1
        if length > stats["longest_string_length"]:
            stats["longest_string_length"] = length
        if "\n" in extracted.content:
            stats["multiline_strings"] += 1
        section = f"{extracted.source_segment},{extracted.source_section}"
        stats["by_section"][section] = stats["by_section"].get(section, 0) + 1

    return stats
