"""
Shared helpers for Mach-O MCP tools.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Any, Dict, List, Optional, Pattern, Tuple

from machore import Analysis, AnalysisOptions, ArchSlice, MachoError, parse_macho

logger = logging.getLogger(__name__)


def error_result(message: str, suggestion: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"error": message}
    if suggestion:
        payload["suggestion"] = suggestion
    payload.update(extra)
    return payload


def validate_file_path(file_path: str) -> Optional[Dict[str, Any]]:
    if not os.path.exists(file_path):
        return error_result(
            f"文件不存在: {file_path}",
            "请检查文件路径是否正确，确保使用完整的绝对路径",
        )
    if not os.path.isfile(file_path):
        return error_result(
            f"路径不是普通文件: {file_path}",
            "请提供二进制文件本身的路径，而不是目录",
        )
    if not os.access(file_path, os.R_OK):
        return error_result(
            f"无权限读取文件: {file_path}",
            "请检查文件权限，确保当前用户有读取权限",
        )
    return None


def read_file(file_path: str) -> Tuple[Optional[bytes], Optional[Dict[str, Any]]]:
    path_error = validate_file_path(file_path)
    if path_error:
        return None, path_error
    try:
        with open(file_path, "rb") as handle:
            return handle.read(), None
    except OSError as exc:
        return None, error_result(
            f"读取文件失败: {str(exc)}",
            "请确认文件未被占用且可以完整读取",
            file_path=file_path,
        )


def macho_error_result(exc: MachoError, file_path: str) -> Dict[str, Any]:
    return error_result(
        f"解析 Mach-O 文件时发生错误: {str(exc)}",
        "文件可能已损坏、被截断或不是有效的 Mach-O 格式文件",
        file_path=file_path,
        error_type=type(exc).__name__,
        error_offset=exc.offset,
        error_structure=exc.structure,
    )


def load_macho(
    file_path: str,
    options: Optional[AnalysisOptions] = None,
) -> Tuple[Optional[Analysis], Optional[Dict[str, Any]]]:
    """读取文件并解析，返回 (analysis, error)。"""
    data, read_error = read_file(file_path)
    if read_error:
        return None, read_error
    try:
        analysis = parse_macho(data, options)
    except MachoError as exc:
        logger.info("failed to parse %s: %s", file_path, exc)
        return None, macho_error_result(exc, file_path)
    return analysis, None


def failure_entries(analysis: Analysis) -> List[Dict[str, Any]]:
    return [
        {
            "index": failure.index,
            "offset": failure.offset,
            "error": f"解析架构 {failure.index} 时发生错误: {str(failure.error)}",
            "error_type": type(failure.error).__name__,
        }
        for failure in analysis.failures
    ]


def select_slices(
    analysis: Analysis, architecture_index: Optional[int]
) -> Tuple[List[ArchSlice], Optional[Dict[str, Any]]]:
    if architecture_index is None:
        return list(analysis.slices), None
    for arch_slice in analysis.slices:
        if arch_slice.index == architecture_index:
            return [arch_slice], None
    available = [arch_slice.index for arch_slice in analysis.slices]
    return [], error_result(
        f"架构索引 {architecture_index} 不存在或解析失败",
        f"可用的架构索引: {available}",
        available_architectures=available,
    )


def slice_identity(arch_slice: ArchSlice) -> Dict[str, Any]:
    return {
        "architecture_index": arch_slice.index,
        "architecture": arch_slice.architecture.value,
        "cpu_type": hex(arch_slice.header.cpu_type),
        "cpu_subtype": hex(arch_slice.header.cpu_subtype),
    }


def format_size(size_bytes: int, precision: int = 2) -> str:
    if size_bytes == 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    size = float(size_bytes)
    unit_index = 0
    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1
    if unit_index == 0:
        return f"{int(size)} {units[unit_index]}"
    return f"{size:.{precision}f} {units[unit_index]}"


def compile_regex_filter(pattern: Optional[str]) -> Tuple[Optional[Pattern[str]], Optional[Dict[str, Any]]]:
    if not pattern:
        return None, None
    try:
        return re.compile(pattern, re.IGNORECASE), None
    except re.error as exc:
        return None, error_result(
            f"正则表达式过滤器无效: {pattern}, 错误: {str(exc)}",
            "请检查正则表达式语法，例如：'^/usr/lib/.*' 或 '.*dylib$'",
        )


def paginate_items(items: List[Any], offset: int, count: int) -> Tuple[List[Any], Dict[str, Any], Optional[Dict[str, Any]]]:
    total = len(items)
    if offset >= total and total > 0:
        return [], {}, error_result(
            f"偏移量 {offset} 超出范围，过滤后的总数为 {total}",
            f"请使用 0 到 {max(0, total - 1)} 之间的偏移量",
        )
    if count == 0:
        end_index = total
    else:
        end_index = min(offset + count, total)
    paged = items[offset:end_index]
    info = {
        "total": total,
        "requested_offset": offset,
        "requested_count": count,
        "returned_count": len(paged),
        "has_more": end_index < total,
        "next_offset": end_index if end_index < total else None,
    }
    return paged, info, None


def normalize_library_name(library_path: str) -> str:
    if not library_path:
        return "unknown"
    if ".framework/" in library_path:
        parts = library_path.split(".framework/")
        if len(parts) >= 2:
            return parts[0].split("/")[-1]
    return library_path.split("/")[-1]
