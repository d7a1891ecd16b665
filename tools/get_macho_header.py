"""
Mach-O 头部信息获取工具

此工具专门用于获取 Mach-O 文件的头部信息，包括魔数、CPU类型、文件类型、标志位等关键头部数据。
提供详细的头部结构解析，帮助理解二进制文件的基本属性和特征。
"""

from typing import Annotated, Any, Dict, List

from pydantic import Field

from machore import ArchSlice, ImageHeader
from machore import constants as C
from machore.cursor import BIG_ENDIAN

from .common import failure_entries, load_macho


_MAGIC_NAMES = {
    C.MH_MAGIC: ("MH_MAGIC", "32-bit Mach-O binary"),
    C.MH_MAGIC_64: ("MH_MAGIC_64", "64-bit Mach-O binary"),
    C.MH_CIGAM: ("MH_CIGAM", "32-bit Mach-O binary, reverse byte order"),
    C.MH_CIGAM_64: ("MH_CIGAM_64", "64-bit Mach-O binary, reverse byte order"),
}

_CPU_TYPE_DESCRIPTIONS = {
    C.CPU_TYPE_X86: "Intel x86 架构",
    C.CPU_TYPE_X86_64: "Intel x86-64 架构",
    C.CPU_TYPE_ARM: "ARM 架构",
    C.CPU_TYPE_ARM64: "ARM64 架构",
    C.CPU_TYPE_POWERPC: "PowerPC 架构",
    C.CPU_TYPE_POWERPC64: "PowerPC 64位架构",
}

_FILE_TYPE_DESCRIPTIONS = {
    C.MH_OBJECT: ("MH_OBJECT", "目标文件 (.o)"),
    C.MH_EXECUTE: ("MH_EXECUTE", "可执行文件"),
    C.MH_FVMLIB: ("MH_FVMLIB", "固定虚拟内存共享库"),
    C.MH_CORE: ("MH_CORE", "核心转储文件"),
    C.MH_PRELOAD: ("MH_PRELOAD", "预加载可执行文件"),
    C.MH_DYLIB: ("MH_DYLIB", "动态库 (.dylib)"),
    C.MH_DYLINKER: ("MH_DYLINKER", "动态链接器"),
    C.MH_BUNDLE: ("MH_BUNDLE", "Bundle 文件"),
    C.MH_DYLIB_STUB: ("MH_DYLIB_STUB", "动态库存根"),
    C.MH_DSYM: ("MH_DSYM", "调试符号文件"),
    C.MH_KEXT_BUNDLE: ("MH_KEXT_BUNDLE", "内核扩展"),
}

_HEADER_FLAGS = [
    (0x1, "MH_NOUNDEFS", "文件中没有未定义的符号"),
    (0x2, "MH_INCRLINK", "文件是增量链接的输出"),
    (0x4, "MH_DYLDLINK", "文件被动态链接器链接"),
    (0x8, "MH_BINDATLOAD", "文件在加载时绑定未定义的引用"),
    (0x10, "MH_PREBOUND", "文件已预绑定"),
    (0x20, "MH_SPLIT_SEGS", "文件的只读和读写段分离"),
    (0x40, "MH_LAZY_INIT", "共享库的初始化例程在第一次使用时调用"),
    (0x80, "MH_TWOLEVEL", "文件使用两级名称空间绑定"),
    (0x100, "MH_FORCE_FLAT", "可执行文件强制使用平面名称空间绑定"),
    (0x200, "MH_NOMULTIDEFS", "文件中没有多重定义的符号"),
    (0x400, "MH_NOFIXPREBINDING", "不要通知预绑定代理"),
    (0x800, "MH_PREBINDABLE", "二进制文件可重新预绑定"),
    (0x1000, "MH_ALLMODSBOUND", "指示动态链接器所有模块都已绑定"),
    (0x2000, "MH_SUBSECTIONS_VIA_SYMBOLS", "安全地将文件分成子段"),
    (0x4000, "MH_CANONICAL", "二进制文件已规范化"),
    (0x8000, "MH_WEAK_DEFINES", "最终链接的镜像包含外部弱符号"),
    (0x10000, "MH_BINDS_TO_WEAK", "最终链接的镜像使用弱符号"),
    (0x20000, "MH_ALLOW_STACK_EXECUTION", "当此位设置时，所有栈都是可执行的"),
    (0x40000, "MH_ROOT_SAFE", "二进制文件对于 root 进程是安全的"),
    (0x80000, "MH_SETUID_SAFE", "二进制文件对于使用setuid的程序是安全的"),
    (0x100000, "MH_NO_REEXPORTED_DYLIBS", "此可执行文件不重新导出任何动态库"),
    (0x200000, "MH_PIE", "加载时随机化虚拟内存地址"),
    (0x400000, "MH_DEAD_STRIPPABLE_DYLIB", "包含可以安全删除的死代码"),
    (0x800000, "MH_HAS_TLV_DESCRIPTORS", "包含线程局部变量描述符段"),
    (0x1000000, "MH_NO_HEAP_EXECUTION", "没有堆执行"),
]


def get_macho_header(
    file_path: Annotated[str, Field(
        description="Mach-O文件在系统中的完整绝对路径，例如：/Applications/MyApp.app/Contents/MacOS/MyApp 或 /usr/bin/ls 或 /bin/dyld"
    )]
) -> Dict[str, Any]:
    """
    获取 Mach-O 文件的头部信息，包括文件类型、CPU类型、标志位等关键头部数据。

    该工具解析 Mach-O 文件头部结构，提供：
    - 魔数（Magic Number）及字节序
    - CPU 类型和子类型
    - 文件类型分类
    - 加载命令数量和总大小
    - 头部标志位解析

    支持单架构和 Fat Binary 文件的头部信息提取。
    """
    try:
        analysis, error = load_macho(file_path)
        if error:
            return error

        result = {
            "file_path": file_path,
            "is_fat_binary": analysis.is_multi_architecture,
            "architecture_count": len(analysis.slices) + len(analysis.failures),
            "headers": [_extract_header_info(arch_slice) for arch_slice in analysis.slices]
        }
        result["headers"].extend(failure_entries(analysis))
        return result

    except Exception as e:
        return {
            "error": f"解析文件头部时发生未预期的错误: {str(e)}",
            "file_path": file_path,
            "suggestion": "请检查文件格式是否正确，或联系技术支持"
        }


def _extract_header_info(arch_slice: ArchSlice) -> Dict[str, Any]:
    """提取单个架构的头部详细信息"""

    header = arch_slice.header
    magic_name, magic_description = _MAGIC_NAMES[header.magic]
    file_type_name, file_type_description = _FILE_TYPE_DESCRIPTIONS.get(
        header.file_type, (hex(header.file_type), f"文件类型: {hex(header.file_type)}")
    )

    return {
        "architecture_index": arch_slice.index,
        "slice_offset": arch_slice.offset,
        "magic": {
            "value": hex(header.magic),
            "name": magic_name,
            "description": magic_description
        },
        "cpu_type": {
            "value": hex(header.cpu_type),
            "name": arch_slice.architecture.value,
            "description": _CPU_TYPE_DESCRIPTIONS.get(header.cpu_type, f"CPU架构: {hex(header.cpu_type)}")
        },
        "cpu_subtype": {
            "value": hex(header.cpu_subtype),
            "capability_bits": hex(header.cpu_subtype & 0xFF000000),
            "subtype": header.cpu_subtype & 0x00FFFFFF
        },
        "file_type": {
            "value": header.file_type,
            "name": file_type_name,
            "kind": arch_slice.file_type.value,
            "description": file_type_description
        },
        "load_commands_count": header.ncmds,
        "load_commands_size": header.sizeofcmds,
        "flags": {
            "value": header.flags,
            "hex": hex(header.flags),
            "parsed_flags": _parse_header_flags(header.flags)
        },
        "header_size": header.size,
        "architecture_info": {
            "is_64bit": header.is_64_bit,
            "endianness": _get_endianness(header),
        }
    }


def _parse_header_flags(flags: int) -> List[Dict[str, Any]]:
    """解析头部标志位"""

    parsed_flags = []
    for flag_value, flag_name, description in _HEADER_FLAGS:
        if flags & flag_value:
            parsed_flags.append({
                "flag": flag_name,
                "value": hex(flag_value),
                "description": description
            })
    return parsed_flags


def _get_endianness(header: ImageHeader) -> str:
    return "big_endian" if header.byteorder == BIG_ENDIAN else "little_endian"
