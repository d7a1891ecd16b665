"""
Mach-O format constants, taken from <mach-o/loader.h> and <mach-o/fat.h>.
"""

# Fat (universal) container magics, as read big-endian
FAT_MAGIC = 0xCAFEBABE
FAT_CIGAM = 0xBEBAFECA
FAT_MAGIC_64 = 0xCAFEBABF
FAT_CIGAM_64 = 0xBFBAFECA

# Image header magics, as read little-endian
MH_MAGIC = 0xFEEDFACE
MH_CIGAM = 0xCEFAEDFE
MH_MAGIC_64 = 0xFEEDFACF
MH_CIGAM_64 = 0xCFFAEDFE

FAT_HEADER_SIZE = 8
FAT_ARCH_SIZE = 20
FAT_ARCH_64_SIZE = 32

MACH_HEADER_SIZE = 28
MACH_HEADER_64_SIZE = 32

# CPU types
CPU_ARCH_ABI64 = 0x01000000
CPU_TYPE_X86 = 0x7
CPU_TYPE_X86_64 = CPU_TYPE_X86 | CPU_ARCH_ABI64
CPU_TYPE_ARM = 0xC
CPU_TYPE_ARM64 = CPU_TYPE_ARM | CPU_ARCH_ABI64
CPU_TYPE_POWERPC = 0x12
CPU_TYPE_POWERPC64 = CPU_TYPE_POWERPC | CPU_ARCH_ABI64

# File types
MH_OBJECT = 0x1
MH_EXECUTE = 0x2
MH_FVMLIB = 0x3
MH_CORE = 0x4
MH_PRELOAD = 0x5
MH_DYLIB = 0x6
MH_DYLINKER = 0x7
MH_BUNDLE = 0x8
MH_DYLIB_STUB = 0x9
MH_DSYM = 0xA
MH_KEXT_BUNDLE = 0xB

LC_REQ_DYLD = 0x80000000

# Load commands
LOAD_COMMAND_SIZE = 8

LC_SEGMENT = 0x1
LC_SYMTAB = 0x2
LC_THREAD = 0x4
LC_UNIXTHREAD = 0x5
LC_DYSYMTAB = 0xB
LC_LOAD_DYLIB = 0xC
LC_ID_DYLIB = 0xD
LC_LOAD_DYLINKER = 0xE
LC_ID_DYLINKER = 0xF
LC_SUB_FRAMEWORK = 0x12
LC_SUB_CLIENT = 0x14
LC_LOAD_WEAK_DYLIB = 0x18 | LC_REQ_DYLD
LC_SEGMENT_64 = 0x19
LC_UUID = 0x1B
LC_RPATH = 0x1C | LC_REQ_DYLD
LC_CODE_SIGNATURE = 0x1D
LC_SEGMENT_SPLIT_INFO = 0x1E
LC_REEXPORT_DYLIB = 0x1F | LC_REQ_DYLD
LC_LAZY_LOAD_DYLIB = 0x20
LC_ENCRYPTION_INFO = 0x21
LC_DYLD_INFO = 0x22
LC_DYLD_INFO_ONLY = 0x22 | LC_REQ_DYLD
LC_LOAD_UPWARD_DYLIB = 0x23 | LC_REQ_DYLD
LC_VERSION_MIN_MACOSX = 0x24
LC_VERSION_MIN_IPHONEOS = 0x25
LC_FUNCTION_STARTS = 0x26
LC_DYLD_ENVIRONMENT = 0x27
LC_MAIN = 0x28 | LC_REQ_DYLD
LC_DATA_IN_CODE = 0x29
LC_SOURCE_VERSION = 0x2A
LC_DYLIB_CODE_SIGN_DRS = 0x2B
LC_ENCRYPTION_INFO_64 = 0x2C
LC_BUILD_VERSION = 0x32
LC_DYLD_EXPORTS_TRIE = 0x33 | LC_REQ_DYLD
LC_DYLD_CHAINED_FIXUPS = 0x34 | LC_REQ_DYLD

LOAD_COMMAND_NAMES = {
    value: name
    for name, value in list(globals().items())
    if name.startswith("LC_") and name != "LC_REQ_DYLD"
}

# Commands that declare a shared library dependency or identity
DYLIB_COMMANDS = frozenset([
    LC_LOAD_DYLIB,
    LC_LOAD_WEAK_DYLIB,
    LC_ID_DYLIB,
    LC_REEXPORT_DYLIB,
    LC_LOAD_UPWARD_DYLIB,
    LC_LAZY_LOAD_DYLIB,
])

DYLIB_COMMAND_SIZE = 24

SEGMENT_COMMAND_SIZE = 56
SEGMENT_COMMAND_64_SIZE = 72
SECTION_SIZE = 68
SECTION_64_SIZE = 80

# Section types (low byte of section flags)
SECTION_TYPE = 0x000000FF
S_REGULAR = 0x0
S_ZEROFILL = 0x1
S_CSTRING_LITERALS = 0x2
S_GB_ZEROFILL = 0xC
S_THREAD_LOCAL_ZEROFILL = 0x12

ZEROFILL_SECTION_TYPES = frozenset([S_ZEROFILL, S_GB_ZEROFILL, S_THREAD_LOCAL_ZEROFILL])
