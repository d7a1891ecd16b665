import logging

import pytest

from builders import LIBSYSTEM, ImageBuilder, build_fat, fat_arch_offset, fat_ls, ls_image, patch_u32
from machore import (
    Analysis,
    AnalysisOptions,
    Architecture,
    ContainerKind,
    FatSliceTable,
    FileType,
    MalformedContainer,
    TruncatedInput,
    list_load_commands,
    parse_macho,
)
from machore import constants as C


def test_thin_binary():
    data = ls_image().build()
    analysis = parse_macho(data)
    assert analysis.is_multi_architecture is False
    assert analysis.container is ContainerKind.THIN
    assert analysis.failures == ()
    (arch_slice,) = analysis.slices
    assert arch_slice.index == 0
    assert arch_slice.offset == 0
    assert arch_slice.size == len(data)
    assert arch_slice.architecture is Architecture.X86_64
    assert arch_slice.file_type is FileType.EXECUTABLE
    assert [section.section_name for section in arch_slice.sections] == ["__text", "__cstring", "__bss"]


def test_dependencies_in_command_order():
    (arch_slice,) = parse_macho(ls_image().build()).slices
    assert [dependency.path for dependency in arch_slice.dependencies] == [
        "/usr/lib/libutil.dylib", "/usr/lib/libncurses.5.4.dylib", LIBSYSTEM,
    ]
    ncurses = arch_slice.dependencies[1]
    assert ncurses.version == "5.4.0"
    assert ncurses.compatibility_version == "5.4.0"
    assert ncurses.raw_version == 0x050400
    assert ncurses.timestamp == 2
    assert ncurses.command == C.LC_LOAD_DYLIB
    assert ncurses.command_name == "LC_LOAD_DYLIB"
    assert not ncurses.path_was_truncated


def test_end_to_end_fat_binary():
    data = fat_ls()
    analysis = parse_macho(data)
    assert analysis.is_multi_architecture is True
    assert analysis.container is ContainerKind.FAT32
    assert [arch_slice.architecture for arch_slice in analysis.slices] == [Architecture.X86_64, Architecture.ARM64]

    table = FatSliceTable(data)
    for arch_slice, entry in zip(analysis.slices, table):
        assert arch_slice.index == entry.index
        assert arch_slice.offset == entry.offset
        assert arch_slice.file_type is FileType.EXECUTABLE
        assert any(
            dependency.path.endswith("/libSystem.B.dylib") and dependency.version
            for dependency in arch_slice.dependencies
        )

    x86_64, arm64 = analysis.slices
    first, second = x86_64.strings[:2]
    assert first.content == "bin/ls"
    assert first.byte_length == 7
    assert second.file_absolute_offset == first.file_absolute_offset + 7
    assert data[first.file_absolute_offset:first.file_absolute_offset + 7] == b"bin/ls\x00"
    # identical layouts, so the offsets differ by the slice distance
    assert arm64.strings[0].file_absolute_offset - first.file_absolute_offset == table[1].offset - table[0].offset


def test_fat64_container():
    data = build_fat([ls_image().fat_entry(), ls_image(C.CPU_TYPE_ARM64, 0).fat_entry()], fat64=True)
    analysis = parse_macho(data)
    assert analysis.container is ContainerKind.FAT64
    assert len(analysis.slices) == 2


def test_corrupt_slice_does_not_hide_the_others(caplog):
    cputype, cpusubtype, broken = ls_image(C.CPU_TYPE_ARM64, 0).fat_entry()
    broken = patch_u32(broken, C.MACH_HEADER_64_SIZE + 4, 4)
    data = build_fat([ls_image().fat_entry(), (cputype, cpusubtype, broken)])
    with caplog.at_level(logging.WARNING, logger="machore"):
        analysis = parse_macho(data)
    assert [arch_slice.index for arch_slice in analysis.slices] == [0]
    (failure,) = analysis.failures
    assert failure.index == 1
    assert failure.offset == FatSliceTable(data)[1].offset
    assert isinstance(failure.error, MalformedContainer)
    assert "slice 1" in caplog.text


def test_out_of_bounds_entry_is_a_slice_failure():
    data = patch_u32(fat_ls(), fat_arch_offset(0) + 12, 0x7FFFFFFF, ">")
    analysis = parse_macho(data)
    assert [arch_slice.index for arch_slice in analysis.slices] == [1]
    assert analysis.failures[0].index == 0


def test_bad_fat_table_aborts():
    with pytest.raises(MalformedContainer):
        parse_macho(patch_u32(fat_ls(), 4, 5000, ">"))


def test_thin_errors_propagate():
    with pytest.raises(MalformedContainer):
        parse_macho(bytes(64))
    with pytest.raises(TruncatedInput):
        parse_macho(b"")


def test_options_flow_through():
    data = ls_image().build()
    (arch_slice,) = parse_macho(data, AnalysisOptions(path_capacity=16, max_strings=2)).slices
    assert [dependency.path_was_truncated for dependency in arch_slice.dependencies] == [True, True, True]
    assert all(len(dependency.path) == 15 for dependency in arch_slice.dependencies)
    assert len(arch_slice.strings) == 2


@pytest.mark.parametrize("kwargs", [
    {"path_capacity": 0},
    {"min_string_length": 0},
    {"max_strings": -1},
])
def test_invalid_options(kwargs):
    with pytest.raises(ValueError):
        AnalysisOptions(**kwargs)


def test_string_sections_are_normalised():
    options = AnalysisOptions(string_sections=[["__TEXT", "__const"]])
    assert options.string_sections == (("__TEXT", "__const"),)
    assert options.selects("__TEXT", "__const", False)
    assert not options.selects("__TEXT", "__cstring", True)
    assert AnalysisOptions(all_cstring_sections=True).selects("__TEXT", "__oslogstring", True)


def test_results_are_immutable_and_repeatable():
    data = bytearray(fat_ls())
    first = parse_macho(data)
    assert first == parse_macho(bytes(data))
    assert isinstance(first, Analysis)
    with pytest.raises(AttributeError):
        first.slices = ()


def test_list_load_commands():
    data = fat_ls()
    kind, listings, failures = list_load_commands(data)
    assert kind is ContainerKind.FAT32
    assert failures == []
    assert len(listings) == 2
    for listing in listings:
        assert sum(command.size for command in listing.commands) == listing.header.sizeofcmds
        assert [command.name for command in listing.commands] == [
            "LC_SEGMENT_64", "LC_SEGMENT_64", "LC_LOAD_DYLIB", "LC_LOAD_DYLIB", "LC_LOAD_DYLIB", "LC_UUID",
        ]
    assert listings[1].offset == FatSliceTable(data)[1].offset


def test_list_load_commands_thin():
    kind, listings, _ = list_load_commands(ImageBuilder().add_dylib(LIBSYSTEM).build())
    assert kind is ContainerKind.THIN
    assert listings[0].commands[0].name == "LC_LOAD_DYLIB"


def test_slice_too_small_for_its_header():
    data = build_fat([ls_image().fat_entry(), (C.CPU_TYPE_ARM64, 0, b"\xcf\xfa")])
    analysis = parse_macho(data)
    assert [arch_slice.index for arch_slice in analysis.slices] == [0]
    (failure,) = analysis.failures
    assert isinstance(failure.error, MalformedContainer)
    assert failure.error.structure == "mach_header.magic"


def test_command_count_past_slice_end():
    cputype, cpusubtype, image = ls_image(C.CPU_TYPE_ARM64, 0).fat_entry()
    image = patch_u32(image, 16, 500)
    analysis = parse_macho(build_fat([ls_image().fat_entry(), (cputype, cpusubtype, image)]))
    (failure,) = analysis.failures
    assert failure.index == 1
    assert isinstance(failure.error, MalformedContainer)
