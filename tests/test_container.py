import pytest

from builders import ImageBuilder, build_fat, fat_arch_offset, patch_u32
from machore import ContainerKind, FatSliceTable, MalformedContainer, TruncatedInput, detect_container
from machore import constants as C


def two_slices(**kwargs):
    return build_fat([
        ImageBuilder(cputype=C.CPU_TYPE_X86_64).fat_entry(),
        ImageBuilder(cputype=C.CPU_TYPE_ARM64, cpusubtype=0).fat_entry(),
    ], **kwargs)


def test_thin_image():
    assert detect_container(ImageBuilder().build()) is ContainerKind.THIN
    assert not ContainerKind.THIN.is_fat


@pytest.mark.parametrize("byteorder", [">", "<"])
@pytest.mark.parametrize("fat64, kind", [(False, ContainerKind.FAT32), (True, ContainerKind.FAT64)])
def test_fat_magic_in_both_byte_orders(byteorder, fat64, kind):
    data = two_slices(fat64=fat64, byteorder=byteorder)
    assert detect_container(data) is kind
    table = FatSliceTable(data)
    assert table.kind is kind
    assert table.byteorder == byteorder
    assert len(table) == 2
    assert [entry.cpu_type for entry in table] == [C.CPU_TYPE_X86_64, C.CPU_TYPE_ARM64]


def test_short_buffer_is_truncated():
    with pytest.raises(TruncatedInput):
        detect_container(b"\xca\xfe")


def test_unrecognised_magic_is_left_to_the_header_parser():
    assert detect_container(bytes(4)) is ContainerKind.THIN


def test_slices_are_aligned_and_in_bounds():
    data = two_slices(align=12)
    for entry in FatSliceTable(data):
        assert entry.align == 12
        assert entry.offset % 4096 == 0
        assert entry.offset + entry.size <= len(data)


def test_table_extent_is_checked_up_front():
    data = patch_u32(two_slices(), 4, 1000, ">")
    with pytest.raises(MalformedContainer):
        FatSliceTable(data)


def test_bad_entry_only_fails_its_own_lookup():
    data = patch_u32(two_slices(), fat_arch_offset(1) + 12, 0x7FFFFFFF, ">")
    table = FatSliceTable(data)
    assert table[0].cpu_type == C.CPU_TYPE_X86_64
    with pytest.raises(MalformedContainer):
        table[1]


def test_entry_offset_past_end():
    data = patch_u32(two_slices(), fat_arch_offset(0) + 8, 0xFFFFFF00, ">")
    with pytest.raises(MalformedContainer):
        FatSliceTable(data)[0]


def test_iteration_can_restart():
    table = FatSliceTable(two_slices())
    assert list(table) == list(table)


def test_index_out_of_range():
    with pytest.raises(IndexError):
        FatSliceTable(two_slices())[2]


def test_slice_cursor_covers_the_entry():
    table = FatSliceTable(two_slices())
    entry = table[1]
    cursor = table.slice_cursor(entry)
    assert cursor.start == entry.offset
    assert len(cursor) == entry.size


def test_thin_image_has_no_fat_table():
    with pytest.raises(MalformedContainer):
        FatSliceTable(ImageBuilder().build())


def test_fat_header_cut_short():
    with pytest.raises(MalformedContainer):
        FatSliceTable(b"\xca\xfe\xba\xbe")
