import random

import pytest

from builders import ImageBuilder, build_fat, fat_ls, ls_image
from machore import MalformedContainer, TruncatedInput, list_load_commands, parse_macho
from machore import constants as C

SAMPLES = {
    "thin64": ls_image().build(),
    "thin32_big": (
        ImageBuilder(cputype=C.CPU_TYPE_ARM, is_64=False, byteorder=">")
        .set_cstrings(["hello", "world"])
        .add_dylib("/usr/lib/libSystem.B.dylib")
        .build()
    ),
    "fat32": fat_ls(),
    "fat64": build_fat([ls_image().fat_entry()], fat64=True, align=4),
}


def parse_or_fail_cleanly(data):
    # only a buffer too short for any magic is reported as truncated
    expected = TruncatedInput if len(data) < 4 else MalformedContainer
    try:
        failures = parse_macho(data).failures
    except expected:
        failures = ()
    assert all(isinstance(failure.error, MalformedContainer) for failure in failures)
    try:
        failures = list_load_commands(data)[2]
    except expected:
        failures = []
    assert all(isinstance(failure.error, MalformedContainer) for failure in failures)


@pytest.mark.parametrize("name", sorted(SAMPLES))
def test_truncations(name):
    data = SAMPLES[name]
    step = max(1, len(data) // 400)
    for length in range(0, len(data), step):
        parse_or_fail_cleanly(data[:length])


@pytest.mark.parametrize("name", sorted(SAMPLES))
@pytest.mark.parametrize("seed", range(25))
def test_random_mutations(name, seed):
    rng = random.Random(seed)
    original = SAMPLES[name]
    for _ in range(20):
        data = bytearray(original)
        for _ in range(rng.randint(1, 8)):
            position = rng.randrange(min(len(data), 600))
            data[position] = rng.randrange(256)
        parse_or_fail_cleanly(bytes(data))


@pytest.mark.parametrize("seed", range(10))
def test_mutated_slice_headers(seed):
    rng = random.Random(seed)
    original = SAMPLES["fat32"]
    offsets = [4096, 8192]
    for _ in range(20):
        data = bytearray(original)
        start = rng.choice(offsets)
        for _ in range(rng.randint(1, 6)):
            data[start + rng.randrange(256)] = rng.randrange(256)
        parse_or_fail_cleanly(bytes(data))
