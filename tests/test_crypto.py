import pytest

from dslm.crypto import RANDOM_MAX_LEN, generate_random


def test_requested_length():
    assert len(generate_random(8)) == 8


def test_length_capped():
    assert len(generate_random(RANDOM_MAX_LEN * 3)) == RANDOM_MAX_LEN


def test_zero_length():
    assert generate_random(0) == b""


def test_values_differ():
    values = [generate_random(RANDOM_MAX_LEN) for _ in range(5)]
    assert all(len(value) == RANDOM_MAX_LEN for value in values)
    assert len(set(values)) == 5


def test_negative_length():
    with pytest.raises(ValueError):
        generate_random(-1)