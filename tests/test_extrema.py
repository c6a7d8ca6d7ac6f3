import math

import numpy as np
import pytest

from igridsift.errors import ExtremumFormatError
from igridsift.extrema import Extremum, ExtremumTable, load_extrema, wrap_angle


def _table():
    return ExtremumTable(
        [
            Extremum(10.0, 12.0, 1.6, octave=0, orientations=(0.1, 2.0), level=1),
            Extremum(30.0, 5.5, 2.1, octave=1, orientations=(1.0,)),
            Extremum(20.0, 22.0, 1.8, octave=0, orientations=(3.0,), level=2),
            Extremum(40.0, 41.0, 1.9, octave=0, orientations=()),
            Extremum(8.0, 9.0, 1.7, octave=0, orientations=(-0.5,)),
        ]
    )


def test_counts_follow_orientations():
    table = _table()
    assert table.orientation_count(0) == 4
    assert table.orientation_count(1) == 1
    assert table.orientation_count(5) == 0
    assert table.counts_by_octave() == {0: 4, 1: 1}
    assert table.octaves() == [0, 1]


def test_pairs_enumerate_keypoint_then_orientation():
    pairs = _table().enumerate_pairs(0)
    assert len(pairs) == 4
    np.testing.assert_array_equal(pairs.index, [[0, 0], [0, 1], [2, 0], [4, 0]])
    np.testing.assert_allclose(pairs.pairs[:, 3], [0.1, 2.0, 3.0, 2 * math.pi - 0.5], rtol=1e-6)
    np.testing.assert_array_equal(pairs.pairs[:, 4], [1, 1, 2, 0])
    assert pairs.pairs.dtype == np.float32


def test_empty_octave_enumerates_nothing():
    pairs = _table().enumerate_pairs(3)
    assert len(pairs) == 0
    assert pairs.pairs.shape == (0, 5)
    assert pairs.index.shape == (0, 2)


def test_wrap_angle():
    assert wrap_angle(-math.pi / 2) == pytest.approx(1.5 * math.pi)
    assert wrap_angle(5 * math.pi) == pytest.approx(math.pi)
    assert 0.0 <= wrap_angle(-1e-300) < 2 * math.pi


def test_too_many_orientations_rejected():
    e = Extremum(1.0, 1.0, 1.0, octave=0, orientations=(0, 1, 2, 3, 4))
    with pytest.raises(ValueError, match="5 orientations"):
        ExtremumTable([e], max_orientations=4)


def test_invalid_extremum():
    with pytest.raises(ValueError):
        Extremum(1.0, 1.0, 0.0, octave=0)
    with pytest.raises(ValueError):
        Extremum(float("nan"), 1.0, 1.0, octave=0)


def test_load_extrema(tmp_path):
    path = tmp_path / "kp.txt"
    path.write_text(
        "# octave level x y sigma theta...\n"
        "0 1 10.5 12.25 1.6 0.1 2.0\n"
        "\n"
        "1 0 3 4 2.0   # no orientation\n"
    )
    table = load_extrema(path)
    assert len(table) == 2
    assert table[0].orientations == (0.1, 2.0)
    assert table[0].level == 1
    assert table[1].orientation_count == 0
    assert table.counts_by_octave() == {0: 2, 1: 0}


def test_load_extrema_reports_line(tmp_path):
    path = tmp_path / "kp.txt"
    path.write_text("0 0 1 2 1.5 0.3\n0 0 oops 2 1.5\n")
    with pytest.raises(ExtremumFormatError, match="kp.txt:2"):
        load_extrema(path)
