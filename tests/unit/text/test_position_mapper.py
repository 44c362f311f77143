"""PositionMapper conversions between graphemes, UTF-16 units and bytes."""

import pytest

from hybrid_grammar.text import Coordinate, PositionMapper

pytestmark = pytest.mark.unit

# "é" as e + combining acute (2 units), "a", an astral emoji (2 units), "b"
MIXED = "e\u0301a\U0001f600b"


class TestClusterMapping:
    def test_totals_for_mixed_text(self):
        mapper = PositionMapper(MIXED)

        assert mapper.total_clusters == 4
        assert mapper.total_units == 6
        assert mapper.total_bytes == 9

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "plain ascii",
            MIXED,
            "👩‍👩‍👧 family and 🇫🇷 flag",
            "Ångström naïve café",
        ],
    )
    def test_grapheme_unit_round_trip(self, text):
        mapper = PositionMapper(text)

        for i in range(mapper.total_clusters + 1):
            assert mapper.unit_to_grapheme(mapper.grapheme_to_unit(i)) == i

    def test_unit_inside_cluster_maps_to_that_cluster(self):
        mapper = PositionMapper(MIXED)

        # Unit 1 is the combining mark, unit 4 the low surrogate of the emoji
        assert mapper.unit_to_grapheme(1) == 0
        assert mapper.unit_to_grapheme(4) == 2

    def test_lookups_clamp_out_of_range_inputs(self):
        mapper = PositionMapper(MIXED)

        assert mapper.grapheme_to_unit(-3) == 0
        assert mapper.grapheme_to_unit(99) == 6
        assert mapper.unit_to_grapheme(99) == 4

    def test_empty_text(self):
        mapper = PositionMapper("")

        assert mapper.total_units == 0
        assert mapper.grapheme_to_unit(5) == 0
        assert mapper.slice_units(0, 10) == ""


class TestCodePointMapping:
    def test_index_to_unit_accounts_for_surrogate_pairs(self):
        mapper = PositionMapper(MIXED)

        assert [mapper.index_to_unit(i) for i in range(len(MIXED) + 1)] == [
            0,
            1,
            2,
            3,
            5,
            6,
        ]

    def test_unit_to_index_inside_surrogate_pair(self):
        mapper = PositionMapper(MIXED)

        assert mapper.unit_to_index(3) == 3
        assert mapper.unit_to_index(4) == 3
        assert mapper.unit_to_index(5) == 4

    def test_slice_units_returns_whole_emoji(self):
        mapper = PositionMapper(MIXED)

        assert mapper.slice_units(3, 5) == "\U0001f600"


class TestByteMapping:
    def test_grapheme_to_byte(self):
        mapper = PositionMapper(MIXED)

        assert [mapper.grapheme_to_byte(i) for i in range(5)] == [0, 3, 4, 8, 9]

    def test_byte_inside_cluster_maps_to_that_cluster(self):
        mapper = PositionMapper(MIXED)

        assert mapper.byte_to_grapheme(5) == 2
        assert mapper.byte_to_grapheme(0) == 0
        assert mapper.byte_to_grapheme(100) == 4

    def test_coordinate_reports_all_three_systems(self):
        mapper = PositionMapper(MIXED)

        assert mapper.coordinate(2) == Coordinate(grapheme=2, utf16=3, byte=4)


class TestRanges:
    def test_validate_range_clamps(self):
        mapper = PositionMapper(MIXED)

        assert mapper.validate_range(-5, 100) == (0, 6)
        assert mapper.validate_range(4, 2) == (4, 4)

    def test_validate_utf16_range_rejects_split_clusters(self):
        mapper = PositionMapper(MIXED)

        assert mapper.validate_utf16_range(0, 2).valid
        assert not mapper.validate_utf16_range(4, 5).valid
        check = mapper.validate_utf16_range(1, 3)
        assert not check.valid
        assert "start" in check.reason

    def test_validate_utf16_range_rejects_out_of_bounds(self):
        check = PositionMapper(MIXED).validate_utf16_range(0, 7)

        assert not check.valid
        assert "outside" in check.reason

    def test_snap_to_clusters_widens_to_boundaries(self):
        mapper = PositionMapper(MIXED)

        assert mapper.snap_to_clusters(1, 4) == (0, 5)
        assert mapper.snap_to_clusters(2, 3) == (2, 3)

    def test_debug_info(self):
        info = PositionMapper(MIXED).debug_info()

        assert info["total_graphemes"] == 4
        assert info["total_utf16_units"] == 6
        assert info["total_bytes"] == 9
        assert len(info["sample_mappings"]) == 4
        assert info["sample_mappings"][3] == {"grapheme": 3, "utf16": 5, "byte": 8}
