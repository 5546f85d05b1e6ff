"""Tests for the metadata projection, facets, filters and lookup index."""

from conftest import SAMPLE_ROWS, TITLED_ROWS
from sheetcatalog.filters import filter_row_numbers
from sheetcatalog.metadata import SlugIndex, build_meta, compute_facets, unique_sorted
from sheetcatalog.models import FilterSpec, MetaRow


def _meta():
    return build_meta([row[:6] for row in SAMPLE_ROWS])


def test_untitled_rows_are_excluded_from_meta():
    meta = _meta()

    assert [row.row_number for row in meta.rows] == TITLED_ROWS


def test_meta_slug_matches_parser_slug():
    rows = {row.row_number: row for row in _meta().rows}

    assert rows[3].slug == "custom-slug"
    assert rows[2].slug == "nike-air-max"


def test_facets_are_sorted_and_deduplicated():
    facets = _meta().facets

    assert facets.brands == ["Adidas", "Brand0", "Brand1", "Brand2", "Nike", "Stüssy"]
    assert facets.categories == ["Hoodies", "Jackets", "Misc", "Shoes"]
    assert facets.sellers == ["Alpha", "Beta", "Delta", "Gamma"]


def test_facet_casing_is_preserved_not_rewritten():
    """Row sets differing only in brand casing expose different facet values."""

    upper = compute_facets([MetaRow(row_number=2, id="1", slug="a", title="A", brand="Nike")])
    lower = compute_facets([MetaRow(row_number=2, id="1", slug="a", title="A", brand="nike")])

    assert upper.brands == ["Nike"]
    assert lower.brands == ["nike"]
    assert upper.brands != lower.brands


def test_unique_sorted_skips_blanks():
    assert unique_sorted(["b", "", "  ", "A", "a"]) == ["A", "b"]


def test_filter_without_constraints_keeps_sheet_order():
    assert filter_row_numbers(_meta().rows, FilterSpec()) == TITLED_ROWS


def test_facet_filters_are_exact_match():
    rows = _meta().rows

    assert filter_row_numbers(rows, FilterSpec(brand="Nike")) == [2]
    assert filter_row_numbers(rows, FilterSpec(brand="nike")) == [5]
    assert filter_row_numbers(rows, FilterSpec(brand="NIKE")) == []
    assert filter_row_numbers(rows, FilterSpec(category="Shoes", seller="Gamma")) == [7]
    assert filter_row_numbers(rows, FilterSpec(brand=" Nike ")) == [2]


def test_text_query_ignores_case_and_accents():
    rows = _meta().rows

    assert filter_row_numbers(rows, FilterSpec(query="CAFE")) == [3]
    assert filter_row_numbers(rows, FilterSpec(query="stussy")) == [3]
    assert filter_row_numbers(rows, FilterSpec(query="alpha")) == [2, 5]
    assert filter_row_numbers(rows, FilterSpec(query="nothing-like-this")) == []


def test_slug_resolution_prefers_slug_over_id():
    index = SlugIndex.from_rows(
        [
            MetaRow(row_number=5, id="a", slug="x", title="Something"),
            MetaRow(row_number=9, id="x", slug="other", title="Other"),
        ]
    )

    assert index.resolve("x") == 5
    assert index.resolve("other") == 9
    assert index.resolve("something") == 5
    assert index.resolve("missing") is None


def test_title_match_beats_id_match():
    index = SlugIndex.from_rows(
        [
            MetaRow(row_number=3, id="jacket", slug="s1", title="T1"),
            MetaRow(row_number=4, id="j2", slug="s2", title="Jacket"),
        ]
    )

    assert index.resolve("jacket") == 4


def test_first_occurrence_wins_per_map():
    index = SlugIndex.from_rows(
        [
            MetaRow(row_number=2, id="1", slug="dup", title="A"),
            MetaRow(row_number=3, id="2", slug="dup", title="B"),
        ]
    )

    assert index.resolve("dup") == 2
