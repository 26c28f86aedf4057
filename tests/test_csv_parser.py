"""
Unit tests for CSV parsing.
"""
from listing_dedupe.csv_parser import BOM, CsvParser, parse_line, render_csv, split_naive


class TestParseLine:
    """Tests for single-line tokenizing."""

    def test_fast_path_trims_cells(self):
        result = parse_line(" 1001 , Blue Widget ,2024-01-01")
        assert result.ok
        assert result.value == ["1001", "Blue Widget", "2024-01-01"]

    def test_quoted_field_keeps_commas(self):
        result = parse_line('1001,"Widget, Blue, Large",2024-01-01')
        assert result.value == ["1001", "Widget, Blue, Large", "2024-01-01"]

    def test_doubled_quote_is_literal(self):
        result = parse_line('1001,"12"" Ruler ""Pro""",x')
        assert result.value == ["1001", '12" Ruler "Pro"', "x"]

    def test_empty_cells_preserved(self):
        assert parse_line('a,"",c').value == ["a", "", "c"]
        assert parse_line("a,,c").value == ["a", "", "c"]

    def test_unterminated_quote_is_malformed(self):
        result = parse_line('1001,"Widget,2024-01-01')
        assert not result.ok
        assert "unterminated" in result.message

    def test_non_text_is_malformed(self):
        assert not parse_line(None).ok


class TestCsvParser:
    """Tests for whole-document parsing."""

    def test_strips_bom_and_mixed_newlines(self):
        text = BOM + "Item number,Title\r\n1,A\r2,B\n3,C"
        rows = CsvParser().parse(text)
        assert rows == [["Item number", "Title"], ["1", "A"], ["2", "B"], ["3", "C"]]

    def test_skips_blank_lines(self):
        rows, report = CsvParser().parse_with_report("h1,h2\n\n1,2\n   \n3,4\n")
        assert rows == [["h1", "h2"], ["1", "2"], ["3", "4"]]
        assert report.skipped_lines == 3

    def test_short_row_padded_to_header(self):
        rows, report = CsvParser().parse_with_report("a,b,c,d,e\n1,2")
        assert rows[1] == ["1", "2", "", "", ""]
        assert report.padded_rows == 1

    def test_long_row_truncated_to_header(self):
        rows, report = CsvParser().parse_with_report("a,b,c,d,e\n1,2,3,4,5,6,7")
        assert rows[1] == ["1", "2", "3", "4", "5"]
        assert report.truncated_rows == 1

    def test_malformed_line_falls_back_to_plain_split(self):
        rows, report = CsvParser().parse_with_report('id,title,date\n1,"Widget,2024-01-01\n2,Gadget,2024-01-02')
        assert rows[1] == split_naive('1,"Widget,2024-01-01')
        assert rows[2] == ["2", "Gadget", "2024-01-02"]
        assert report.fallback_lines == [2]

    def test_non_text_input_yields_no_rows(self):
        assert CsvParser().parse(b"id,title") == []
        assert CsvParser().parse(None) == []

    def test_empty_text_yields_no_rows(self):
        assert CsvParser().parse("") == []


class TestRenderCsv:
    """Tests for CSV output rendering."""

    def test_quotes_special_cells(self):
        text = render_csv([["a", 'say "hi"', "x,y"], ["1", None, "line\nbreak"]], bom=False)
        assert text == 'a,"say ""hi""","x,y"\n1,,"line\nbreak"'

    def test_non_string_cells(self):
        assert render_csv([["Action", "ItemID"], ["End", 12345]], bom=False) == "Action,ItemID\nEnd,12345"

    def test_bom_prefix(self):
        assert render_csv([["Action"]]).startswith(BOM)

    def test_rendered_rows_parse_back(self):
        rows = [["ItemID", "Title"], ["1", 'Widget, "Pro"']]
        assert CsvParser().parse(render_csv(rows)) == rows
