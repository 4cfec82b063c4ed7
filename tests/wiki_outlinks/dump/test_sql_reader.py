import pytest

from wiki_outlinks.dump import (
    SqlDumpReader,
    iter_linktarget_rows,
    iter_page_rows,
    iter_pagelink_rows,
    iter_redirect_rows,
    parse_values,
)
from wiki_outlinks.dump.sql_reader import unescape_sql_string
from wiki_outlinks.exceptions import DumpFormatError


@pytest.mark.unit
class TestParseValues:
    """Parsing the VALUES payload of MySQL INSERT statements."""

    def test_mixed_values(self):
        rows = list(parse_values("(1,0,'Anarchism',0,0.5),(2,-1,NULL,1,1e3);"))
        assert rows == [(1, 0, "Anarchism", 0, 0.5), (2, -1, None, 1, 1000.0)]

    def test_escaped_strings(self):
        rows = list(parse_values(r"(1,'Farmers\'_market'),(2,'C:\\dir'),(3,'a,b(c)'),(4,'two\nlines');"))
        assert rows == [(1, "Farmers'_market"), (2, "C:\\dir"), (3, "a,b(c)"), (4, "two\nlines")]

    def test_unescape(self):
        assert unescape_sql_string(r"It\'s \"quoted\"") == "It's \"quoted\""
        assert unescape_sql_string("plain") == "plain"

    @pytest.mark.parametrize("payload", ["(1,2", "1,2)", "((1))", "(1),2;"])
    def test_unbalanced_payloads(self, payload):
        with pytest.raises(DumpFormatError):
            list(parse_values(payload))


@pytest.mark.unit
class TestSqlDumpReader:

    def test_columns_from_create_table(self, sql_dumps):
        reader = SqlDumpReader(sql_dumps["page"])
        rows = list(reader.iter_rows())

        assert reader.table == "page"
        assert reader.columns == ["page_id", "page_namespace", "page_title", "page_is_redirect", "page_is_new"]
        assert len(rows) == 11
        assert rows[2] == {
            "page_id": 3,
            "page_namespace": 0,
            "page_title": "Political_philosophy",
            "page_is_redirect": 0,
            "page_is_new": 0,
        }

    def test_default_columns_without_create_table(self, tmp_path):
        path = tmp_path / "linktarget.sql"
        path.write_text("INSERT INTO `linktarget` VALUES (1,0,'Foo'),(2,14,'Bar');\n")

        rows = list(SqlDumpReader(path))
        assert rows == [
            {"lt_id": 1, "lt_namespace": 0, "lt_title": "Foo"},
            {"lt_id": 2, "lt_namespace": 14, "lt_title": "Bar"},
        ]

    def test_unknown_table_without_create_table(self, tmp_path):
        path = tmp_path / "other.sql"
        path.write_text("INSERT INTO `categorylinks` VALUES (1,'Foo');\n")

        with pytest.raises(DumpFormatError):
            list(SqlDumpReader(path))

    def test_other_tables_are_ignored(self, tmp_path):
        path = tmp_path / "mixed.sql"
        path.write_text(
            "INSERT INTO `linktarget` VALUES (1,0,'Foo');\n"
            "INSERT INTO `page` VALUES (9,0,'Bar',0);\n"
        )
        assert [row["page_id"] for row in SqlDumpReader(path, table="page")] == [9]

    def test_broken_insert_line(self, tmp_path):
        path = tmp_path / "page.sql"
        path.write_text("INSERT INTO `page` VALUES (1,0,'Foo',0),(2,0;\n")

        with pytest.raises(DumpFormatError, match="INSERT line 1"):
            list(SqlDumpReader(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SqlDumpReader(tmp_path / "missing.sql.gz")


@pytest.mark.unit
class TestTypedRows:

    def test_page_rows(self, sql_dumps):
        rows = list(iter_page_rows(sql_dumps["page"]))
        assert rows[0] == (1, 0, "Anarchism", False)
        assert rows[3] == (4, 0, "USA", True)

    def test_redirect_rows_skip_interwiki(self, sql_dumps):
        rows = list(iter_redirect_rows(sql_dumps["redirect"]))
        assert (4, 0, "United_States") in rows
        assert all(source != 12 for source, _, _ in rows)
        assert len(rows) == 5

    def test_linktarget_rows(self, sql_dumps):
        rows = list(iter_linktarget_rows(sql_dumps["linktarget"]))
        assert rows[0] == (101, 0, "Philosophy")

    def test_pagelink_rows(self, sql_dumps):
        rows = list(iter_pagelink_rows(sql_dumps["pagelinks"]))
        assert rows[0] == {"pl_from": 1, "pl_from_namespace": 0, "pl_target_id": 102}
        assert len(rows) == 14
