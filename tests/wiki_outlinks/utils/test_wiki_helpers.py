import pytest

from wiki_outlinks.models import DEFAULT_NAMESPACES
from wiki_outlinks.utils.wiki_helpers import (
    get_readable_page_title,
    get_sanitized_page_title,
    normalize_title,
    split_namespace,
    validate_page_id,
    validate_page_title,
)


@pytest.mark.unit
class TestNormalizeTitle:
    """Title normalization shared by dumps, SQL tables and wikitext links."""

    @pytest.mark.parametrize("raw, expected", [
        ("Notre_Dame_Fighting_Irish", "Notre Dame Fighting Irish"),
        ("  python  (language)", "Python (language)"),
        ("Paris#History", "Paris"),
        ("a__b \t c", "A b c"),
        ("iPhone", "IPhone"),
        ("Ölkrise", "Ölkrise"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_title(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "_", "#Section"])
    def test_empty_results(self, raw):
        assert normalize_title(raw) == ""

    def test_sanitized_and_readable_forms(self):
        assert get_sanitized_page_title("Farmers' market") == "Farmers'_market"
        assert get_sanitized_page_title("united states") == "United_states"
        assert get_readable_page_title("Notre_Dame_Fighting_Irish") == "Notre Dame Fighting Irish"

    def test_sanitized_rejects_empty_title(self):
        with pytest.raises(ValueError):
            get_sanitized_page_title("  ")


@pytest.mark.unit
class TestSplitNamespace:
    """Splitting of namespace prefixes against the siteinfo table."""

    def test_known_prefix(self):
        assert split_namespace("Category:Physics", DEFAULT_NAMESPACES) == (14, "Physics")

    def test_prefix_is_case_insensitive(self):
        assert split_namespace("category:Physics", DEFAULT_NAMESPACES) == (14, "Physics")
        assert split_namespace("user_talk:Someone", DEFAULT_NAMESPACES) == (3, "Someone")

    def test_unknown_prefix_stays_in_main_namespace(self):
        assert split_namespace("Star Wars: Episode I", DEFAULT_NAMESPACES) == (0, "Star Wars: Episode I")
        assert split_namespace("fr:Anarchisme", DEFAULT_NAMESPACES) == (0, "fr:Anarchisme")

    def test_no_prefix(self):
        assert split_namespace("Physics", DEFAULT_NAMESPACES) == (0, "Physics")

    def test_custom_namespace_table(self):
        namespaces = {0: "", 14: "Kategorie"}
        assert split_namespace("Kategorie:Physik", namespaces) == (14, "Physik")
        assert split_namespace("Category:Physik", namespaces) == (0, "Category:Physik")


@pytest.mark.unit
class TestValidation:

    @pytest.mark.parametrize("page_id", [0, -1, "12", 1.5, None, True])
    def test_invalid_page_ids(self, page_id):
        with pytest.raises(ValueError):
            validate_page_id(page_id)

    def test_valid_page_id(self):
        validate_page_id(12)

    @pytest.mark.parametrize("title", ["", None, 42, "   "])
    def test_invalid_titles(self, title):
        with pytest.raises(ValueError):
            validate_page_title(title)
