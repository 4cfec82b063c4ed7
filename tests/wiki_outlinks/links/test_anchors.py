import pytest

from wiki_outlinks.links import extract_anchors, extract_categories, parse_anchor
from wiki_outlinks.links.anchors import iter_link_bodies, strip_references
from wiki_outlinks.models import Anchor


@pytest.mark.unit
class TestParseAnchor:

    def test_plain_link(self):
        assert parse_anchor("Paris") == Anchor(target="Paris", surface="Paris")

    def test_labelled_link(self):
        anchor = parse_anchor("Paris#History|the city's past")
        assert anchor.target == "Paris"
        assert anchor.surface == "the city's past"
        assert anchor.is_labelled

    def test_quotes_are_trimmed_from_surface(self):
        assert parse_anchor("Hamlet|''Hamlet''").surface == "Hamlet"

    def test_empty_surface_falls_back_to_target(self):
        anchor = parse_anchor("Paris|")
        assert anchor.surface == "Paris"
        assert not anchor.is_labelled

    def test_fragment_only_in_target(self):
        assert parse_anchor("Paris#Sights").target == "Paris"


@pytest.mark.unit
class TestExtractAnchors:
    """Which [[...]] bodies count as links to other pages."""

    def test_targets(self):
        text = "[[A]], [[b|B]], [[#Section]], [[File:X.png|thumb]], [[Image:Y.jpg]], [[fr:Paris]], [[wikt:word]]"
        assert [anchor.target for anchor in extract_anchors(text)] == ["A", "b"]

    def test_category_links(self):
        text = "[[Category:Physics]] [[:Category:Physics|physics category]]"
        anchors = extract_anchors(text)
        assert [anchor.target for anchor in anchors] == ["Category:Physics"]
        assert anchors[0].surface == "physics category"

    def test_other_namespaces_are_kept(self):
        text = "[[Wikipedia:Manual of Style]] [[Help:Contents]]"
        assert len(extract_anchors(text)) == 2

    def test_references_cutoff(self):
        text = "[[Before]]\n== References ==\n[[After]]"
        assert [anchor.target for anchor in extract_anchors(text)] == ["Before"]
        assert [anchor.target for anchor in extract_anchors(text, references_cutoff=False)] == ["Before", "After"]

    def test_only_last_references_heading_counts(self):
        text = "[[A]]\n==References==\n[[B]]\n==References==\n[[C]]"
        assert strip_references(text) == "[[A]]\n==References==\n[[B]]\n"

    def test_links_in_file_captions(self):
        text = "[[File:Map.png|thumb|Map of [[France]]]]"
        assert [anchor.target for anchor in extract_anchors(text)] == ["France"]

    def test_multi_paragraph_bodies_are_skipped(self):
        text = "[[Broken\n\nlink]] [[Fine]]"
        assert [anchor.target for anchor in extract_anchors(text)] == ["Fine"]

    def test_unclosed_link(self):
        assert list(iter_link_bodies("[[A]] [[B")) == ["A"]

    def test_site_namespaces(self):
        namespaces = {0: "", 6: "Datei", 14: "Kategorie"}
        text = "[[Datei:Karte.png]] [[Kategorie:Physik]] [[Physik]]"
        assert [anchor.target for anchor in extract_anchors(text, namespaces)] == ["Physik"]


@pytest.mark.unit
class TestExtractCategories:

    def test_categories(self):
        text = (
            "[[Category:Physics|Sort key]] [[category:physics]] "
            "[[Category:Natural_sciences]] [[:Category:Linked only]] [[Physics]]"
        )
        assert [category.name for category in extract_categories(text)] == ["Physics", "Natural sciences"]

    def test_fqn(self):
        assert extract_categories("[[Category:Physics]]")[0].fqn() == "Category:Physics"
