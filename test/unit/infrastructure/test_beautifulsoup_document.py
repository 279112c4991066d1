"""
BeautifulSoupDocument test suite
Covers: tag/attribute/CSS queries, sibling walks, body text exclusion, meta lookup, link discovery
"""

import pytest

from visa_etl.ingest.infrastructure.beautifulsoup_document import BeautifulSoupDocument

HTML = """
<html>
<head>
  <title> Visa   Guide </title>
  <meta name="description" content="  Qatar visas  ">
  <meta property="og:title" content="OG Title">
</head>
<body>
  <h2 id="first">Documents</h2>
  <p>Passport</p>
  <h3>Optional</h3>
  <p>Photo</p>
  <h2>Fees</h2>
  <p class="note">100 QAR</p>
  <a href="/work-visa/#fees">Work</a>
  <a href="https://other.example.org/page">Other</a>
  <a href="mailto:info@example.com">Mail</a>
  <a href="javascript:void(0)">JS</a>
  <a href="#top">Top</a>
  <a>no href</a>
  <div class="ads"><p>Buy now</p></div>
  <script>var x = 1;</script>
</body>
</html>
"""


@pytest.fixture
def doc():
    return BeautifulSoupDocument(HTML)


class TestQueries:

    def test_title_is_cleaned(self, doc):
        assert doc.title == 'Visa Guide'

    def test_missing_title(self):
        assert BeautifulSoupDocument("<p>x</p>").title is None

    def test_find_all_in_document_order(self, doc):
        assert [h.text() for h in doc.find_all('h2', 'h3')] == ['Documents', 'Optional', 'Fees']

    def test_find_first(self, doc):
        assert doc.find_first('p').text() == 'Passport'
        assert doc.find_first('table') is None

    def test_find_by_attribute(self, doc):
        assert len(doc.find_by_attribute('a', 'href')) == 5
        assert [e.text() for e in doc.find_by_attribute('p', 'class', 'note')] == ['100 QAR']

    def test_select(self, doc):
        assert [e.text() for e in doc.select('p.note')] == ['100 QAR']

    def test_element_attr_and_tag(self, doc):
        heading = doc.find_first('h2')
        assert heading.tag_name == 'h2'
        assert heading.attr('id') == 'first'
        assert heading.attr('missing') is None
        assert doc.find_first('div').attr('class') == 'ads'

    def test_meta_content_by_name_or_property(self, doc):
        assert doc.meta_content('description') == 'Qatar visas'
        assert doc.meta_content('og:title') == 'OG Title'
        assert doc.meta_content('keywords') is None


class TestSiblingsUntilHeading:

    def test_subheadings_included_until_same_level(self, doc):
        heading = doc.find_first('h2')
        texts = [e.text() for e in doc.siblings_until_heading(heading)]
        assert texts == ['Passport', 'Optional', 'Photo']

    def test_elements_compare_by_node(self, doc):
        heading = doc.find_first('h2')
        first_walk = doc.siblings_until_heading(heading)
        second_walk = doc.siblings_until_heading(heading)
        assert first_walk == second_walk
        assert len(set(first_walk) | set(second_walk)) == 3


class TestBodyText:

    def test_exclusions_leave_document_intact(self, doc):
        text = doc.body_text(exclude_tags=('script',), exclude_classes=('ads',))
        assert 'Buy now' not in text
        assert 'var x' not in text

        # the original tree is untouched
        assert 'Buy now' in doc.body_text()

    def test_nested_exclusions(self):
        doc = BeautifulSoupDocument("<body><nav><script>x()</script>Menu</nav><p>Body</p></body>")
        assert doc.body_text(exclude_tags=('nav', 'script')) == 'Body'


class TestLinks:

    def test_links_are_absolute_and_defragmented(self, doc):
        assert doc.links("https://visa.example.com/visas/") == [
            'https://visa.example.com/work-visa/',
            'https://other.example.org/page',
        ]
