import pytest

from newswire.errors import NoContentFound
from newswire.services.extractor import ContentExtractor

LEDE = (
    "Acme Corp (NYSE: ACME) today announced record quarterly revenue of $1.2 billion, "
    "up 18 percent from the prior year, and raised its full-year guidance."
)
QUOTE = (
    '"We delivered another strong quarter," said Jane Doe, chief executive officer of Acme Corp. '
    '"Our teams executed well across every region and product line."'
)

PRN_PAGE = f"""
<html><head><title>Acme reports results</title><script>var tracking = 1;</script></head>
<body>
  <header class="site-header"><nav>Home News Contact</nav></header>
  <section class="release-body container">
    <div class="row">
      <div class="col-lg-10 col-lg-offset-1">
        <p>NEW YORK, March 10, 2025 /PRNewswire/ -- {LEDE}</p>
        <div class="inline-box"><p>{QUOTE}</p></div>
        <div class="release-footer"><p>About Acme: boilerplate that must be cut from the release.</p></div>
        <p>Trailing text after the footer marker.</p>
      </div>
    </div>
  </section>
  <section class="more"><p>Other releases from this publisher.</p></section>
</body></html>
"""

ARTICLE_PAGE = f"""
<html><body>
  <nav>Home | Markets | Tech</nav>
  <article>
    <h1>Globex to acquire Initech</h1>
    <div class="lead"><div class="inner"><p>{LEDE}</p></div></div>
    <p>{QUOTE}</p>
    <aside>Related coverage</aside>
  </article>
  <footer>Copyright Example Media</footer>
</body></html>
"""


@pytest.fixture()
def extractor() -> ContentExtractor:
    return ContentExtractor()


def test_press_release_template_uses_structural_boundary(extractor):
    article = extractor.extract(PRN_PAGE, source_hint="https://www.prnewswire.com/news-releases/acme-1.html")

    assert article.extraction_method == "precise-boundary"
    assert article.confidence_score == pytest.approx(0.95)
    assert "record quarterly revenue" in article.text_content
    assert "Jane Doe" in article.text_content
    assert "boilerplate" not in article.text_content
    assert "Trailing text" not in article.text_content
    assert "Other releases" not in article.text_content
    assert "tracking" not in article.text_content
    assert article.sanitized_html.startswith("<p>")
    assert "<div" not in article.sanitized_html


def test_boundary_runs_to_section_end_without_marker(extractor):
    page = PRN_PAGE.replace('<div class="release-footer">', '<div class="notes">')

    article = extractor.extract(page)

    assert article.extraction_method == "precise-boundary"
    assert "Trailing text" in article.text_content
    assert "Other releases" not in article.text_content


def test_generic_article_uses_article_selector(extractor):
    article = extractor.extract(ARTICLE_PAGE, source_hint="example-news.com")

    assert article.extraction_method == "selector:article"
    assert article.confidence_score == pytest.approx(0.6)
    # nested containers are balanced: text after the nested divs is kept
    assert "Jane Doe" in article.text_content
    assert "Related coverage" not in article.text_content
    assert "Copyright" not in article.text_content


def test_publisher_selectors_take_priority_for_hinted_publisher(extractor):
    page = f"""
    <html><body>
      <div class="article-body"><p>{LEDE}</p><p>{QUOTE}</p></div>
      <div class="social-share">Share on X</div>
    </body></html>
    """

    article = extractor.extract(page, source_hint="https://www.reuters.com/business/acme-2025-03-10/")

    assert article.extraction_method == "selector:.article-body"
    assert article.confidence_score == pytest.approx(0.9)
    assert "Share on X" not in article.text_content


def test_low_quality_selector_falls_through_to_dateline(extractor):
    page = f"""
    <html><body>
      <div class="content">Subscribe to our newsletter</div>
      <div class="story">
        <p>LONDON, March 3, 2025 -- {LEDE}</p>
        <p>{QUOTE}</p>
        <div class="promo">Promo</div>
      </div>
    </body></html>
    """

    article = extractor.extract(page)

    assert article.extraction_method == "heuristic:dateline"
    assert article.confidence_score == pytest.approx(0.4)
    assert "Subscribe" not in article.text_content
    assert "Promo" not in article.text_content


def test_paragraph_run_fallback(extractor):
    page = f"""
    <html><body>
      <div class="layout"><span>menu</span></div>
      <div class="body-text"><p>{LEDE}</p><p>{QUOTE}</p></div>
    </body></html>
    """

    article = extractor.extract(page)

    assert article.extraction_method == "heuristic:paragraph-run"
    assert "record quarterly revenue" in article.text_content


def test_paragraph_run_skips_rejected_div_for_later_one(extractor):
    share = (
        "Share this story with your colleagues and friends on every social network you use, "
        "and follow our newsroom for the latest company updates and announcements."
    )
    page = f"""
    <html><body>
      <div class="share-bar"><p>{share}</p></div>
      <div class="body-text"><p>{LEDE}</p><p>{QUOTE}</p></div>
    </body></html>
    """

    article = extractor.extract(page)

    assert article.extraction_method == "heuristic:paragraph-run"
    assert "record quarterly revenue" in article.text_content
    assert "Share this story" not in article.text_content


@pytest.mark.parametrize(
    "html",
    [
        "",
        "   ",
        "<html><body><nav>Home</nav><p>Short.</p></body></html>",
        "<html><body><article><p>Follow us on social media for more updates and news. Click here. Thanks!</p></article></body></html>",
    ],
)
def test_no_quality_candidate_raises(extractor, html):
    with pytest.raises(NoContentFound):
        extractor.extract(html)


def test_publisher_registry_helpers(extractor):
    assert "prnewswire.com" in extractor.supported_sources()
    assert extractor.is_supported_source("https://www.bloomberg.com/news/articles/x")
    assert not extractor.is_supported_source("https://blog.example.org/post")
    assert extractor.detect_publisher("wsj.com").name == "Wall Street Journal"
