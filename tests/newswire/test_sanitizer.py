from newswire.services.sanitizer import html_to_text, project, sanitize_html


def test_sanitize_applies_allow_list():
    html = (
        '<div class="wrap"><p class="x" onclick="steal()">Hello <b>bold</b> <i>it</i> '
        '<a href="javascript:alert(1)">bad</a> '
        '<a href="https://ex.com/a" target="_blank" rel="noopener">good</a></p>'
        '<p>   </p><img src="https://tracker.example/pixel.gif"><script>track()</script>'
        "<ul><li>One</li></ul><blockquote>Quote</blockquote></div>"
    )

    out = sanitize_html(html)

    assert "<strong>bold</strong>" in out
    assert "<em>it</em>" in out
    assert '<a href="https://ex.com/a" target="_blank">good</a>' in out
    assert "<a>bad</a>" in out
    assert "javascript" not in out
    assert "onclick" not in out and "class=" not in out and "rel=" not in out
    assert "<img" not in out and "<script" not in out and "track()" not in out
    assert "<div" not in out
    assert "<p></p>" not in out and "<p>   </p>" not in out
    assert "<ul><li>One</li></ul>" in out
    assert "<blockquote>Quote</blockquote>" in out


def test_text_projection_normalizes_whitespace():
    text = html_to_text("<p>First\n\n  line</p><p>Second <b>line</b></p><style>p{}</style>")

    assert text == "First line Second line"


def test_project_returns_both_views():
    sanitized, text = project("<p>Alpha <span>beta</span></p>")

    assert sanitized == "<p>Alpha beta</p>"
    assert text == "Alpha beta"
