"""
Tests for the embedded image scanner and the text helpers built on it.
"""
from app.utils.html_images import iter_embedded_images, strip_tags
from app.utils.text import make_summary, slugify


def test_scans_images_in_document_order():
    content = (
        '<p>Intro</p><img src="/uploads/a.jpg" alt="A">'
        "<p>More</p><IMG class='wide' src='uploads/b.png'>"
    )

    found = list(iter_embedded_images(content))

    assert [image.src for image in found] == ["/uploads/a.jpg", "uploads/b.png"]
    assert found[0].alt == "A"
    assert found[1].alt is None


def test_alt_before_src_and_empty_alt():
    found = list(iter_embedded_images('<img alt="" src="/uploads/a.jpg"><img alt="Cat" src="/uploads/c.jpg" />'))

    assert found[0].alt == ""
    assert found[1].alt == "Cat"
    assert found[1].src == "/uploads/c.jpg"


def test_first_src_wins_and_data_src_ignored():
    found = list(iter_embedded_images('<img data-src="/uploads/lazy.jpg" src="/uploads/real.jpg" src="/uploads/dup.jpg">'))

    assert len(found) == 1
    assert found[0].src == "/uploads/real.jpg"


def test_tags_without_src_are_skipped():
    assert list(iter_embedded_images('<img alt="no source"><img src="">')) == []
    assert list(iter_embedded_images(None)) == []


def test_truncated_tag_still_matches():
    found = list(iter_embedded_images('<p>text</p><img src="/uploads/cut.jpg" alt="cut'))

    assert [image.src for image in found] == ["/uploads/cut.jpg"]


def test_strip_tags_collapses_whitespace():
    assert strip_tags("<p>Hello <b>world</b></p>\n<p>again</p>") == "Hello world again"
    assert strip_tags(None) == ""


def test_make_summary_truncates_with_ellipsis():
    text = "<p>" + "word " * 100 + "</p>"

    summary = make_summary(text)

    assert len(summary) <= 200
    assert summary.endswith("...")
    assert make_summary("<p>Short post</p>") == "Short post"


def test_slugify():
    assert slugify("Café & Code: Part 2!") == "cafe-code-part-2"
    assert slugify("!!!") == "post"
