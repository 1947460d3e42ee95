"""Tests for HTML normalization of AI responses."""

from __future__ import annotations

import pytest

from quotebridge.sanitizer.html import prepare_html


def test_class_renamed_and_img_self_closed() -> None:
    html = '<div class="card"><img src="x"></div>'
    assert prepare_html(html) == '<div className="card"><img src="x"/></div>'


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("line<br>break", "line<br/>break"),
        ("<hr>", "<hr/>"),
        ('<input type="text">', '<input type="text"/>'),
        ('<img src="a/b.png" alt="x">', '<img src="a/b.png" alt="x"/>'),
    ],
)
def test_void_tags_closed(raw: str, expected: str) -> None:
    assert prepare_html(raw) == expected


def test_already_normalized_is_unchanged() -> None:
    html = '<div className="x"><img src="x"/><br /></div>'
    assert prepare_html(html) == html


def test_idempotent() -> None:
    html = '<p class="a">hi<br><img src="y"></p>'
    once = prepare_html(html)
    assert prepare_html(once) == once


def test_other_tags_untouched() -> None:
    html = "<brand>x</brand><hrx>y</hrx>"
    assert prepare_html(html) == html


def test_prefixed_class_attribute_untouched() -> None:
    html = '<span data-class="keep">x</span>'
    assert prepare_html(html) == html


@pytest.mark.parametrize("empty", ["", None])
def test_empty_input(empty: str | None) -> None:
    assert prepare_html(empty) == ""
