import pytest

from audit_reports.markup import render_inline, render_rich_text


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Hello", "<p>Hello</p>"),
        ("First\nSecond", "<p>First</p><p>Second</p>"),
        ("First\r\n\r\n  Second  ", "<p>First</p><p>Second</p>"),
        ("Use **bold** here", "<p>Use <strong>bold</strong> here</p>"),
        ("Use *italic* here", "<p>Use <em>italic</em> here</p>"),
        ("Run `npm test`", "<p>Run <code>npm test</code></p>"),
        ("**bold with *italic* inside**", "<p><strong>bold with <em>italic</em> inside</strong></p>"),
        ("`**not bold**`", "<p><code>**not bold**</code></p>"),
        ("<script>alert(1)</script>", "<p>&lt;script&gt;alert(1)&lt;/script&gt;</p>"),
        ("Tom & Jerry", "<p>Tom &amp; Jerry</p>"),
    ],
)
def test_render_rich_text(text, expected):
    assert render_rich_text(text) == expected


@pytest.mark.parametrize("text", [None, "", "   ", "\n\n"])
def test_render_rich_text_blank_input_is_empty(text):
    assert render_rich_text(text) == ""


def test_render_rich_text_accepts_non_string_values():
    assert render_rich_text(42) == "<p>42</p>"


def test_render_inline_does_not_wrap_in_paragraph():
    assert render_inline("a *b* c") == "a <em>b</em> c"
    assert render_inline(None) == ""


def test_unbalanced_markers_are_left_alone():
    assert render_rich_text("2 * 3 = 6") == "<p>2 * 3 = 6</p>"
