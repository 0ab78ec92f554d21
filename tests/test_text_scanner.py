import pytest

from hdlnav.services import ScopeError, UnbalancedDelimiterError
from hdlnav.services.text_scanner import (
    line_of,
    line_span,
    mask_code_blocks,
    mask_comments,
    offset_of,
    skip_balanced_parens,
    strip_macro_references,
    strip_parameter_lists,
)


def test_skip_balanced_parens_counts_nesting():
    text = "(a(b)c)d"
    assert skip_balanced_parens(text, 1) == 7
    assert text[skip_balanced_parens(text, 1):] == "d"


def test_skip_balanced_parens_unbalanced_is_scope_error():
    with pytest.raises(UnbalancedDelimiterError) as info:
        skip_balanced_parens("(a(b c", 1)
    assert isinstance(info.value, ScopeError)


def test_strip_parameter_list_removes_exact_span():
    text = "sub #( .W(8), .D(f(1,2)) ) u0 (.a(b));"
    assert strip_parameter_lists(text) == "sub  u0 (.a(b));"


@pytest.mark.parametrize("depth", [0, 1, 3, 8])
def test_strip_parameter_list_any_nesting_depth(depth):
    params = "#(" + "f(" * depth + "1" + ")" * depth + ")"
    text = f"left {params} right"
    assert strip_parameter_lists(text) == "left  right"


def test_strip_parameter_lists_multiple_regions():
    text = "a #(1) b #( .X((2)) ) c"
    assert strip_parameter_lists(text) == "a  b  c"


def test_strip_parameter_lists_unbalanced_leaves_rest():
    text = "a #(1) b #(c d"
    assert strip_parameter_lists(text) == "a  b #(c d"


def test_mask_comments_covers_line_comment_only():
    text = "x // foo bar (\ny"
    mask = mask_comments(text)
    assert mask.contains(text.index("foo"))
    assert mask.contains(text.index("//"))
    assert not mask.contains(text.index("x"))
    assert not mask.contains(text.index("y"))


def test_mask_code_blocks_outermost_span():
    text = "a begin b begin c end d end e"
    blocks = mask_code_blocks(text)
    assert len(blocks) == 1
    span = next(iter(blocks))
    assert text[span.start:span.end] == "begin b begin c end d end"
    assert not blocks.contains(text.index("a"))
    assert not blocks.contains(text.index("e"))


def test_mask_code_blocks_ignores_keywords_in_comments():
    text = "x // begin\ny begin z end w"
    blocks = mask_code_blocks(text)
    assert not blocks.contains(text.index("y"))
    assert blocks.contains(text.index("z"))
    assert not blocks.contains(text.index("w"))


def test_mask_code_blocks_stray_end_ignored():
    text = "end a begin b end c"
    blocks = mask_code_blocks(text)
    assert not blocks.contains(text.index("a"))
    assert blocks.contains(text.index("b"))


def test_mask_code_blocks_unbalanced_masks_to_end():
    text = "a begin b begin c end d"
    blocks = mask_code_blocks(text)
    assert blocks.contains(text.index("d"))
    assert not blocks.contains(text.index("a"))


def test_mask_code_blocks_whole_words_only():
    text = "beginner x endpoint"
    assert len(mask_code_blocks(text)) == 0


def test_strip_macro_references_keeps_define():
    text = "`FOO u1 (); `define WIDTH 8\n`ifdef X"
    assert strip_macro_references(text) == " u1 (); `define WIDTH 8\n X"


def test_line_helpers():
    text = "one\ntwo\nthree"
    pos = text.index("two")
    assert line_of(text, 0) == 1
    assert line_of(text, pos) == 2
    assert line_span(text, pos + 1) == (4, 7)
    assert line_span(text, text.index("three")) == (8, len(text))
    assert offset_of(text, 2, 1) == pos
    assert offset_of(text, 3, 3) == text.index("ree")
    assert offset_of(text, 1, 99) == 3
    assert offset_of(text, 9, 1) == len(text)
