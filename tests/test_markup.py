import pytest

from libs.core.exceptions import InvalidSelection
from libs.markup import (
    AssignmentMarker,
    BacklinkAggregate,
    Element,
    EntityReference,
    Selection,
    Text,
    insert_nodes,
    iter_assignment_markers,
    markers_at,
    normalize,
    parse,
    render,
    text_content,
    text_length,
    unwrap_assignment,
    wrap_range,
)
from libs.markup.ranges import expand_selection

REFERENCE = (
    '<span class="entity-link" data-entity-id="e1" data-entity-link="" data-is-external="false" '
    'data-entity-text-type="alias" data-entity-original-text="AL" data-entity-alias-id="a1">AL</span>'
)
MARKER = (
    '<span class="assigned-text-block highlight" data-assigned-block-id="b1" '
    'data-assigned-entity-id="e1" data-assigned-entity-color="#ff0000" '
    'style="background-color: #ff0000">x</span>'
)
AGGREGATE = (
    '<div contenteditable="false" class="backlinks-container" data-backlink-entity-id="e1">'
    "<h4>Backlinks</h4></div>"
)
NESTED_REFERENCE = (
    '<span class="entity-link" data-entity-id="e1" data-entity-link="" data-is-external="false" '
    'data-entity-text-type="primary" data-entity-original-text="Ada">'
    '<span class="assigned-text-block" data-assigned-block-id="b7" data-assigned-entity-id="e2">Ada</span></span>'
)


def _marker(block_id: str):
    return lambda children: AssignmentMarker(block_id=block_id, entity_id="e1", children=children)


def test_parse_entity_reference_and_render_back() -> None:
    content = f"<p>Hello {REFERENCE}!</p>"
    nodes = parse(content)

    ref = nodes[0].children[1]
    assert isinstance(ref, EntityReference)
    assert (ref.entity_id, ref.text, ref.text_type, ref.alias_id) == ("e1", "AL", "alias", "a1")
    assert render(nodes) == content


def test_parse_assignment_marker() -> None:
    (marker,) = parse(MARKER)

    assert isinstance(marker, AssignmentMarker)
    assert marker.highlighted
    assert marker.entity_color == "#ff0000"
    assert marker.highlight_color == "#ff0000"
    assert render([marker]) == MARKER


def test_parse_backlink_aggregate() -> None:
    (aggregate,) = parse(AGGREGATE)

    assert isinstance(aggregate, BacklinkAggregate)
    assert aggregate.entity_id == "e1"
    assert render([aggregate]) == AGGREGATE


def test_nbsp_and_void_elements_are_stable() -> None:
    nodes = parse("<p>a&nbsp;b<br/>c &amp; d</p>")

    assert text_content(nodes) == "a\u00a0bc & d"
    rendered = render(nodes)
    assert rendered == "<p>a&nbsp;b<br>c &amp; d</p>"
    assert render(parse(rendered)) == rendered


def test_style_and_script_text_is_rendered_raw() -> None:
    content = "<style>a > b {}</style><script>if (a && b) {}</script><p>x &amp; y</p>"

    once = render(parse(content))

    assert once == content
    assert render(parse(once)) == content


def test_reference_keeps_nested_assignment_marker() -> None:
    content = f"<p>x {NESTED_REFERENCE} y z</p>"
    nodes = parse(content)
    assert render(nodes) == content
    assert [m.block_id for m in markers_at(nodes, 3, 3)] == ["b7"]

    wrap_range(nodes, 8, 9, _marker("b8"))

    assert [m.block_id for m in iter_assignment_markers(parse(render(nodes)))] == ["b7", "b8"]


def test_text_length_ignores_void_elements() -> None:
    assert text_length(parse("<p>ab<br>c</p><p>d</p>")) == 4


def test_selection_of_finds_occurrence() -> None:
    nodes = parse("<p>the cat and the dog</p>")

    assert Selection.of(nodes, "the") == Selection(0, 3)
    assert Selection.of(nodes, "the", occurrence=1) == Selection(12, 15)
    with pytest.raises(InvalidSelection):
        Selection.of(nodes, "bird")


def test_wrap_whole_formatting_element() -> None:
    nodes = parse("<p>Along <b>the Nile</b> river</p>")
    start, end = Selection.of(nodes, "the Nile")

    wrap_range(nodes, start, end, _marker("b1"))

    assert render(nodes) == (
        '<p>Along <span class="assigned-text-block" data-assigned-block-id="b1" '
        'data-assigned-entity-id="e1"><b>the Nile</b></span> river</p>'
    )


def test_wrap_splits_partially_selected_element() -> None:
    nodes = parse("<p>a<b>bc</b>d</p>")

    wrap_range(nodes, 2, 4, _marker("b1"))

    assert render(nodes) == (
        '<p>a<b>b</b><span class="assigned-text-block" data-assigned-block-id="b1" '
        'data-assigned-entity-id="e1"><b>c</b>d</span></p>'
    )


def test_selection_expands_over_entity_reference() -> None:
    nodes = parse(f"x {REFERENCE} y")

    assert expand_selection(nodes, 3, 6) == Selection(2, 6)


def test_selection_expands_over_crossed_marker() -> None:
    nodes = parse(
        '<span class="assigned-text-block" data-assigned-block-id="b1" '
        'data-assigned-entity-id="e1">abc</span>def'
    )

    assert expand_selection(nodes, 1, 5) == Selection(0, 5)
    assert expand_selection(nodes, 0, 2) == Selection(0, 2)


@pytest.mark.parametrize("start,end", [(2, 2), (-1, 2), (0, 99)])
def test_invalid_selections(start: int, end: int) -> None:
    with pytest.raises(InvalidSelection):
        expand_selection(parse("<p>abcdef</p>"), start, end)


def test_selection_overlapping_backlinks_is_rejected() -> None:
    nodes = parse(f"<p>intro</p>{AGGREGATE}")

    with pytest.raises(InvalidSelection):
        expand_selection(nodes, 3, 8)


def test_inline_insert_prefers_end_of_block() -> None:
    nodes = parse("<p>ab</p><p>cd</p>")

    insert_nodes(nodes, 2, [Text("X")])

    assert render(nodes) == "<p>abX</p><p>cd</p>"


def test_top_level_insert_between_blocks() -> None:
    nodes = parse("<p>ab</p><p>cd</p>")

    insert_nodes(nodes, 2, [Element("hr")], top_level=True)

    assert render(nodes) == "<p>ab</p><hr><p>cd</p>"


def test_top_level_insert_moves_past_nested_marker() -> None:
    nodes = parse("<p>alpha beta</p><p>end</p>")
    wrap_range(nodes, 0, 10, _marker("b1"))

    insert_nodes(nodes, 3, [Element("hr")], top_level=True)

    assert [node.tag for node in nodes] == ["p", "hr", "p"]
    assert [m.block_id for m in iter_assignment_markers(nodes)] == ["b1"]
    assert text_content(nodes[0].children) == "alpha beta"


def test_insert_inside_backlinks_is_rejected() -> None:
    nodes = parse(f"<p>intro</p>{AGGREGATE}")

    with pytest.raises(InvalidSelection):
        insert_nodes(nodes, 7, [Text("X")])


def test_markers_at_cursor_lists_nested_markers_outermost_first() -> None:
    nodes = parse("xab")
    wrap_range(nodes, 1, 3, _marker("outer"))
    wrap_range(nodes, 2, 3, _marker("inner"))

    assert [m.block_id for m in markers_at(nodes, 2, 2)] == ["outer", "inner"]
    assert [m.block_id for m in markers_at(nodes, 0, 1)] == []


def test_unwrap_assignment_keeps_siblings() -> None:
    nodes = parse("<p>alpha beta</p>")
    wrap_range(nodes, 0, 5, _marker("b1"))
    wrap_range(nodes, 6, 10, _marker("b2"))
    sibling = render([nodes[0].children[-1]])

    removed = unwrap_assignment(nodes, "b1")
    normalize(nodes)

    assert removed is not None and removed.block_id == "b1"
    assert render(nodes) == f"<p>alpha {sibling}</p>"
    assert unwrap_assignment(nodes, "missing") is None
