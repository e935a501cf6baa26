import pytest

from libs.core.exceptions import NoAssignments, NotFoundError
from libs.core.models import AssignedTextBlock, Document, Entity, Snapshot
from libs.markup import (
    BacklinkAggregate,
    EntityReference,
    Selection,
    iter_assignment_markers,
    iter_backlink_aggregates,
    parse,
    render,
)
from libs.storage import Workspace
from libs.usecases import (
    AssignText,
    CompileBacklinks,
    InsertBacklinks,
    RefreshBacklinks,
    SynchronizeDocument,
    refresh_backlinks,
)

from conftest import make_gateway


def _block(block_id: str, document_id: str = "d1", entity_id: str = "e2", html: str = "the Nile") -> AssignedTextBlock:
    return AssignedTextBlock(
        id=block_id, entity_id=entity_id, document_id=document_id, plain_text=html, html_content=html
    )


def _aggregates(workspace: Workspace, document_id: str) -> list:
    return list(iter_backlink_aggregates(parse(workspace.documents[document_id].content)))


def test_compile_reports_no_assignments(workspace: Workspace, i18n) -> None:
    result = CompileBacklinks(workspace, i18n)("e2")

    assert isinstance(result, NoAssignments)
    assert result.entity_name == "Nile"


def test_compile_unknown_entity(workspace: Workspace, i18n) -> None:
    with pytest.raises(NotFoundError):
        CompileBacklinks(workspace, i18n)("missing")


def test_compile_keeps_store_order_and_counts(workspace: Workspace, i18n) -> None:
    workspace.add_assignment(_block("b2", "d2"))
    workspace.add_assignment(_block("b1", "d1"))
    workspace.add_assignment(_block("b3", "d1", entity_id="e1"))

    backlinks = CompileBacklinks(workspace, i18n)("e2")

    assert backlinks.entity_name == "Nile"
    assert [(e.block_id, e.document_title) for e in backlinks.entries] == [("b2", "Notes"), ("b1", "Rivers")]


def test_compile_falls_back_for_missing_document(i18n) -> None:
    snapshot = Snapshot(
        entities=[Entity(id="e2", primary_name="Nile")],
        assigned_text_blocks=[_block("b1", "gone")],
    )
    workspace = Workspace.load(make_gateway(snapshot))

    (entry,) = CompileBacklinks(workspace, i18n)("e2").entries

    assert entry.document_title == "Unknown Document"


def test_rendered_fragment(workspace: Workspace, i18n) -> None:
    workspace.add_assignment(_block("b1", html="<i>the Nile</i>"))

    node = CompileBacklinks(workspace, i18n)("e2").to_node(i18n)

    assert isinstance(node, BacklinkAggregate)
    assert render([node]) == (
        '<div contenteditable="false" class="backlinks-container" data-backlink-entity-id="e2">'
        '<h4>Backlinks for "Nile"</h4><ul><li>'
        '<strong class="backlink-doc-title" data-doc-id="d1" data-block-id="b1">From: Rivers</strong>'
        "<br><blockquote><i>the Nile</i></blockquote></li></ul></div>"
    )


def test_insert_backlinks_at_end(workspace: Workspace, i18n) -> None:
    workspace.add_assignment(_block("b1"))

    document = InsertBacklinks(workspace, i18n)("d2", "e2")

    assert document.content.startswith(
        '<p>Intro</p><div contenteditable="false" class="backlinks-container" data-backlink-entity-id="e2">'
    )
    assert document.content.endswith("</div><p><br></p>")
    assert [a.entity_id for a in _aggregates(workspace, "d2")] == ["e2"]


def test_insert_backlinks_between_paragraphs(workspace: Workspace, i18n) -> None:
    workspace.add_assignment(_block("b1"))
    workspace.set_content("d2", "<p>one</p><p>two</p>")

    document = InsertBacklinks(workspace, i18n)("d2", "e2", position=3)

    assert document.content.startswith('<p>one</p><div contenteditable="false"')
    assert document.content.endswith("</div><p><br></p><p>two</p>")


def test_insert_backlinks_inside_assigned_paragraph(workspace: Workspace, i18n) -> None:
    block = AssignText(workspace)("d1", Selection(0, 20), "e2")

    document = InsertBacklinks(workspace, i18n)("d1", "e2", position=3)

    content = document.content
    assert content.index("</p>") < content.index("backlinks-container")
    assert [m.block_id for m in iter_assignment_markers(parse(content))] == [block.id]


def test_insert_backlinks_without_assignments(workspace: Workspace, i18n) -> None:
    before = workspace.documents["d2"].content

    result = InsertBacklinks(workspace, i18n)("d2", "e2")

    assert isinstance(result, NoAssignments)
    assert workspace.documents["d2"].content == before


def test_refresh_picks_up_new_assignments_and_is_idempotent(workspace: Workspace, i18n) -> None:
    workspace.add_assignment(_block("b1"))
    InsertBacklinks(workspace, i18n)("d2", "e2")
    workspace.add_assignment(_block("b2", "d2", html="Intro"))

    document, changed = RefreshBacklinks(workspace, i18n)("d2")
    assert changed
    (aggregate,) = _aggregates(workspace, "d2")
    assert 'data-block-id="b2"' in render([aggregate])

    again, changed_again = RefreshBacklinks(workspace, i18n)("d2")
    assert not changed_again
    assert again.content == document.content


def test_refresh_shows_empty_state(workspace: Workspace, i18n) -> None:
    workspace.add_assignment(_block("b1"))
    InsertBacklinks(workspace, i18n)("d2", "e2")
    workspace.delete_assignment("b1")

    document, changed = RefreshBacklinks(workspace, i18n)("d2")

    assert changed
    assert '<li class="backlinks-empty">No assigned text blocks found for this entity.</li>' in document.content


def test_refresh_removes_aggregate_of_deleted_entity(workspace: Workspace, i18n) -> None:
    workspace.add_assignment(_block("b1"))
    InsertBacklinks(workspace, i18n)("d2", "e2")
    workspace.delete_entity("e2")

    document, changed = RefreshBacklinks(workspace, i18n)("d2")

    assert changed
    assert document.content == "<p>Intro</p><p><br></p>"


def test_refresh_leaves_other_content_alone(workspace: Workspace, i18n) -> None:
    content = "<p>No <b>backlinks</b> here</p>"

    assert refresh_backlinks(content, workspace, i18n) == (content, False)


def test_refresh_agrees_with_synchronized_snapshots(workspace: Workspace, i18n) -> None:
    reference = EntityReference(entity_id="e1", text="AL", text_type="alias", alias_id="a1", original_text="AL")
    workspace.add_assignment(_block("b1", html=render([reference])))
    InsertBacklinks(workspace, i18n)("d2", "e2")
    workspace.remove_alias("e1", "a1")

    _, synced = SynchronizeDocument(workspace)("d2")
    document, changed = RefreshBacklinks(workspace, i18n)("d2")

    assert synced
    assert not changed
    assert 'data-entity-text-type="primary"' in document.content
    assert ">Ada</span>" in document.content
