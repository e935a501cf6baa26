from typing import Dict

import pytest

from libs.core.models import Alias, Entity
from libs.markup import AssignmentMarker, EntityReference, Text, iter_assignment_markers, parse, render, text_content
from libs.markup.nodes import iter_entity_references
from libs.storage import Workspace
from libs.usecases import SynchronizeAll, SynchronizeDocument, synchronize


def _reference(text: str, text_type: str = "primary", alias_id: str | None = None, entity_id: str = "e1") -> str:
    return render(
        [
            EntityReference(
                entity_id=entity_id,
                text=text,
                text_type=text_type,
                alias_id=alias_id,
                original_text=text,
            )
        ]
    )


def _assignment(color: str | None = "#ff0000", highlighted: bool = True, entity_id: str = "e1") -> str:
    marker = AssignmentMarker(block_id="b1", entity_id=entity_id, entity_color=color, children=[Text("span")])
    if highlighted:
        marker.apply_highlight(color)
    return render([marker])


@pytest.fixture()
def entities() -> Dict[str, Entity]:
    ada = Entity(id="e1", primary_name="Ada", aliases=[Alias(id="a1", name="AL")], color="#00ff00")
    return {ada.id: ada}


def test_removed_alias_demotes_reference_to_primary(entities: Dict[str, Entity]) -> None:
    entities["e1"] = entities["e1"].model_copy(update={"aliases": []})
    content = f"<p>{_reference('AL', 'alias', 'a1')}</p>"

    new_content, changed = synchronize(content, entities)

    assert changed
    (ref,) = iter_entity_references(parse(new_content))
    assert ref.text == "Ada"
    assert ref.text_type == "primary"
    assert ref.alias_id is None


def test_renamed_alias_updates_displayed_text(entities: Dict[str, Entity]) -> None:
    entities["e1"] = entities["e1"].model_copy(update={"aliases": [Alias(id="a1", name="Lovelace")]})

    new_content, changed = synchronize(_reference("AL", "alias", "a1"), entities)

    assert changed
    (ref,) = iter_entity_references(parse(new_content))
    assert (ref.text, ref.text_type, ref.alias_id) == ("Lovelace", "alias", "a1")


def test_primary_name_change_is_reflected(entities: Dict[str, Entity]) -> None:
    new_content, changed = synchronize(_reference("Augusta"), entities)

    assert changed
    assert [r.text for r in iter_entity_references(parse(new_content))] == ["Ada"]


def test_link_metadata_follows_entity(entities: Dict[str, Entity]) -> None:
    entities["e1"] = entities["e1"].model_copy(update={"link": "https://example.com", "is_external": True})

    new_content, changed = synchronize(_reference("Ada"), entities)

    assert changed
    (ref,) = iter_entity_references(parse(new_content))
    assert ref.link == "https://example.com"
    assert ref.is_external


def test_deleted_entity_reference_becomes_plain_text() -> None:
    content = f"<p>Hi {_reference('Ada')}!</p>"

    new_content, changed = synchronize(content, {})

    assert changed
    assert new_content == "<p>Hi Ada!</p>"


def test_assignment_color_follows_entity(entities: Dict[str, Entity]) -> None:
    new_content, changed = synchronize(_assignment("#ff0000"), entities)

    assert changed
    (marker,) = iter_assignment_markers(parse(new_content))
    assert marker.entity_color == "#00ff00"
    assert marker.highlighted
    assert marker.highlight_color == "#00ff00"


def test_hidden_highlights_clear_inline_color(entities: Dict[str, Entity]) -> None:
    new_content, changed = synchronize(_assignment("#ff0000"), entities, show_highlights=False)

    assert changed
    (marker,) = iter_assignment_markers(parse(new_content))
    assert marker.entity_color == "#00ff00"
    assert not marker.highlighted
    assert marker.highlight_color is None


def test_assignment_of_deleted_entity_loses_color_but_stays() -> None:
    new_content, changed = synchronize(f"<p>{_assignment('#ff0000')}</p>", {})

    assert changed
    (marker,) = iter_assignment_markers(parse(new_content))
    assert marker.block_id == "b1"
    assert marker.entity_color is None
    assert not marker.highlighted
    assert marker.style == {}


def test_legacy_highlight_property_is_replaced(entities: Dict[str, Entity]) -> None:
    content = (
        '<span class="assigned-text-block highlight" data-assigned-block-id="b1" '
        'data-assigned-entity-id="e1" data-assigned-entity-color="#00ff00" '
        'style="--entity-highlight-color: #00ff00">span</span>'
    )

    new_content, changed = synchronize(content, entities)

    assert changed
    (marker,) = iter_assignment_markers(parse(new_content))
    assert marker.style == {"background-color": "#00ff00"}


def test_unchanged_content_is_returned_verbatim(entities: Dict[str, Entity]) -> None:
    content = "<P>plain   <i>text</i><br/></P>"

    assert synchronize(content, entities) == (content, False)


def test_markers_inside_backlink_aggregates_are_reconciled() -> None:
    content = (
        '<p>x</p><div contenteditable="false" class="backlinks-container" data-backlink-entity-id="e1">'
        f"<ul><li>{_reference('Gone', entity_id='e9')} and {_assignment(entity_id='e9')}</li></ul></div>"
    )

    new_content, changed = synchronize(content, {})

    assert changed
    assert "entity-link" not in new_content
    assert "Gone and " in new_content
    assert "background-color" not in new_content
    assert synchronize(new_content, {}) == (new_content, False)


def test_reference_keeps_nested_marker_on_rename(entities: Dict[str, Entity]) -> None:
    marker = AssignmentMarker(block_id="b7", entity_id="e1", entity_color="#00ff00", children=[Text("Bob")])
    content = render([EntityReference(entity_id="e1", text="Bob", original_text="Bob", children=[marker])])

    new_content, changed = synchronize(content, entities, show_highlights=False)

    assert changed
    nodes = parse(new_content)
    (ref,) = iter_entity_references(nodes)
    assert ref.text == "Ada"
    (kept,) = iter_assignment_markers(nodes)
    assert kept.block_id == "b7"
    assert text_content(kept.children) == "Ada"


def test_deleted_reference_keeps_nested_marker() -> None:
    marker = AssignmentMarker(block_id="b7", entity_id="e2", children=[Text("Bob")])
    content = render([EntityReference(entity_id="e1", text="Bob", children=[marker])])

    new_content, changed = synchronize(content, {})

    assert changed
    assert "entity-link" not in new_content
    assert [m.block_id for m in iter_assignment_markers(parse(new_content))] == ["b7"]


@pytest.mark.parametrize("show", [True, False])
def test_synchronize_is_idempotent(entities: Dict[str, Entity], show: bool) -> None:
    entities["e1"] = entities["e1"].model_copy(update={"aliases": []})
    content = (
        f"<p>{_reference('AL', 'alias', 'a1')} and {_reference('Bob', entity_id='e2')}</p>"
        f"<p>{_assignment('#123456')} {_assignment('#654321', entity_id='e2')}</p>"
    )

    once, changed = synchronize(content, entities, show)
    twice, changed_again = synchronize(once, entities, show)

    assert changed
    assert not changed_again
    assert twice == once


def test_synchronize_document_persists_only_on_change(workspace: Workspace, gateway) -> None:
    workspace.set_content("d2", f"<p>{_reference('AL', 'alias', 'a1')}</p>")
    gateway.persist.reset_mock()

    _, changed = SynchronizeDocument(workspace)("d2")
    gateway.persist.assert_not_called()
    assert not changed

    workspace.remove_alias("e1", "a1")
    gateway.persist.reset_mock()
    document, changed = SynchronizeDocument(workspace)("d2")

    assert changed
    assert "Ada" in document.content
    gateway.persist.assert_called_once()


def test_synchronize_all_reports_changed_documents(workspace: Workspace) -> None:
    workspace.set_content("d1", f"<p>{_reference('Old')}</p>")
    workspace.set_content("d2", f"<p>{_reference('Ada')}</p>")

    assert SynchronizeAll(workspace)() == ["d1"]
    assert SynchronizeAll(workspace)() == []
