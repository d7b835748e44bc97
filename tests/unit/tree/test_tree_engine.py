"""Tests for blocsync.tree.engine."""

from __future__ import annotations

import pytest

from blocsync.errors import BlocSyncSnapshotError
from blocsync.tree.engine import (
    COMMAND_PRIORITY_HIGH,
    COMMAND_PRIORITY_LOW,
    HISTORIC_TAG,
    HISTORY_MERGE_TAG,
    Command,
    TreeEngine,
)
from blocsync.tree.nodes import ROOT_KEY, TextNode


@pytest.fixture
def payloads(tree):
    received = []
    tree.register_update_listener(received.append)
    return received


class TestWriterEdits:
    def test_insert_paragraph_appends(self, tree):
        a = tree.update(lambda w: w.insert_paragraph("one"))
        b = tree.update(lambda w: w.insert_paragraph("two"))
        assert tree.editor_state.top_level_keys() == (a, b)
        assert tree.editor_state.text_content(b) == "two"

    def test_insert_at_index(self, tree):
        a = tree.update(lambda w: w.insert_paragraph("a"))
        b = tree.update(lambda w: w.insert_paragraph("b", index=0))
        assert tree.editor_state.top_level_keys() == (b, a)

    def test_insert_heading(self, tree):
        key = tree.update(lambda w: w.insert_heading("Title", tag="h2"))
        assert tree.editor_state.node(key).tag == "h2"

    def test_set_text_creates_text_child(self, tree):
        key = tree.update(lambda w: w.insert_paragraph())
        assert tree.editor_state.children(key) == ()
        tree.update(lambda w: w.set_text(key, "typed"))
        assert tree.editor_state.text_content(key) == "typed"

    def test_append_text(self, tree):
        key = tree.update(lambda w: w.insert_paragraph("ab"))
        tree.update(lambda w: w.append_text(key, "c"))
        assert tree.editor_state.text_content(key) == "abc"

    def test_set_text_on_widget_raises(self, tree):
        key = tree.update(lambda w: w.insert_node({"type": "event", "name": "x"}))
        with pytest.raises(BlocSyncSnapshotError):
            tree.update(lambda w: w.set_text(key, "nope"))

    def test_remove_drops_subtree(self, tree):
        key = tree.update(lambda w: w.insert_paragraph("gone"))
        text_key = tree.editor_state.children(key)[0]
        tree.update(lambda w: w.remove(key))
        assert key not in tree.editor_state
        assert text_key not in tree.editor_state

    def test_remove_root_raises(self, tree):
        with pytest.raises(BlocSyncSnapshotError):
            tree.update(lambda w: w.remove(ROOT_KEY))

    def test_move_index_counts_after_removal(self, tree):
        keys = [tree.update(lambda w, t=t: w.insert_paragraph(t)) for t in "abc"]
        tree.update(lambda w: w.move(keys[0], 2))
        assert tree.editor_state.top_level_keys() == (keys[1], keys[2], keys[0])

    def test_clear(self, tree):
        for t in "ab":
            tree.update(lambda w, t=t: w.insert_paragraph(t))
        tree.update(lambda w: w.clear())
        assert tree.editor_state.is_empty()


class TestDirtyTracking:
    def test_text_edit_marks_leaf_and_ancestors(self, tree, payloads):
        key = tree.update(lambda w: w.insert_paragraph("a"))
        text_key = tree.editor_state.children(key)[0]
        tree.update(lambda w: w.set_text(text_key, "b"))
        payload = payloads[-1]
        assert payload.dirty_leaves == {text_key}
        assert payload.dirty_elements == {key, ROOT_KEY}

    def test_move_marks_only_the_moved_node_and_root(self, tree, payloads):
        keys = [tree.update(lambda w, t=t: w.insert_paragraph(t)) for t in "abc"]
        tree.update(lambda w: w.move(keys[2], 0))
        assert payloads[-1].dirty_elements == {keys[2], ROOT_KEY}
        assert payloads[-1].dirty_leaves == frozenset()

    def test_remove_reports_removed_keys(self, tree, payloads):
        key = tree.update(lambda w: w.insert_paragraph("a"))
        text_key = tree.editor_state.children(key)[0]
        tree.update(lambda w: w.remove(key))
        assert key in payloads[-1].dirty_elements
        assert text_key in payloads[-1].dirty_leaves

    def test_noop_update_still_notifies(self, tree, payloads):
        tree.update(lambda w: None)
        assert len(payloads) == 1
        assert payloads[0].snapshot is payloads[0].prev_snapshot
        assert not payloads[0].dirty_elements
        assert not tree.can_undo

    def test_snapshots_are_immutable_across_updates(self, tree, payloads):
        key = tree.update(lambda w: w.insert_paragraph("a"))
        before = tree.editor_state
        tree.update(lambda w: w.append_text(key, "b"))
        assert before.text_content(key) == "a"
        assert payloads[-1].prev_snapshot is before


class TestHistory:
    def test_undo_redo(self, tree, payloads):
        key = tree.update(lambda w: w.insert_paragraph("a"))
        assert tree.undo()
        assert key not in tree.editor_state
        assert payloads[-1].tags == {HISTORIC_TAG}
        assert not payloads[-1].dirty_elements
        assert tree.redo()
        assert key in tree.editor_state

    def test_undo_on_empty_history(self, tree, payloads):
        assert tree.undo() is False
        assert payloads == []

    def test_history_merge_is_not_recorded(self, tree):
        tree.update(lambda w: w.insert_paragraph("a"), tags=[HISTORY_MERGE_TAG])
        assert not tree.can_undo

    def test_new_edit_clears_redo(self, tree):
        tree.update(lambda w: w.insert_paragraph("a"))
        tree.undo()
        assert tree.can_redo
        tree.update(lambda w: w.insert_paragraph("b"))
        assert not tree.can_redo

    def test_history_limit(self):
        tree = TreeEngine(history_limit=2)
        for t in "abc":
            tree.update(lambda w, t=t: w.insert_paragraph(t))
        assert tree.undo() and tree.undo()
        assert not tree.undo()
        assert len(tree.editor_state.top_level_keys()) == 1

    @pytest.mark.parametrize("limit", [0, -1])
    def test_history_limit_must_be_positive(self, limit):
        with pytest.raises(ValueError, match="history_limit"):
            TreeEngine(history_limit=limit)

    def test_set_editor_state_marks_everything_dirty(self, tree, payloads):
        state = tree.set_editor_state(
            {"root": {"type": "root", "children": [{"type": "paragraph", "children": []}]}}
        )
        payload = payloads[-1]
        assert payload.tags == {HISTORY_MERGE_TAG}
        assert payload.dirty_elements == set(state.nodes)
        assert not tree.can_undo

    def test_clear_history(self, tree):
        tree.update(lambda w: w.insert_paragraph("a"))
        tree.clear_history()
        assert not tree.can_undo


class TestCommands:
    def test_handler_runs_before_default(self, tree):
        tree.update(lambda w: w.insert_paragraph("a"))
        seen = []

        def handler(command):
            seen.append((command, len(tree.editor_state.top_level_keys())))
            return False

        tree.register_command(Command.UNDO, handler)
        tree.undo()
        assert seen == [(Command.UNDO, 1)]
        assert tree.editor_state.is_empty()

    def test_consuming_handler_skips_default(self, tree):
        tree.update(lambda w: w.insert_paragraph("a"))
        tree.register_command(Command.UNDO, lambda c: True)
        assert tree.undo()
        assert not tree.editor_state.is_empty()

    def test_priority_order_and_unregister(self, tree):
        order = []
        tree.register_command(Command.REDO, lambda c: order.append("low") or False,
                              COMMAND_PRIORITY_LOW)
        unregister = tree.register_command(
            Command.REDO, lambda c: order.append("high") or False, COMMAND_PRIORITY_HIGH
        )
        tree.redo()
        assert order == ["high", "low"]
        unregister()
        tree.redo()
        assert order == ["high", "low", "low"]

    def test_unregister_listener(self, tree):
        received = []
        unregister = tree.register_update_listener(received.append)
        unregister()
        tree.update(lambda w: w.insert_paragraph("a"))
        assert received == []

    def test_initial_state_from_json(self):
        tree = TreeEngine(
            {"root": {"type": "root", "children": [
                {"type": "paragraph", "children": [{"type": "text", "text": "x"}]}
            ]}}
        )
        (key,) = tree.editor_state.top_level_keys()
        child = tree.editor_state.children(key)[0]
        assert isinstance(tree.editor_state.node(child), TextNode)
