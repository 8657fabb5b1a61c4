"""
Tests for the change poller.

Covers cursor computation across pages, the subtree filter, error
propagation and optional deletion tracking.
"""

import pytest

from driveriver.drive.changes import ChangePoller
from driveriver.exceptions import AuthError, TransportError

from fakes import FakeDriveClient, make_change, make_file, page


class TestPollCursor:
    """Tests for next_cursor computation."""

    def test_multi_page_without_scope(self):
        """All changes accepted, cursor is the largest id over all pages."""
        client = FakeDriveClient(pages=[
            page([make_change(1, make_file("a")), make_change(2, make_file("b"))], 2, "tok"),
            page([make_change(3, make_file("c"))], 3, ""),
        ])
        result = ChangePoller(client).poll(None)

        assert result.next_cursor == 3
        assert [c.change_id for c in result.changes] == [1, 2, 3]

    def test_largest_id_on_earlier_page(self):
        """Running maximum is kept when a later page reports a smaller id."""
        client = FakeDriveClient(pages=[
            page([make_change(1, make_file("a"))], 9, "tok"),
            page([make_change(2, make_file("b"))], 4, None),
        ])
        assert ChangePoller(client).poll(None).next_cursor == 9

    def test_cursor_passed_to_client(self):
        """The cursor is handed to the feed as-is."""
        client = FakeDriveClient(pages=[page([], 10)])
        ChangePoller(client).poll(7)
        assert client.change_requests == [7]

    def test_cursor_never_decreases(self):
        """An empty feed never moves the cursor backwards."""
        client = FakeDriveClient(pages=[page([], -1)])
        assert ChangePoller(client).poll(42).next_cursor == 42

    def test_empty_feed_from_beginning(self):
        """No pages and no cursor gives -1."""
        client = FakeDriveClient(pages=[])
        result = ChangePoller(client).poll(None)
        assert result.next_cursor == -1
        assert result.changes == []

    def test_idempotent_against_unchanged_feed(self):
        """Polling twice with the same cursor gives the same result."""
        client = FakeDriveClient(pages=[
            page([make_change(5, make_file("a", ["A"])), make_change(6, make_file("b", ["Z"]))], 6),
        ])
        poller = ChangePoller(client, scope=frozenset({"A"}))
        first = poller.poll(4)
        second = poller.poll(4)

        assert first.next_cursor == second.next_cursor == 6
        assert [c.change_id for c in first.changes] == [c.change_id for c in second.changes] == [5]


class TestSubtreeFilter:
    """Tests for scope-based filtering."""

    def test_file_outside_scope_excluded(self):
        """A file whose parents are all outside the scope is dropped."""
        client = FakeDriveClient(pages=[page([make_change(1, make_file("x", ["B"]))], 1)])
        result = ChangePoller(client, scope=frozenset({"A"})).poll(None)
        assert result.changes == []
        assert result.next_cursor == 1

    def test_any_parent_in_scope_accepted(self):
        """One matching parent is enough."""
        client = FakeDriveClient(pages=[page([make_change(1, make_file("x", ["B", "A"]))], 1)])
        result = ChangePoller(client, scope=frozenset({"A"})).poll(None)
        assert len(result.changes) == 1

    def test_deletion_excluded_with_scope(self):
        """A deleted file cannot be checked against the scope and is dropped."""
        client = FakeDriveClient(pages=[page([make_change(1, file_id="gone")], 1)])
        result = ChangePoller(client, scope=frozenset({"A"})).poll(None)
        assert result.changes == []

    def test_deletion_included_without_scope(self):
        """Without a scope deletions pass through."""
        client = FakeDriveClient(pages=[page([make_change(1, file_id="gone")], 1)])
        result = ChangePoller(client).poll(None)
        assert len(result.changes) == 1
        assert result.changes[0].deleted

    def test_file_without_parents_excluded_with_scope(self):
        """Orphaned files (no parents) are out of scope."""
        client = FakeDriveClient(pages=[page([make_change(1, make_file("x", []))], 1)])
        assert ChangePoller(client, scope=frozenset({"A"})).poll(None).changes == []

    def test_delivery_order_preserved(self):
        """Accepted changes keep feed order across pages."""
        client = FakeDriveClient(pages=[
            page([make_change(1, make_file("a", ["A"])), make_change(2, make_file("b", ["Z"]))], 2, "t"),
            page([make_change(3, make_file("c", ["A"])), make_change(4, make_file("d", ["A"]))], 4),
        ])
        result = ChangePoller(client, scope=frozenset({"A"})).poll(None)
        assert [c.file_id for c in result.changes] == ["a", "c", "d"]


class TestPollErrors:
    """Tests for error propagation."""

    def test_auth_error_propagates(self):
        """AuthError is surfaced immediately."""
        client = FakeDriveClient(pages=[page([], 1)])
        client.errors["list_changes"] = AuthError("401")
        client.fail_at_page = 0
        with pytest.raises(AuthError):
            ChangePoller(client).poll(None)

    def test_transport_error_mid_feed_discards_cycle(self):
        """A failure on a later page raises; nothing partial is returned."""
        client = FakeDriveClient(pages=[
            page([make_change(1, make_file("a"))], 1, "tok"),
            page([make_change(2, make_file("b"))], 2),
        ])
        client.errors["list_changes"] = TransportError("reset", status_code=None)
        client.fail_at_page = 1
        with pytest.raises(TransportError):
            ChangePoller(client).poll(None)


class TestTrackDeletions:
    """Tests for the opt-in scoped deletion tracking."""

    def test_deletion_of_known_file_accepted(self):
        """A file seen in scope earlier is reported when deleted."""
        client = FakeDriveClient(pages=[page([make_change(1, make_file("a", ["A"]))], 1)])
        poller = ChangePoller(client, scope=frozenset({"A"}), track_deletions=True)
        poller.poll(None)

        client.pages = [page([make_change(2, file_id="a")], 2)]
        result = poller.poll(1)
        assert [c.file_id for c in result.changes] == ["a"]
        assert result.changes[0].deleted

    def test_deletion_of_unknown_file_dropped(self):
        """Deletions of never-seen files are still dropped."""
        client = FakeDriveClient(pages=[page([make_change(1, file_id="stranger")], 1)])
        poller = ChangePoller(client, scope=frozenset({"A"}), track_deletions=True)
        assert poller.poll(None).changes == []

    def test_moved_out_then_deleted_dropped(self):
        """A file that left the scope is forgotten."""
        client = FakeDriveClient(pages=[page([
            make_change(1, make_file("a", ["A"])),
            make_change(2, make_file("a", ["Z"])),
            make_change(3, file_id="a"),
        ], 3)])
        poller = ChangePoller(client, scope=frozenset({"A"}), track_deletions=True)
        result = poller.poll(None)
        assert [c.change_id for c in result.changes] == [1]

    def test_disabled_by_default(self):
        """Without track_deletions scoped deletions are always dropped."""
        client = FakeDriveClient(pages=[page([make_change(1, make_file("a", ["A"]))], 1)])
        poller = ChangePoller(client, scope=frozenset({"A"}))
        poller.poll(None)

        client.pages = [page([make_change(2, file_id="a")], 2)]
        assert poller.poll(1).changes == []
