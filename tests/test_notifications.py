"""Tests for NotificationStore."""

from __future__ import annotations

import pytest

from webapp.errors import NotFound


class TestNotificationStore:
    def test_create_and_list(self, stores):
        u = stores.user("n1@x.com")
        stores.notifications.create(u.user_id, "WORKSPACE_INVITE", "First", "one")
        stores.notifications.create(u.user_id, "WORKSPACE_INVITE", "Second", "two", link="/x")
        items = stores.notifications.list_for_user(u.user_id)
        assert [n.title for n in items] == ["Second", "First"]
        assert items[0].link == "/x"
        assert items[0].is_read is False

    def test_limit(self, stores):
        u = stores.user("n1@x.com")
        for i in range(5):
            stores.notifications.create(u.user_id, "WORKSPACE_INVITE", f"t{i}", "")
        assert len(stores.notifications.list_for_user(u.user_id, limit=3)) == 3

    def test_unread_count_and_mark_read(self, stores):
        u = stores.user("n1@x.com")
        a = stores.notifications.create(u.user_id, "WORKSPACE_INVITE", "A", "")
        stores.notifications.create(u.user_id, "WORKSPACE_INVITE", "B", "")
        assert stores.notifications.unread_count(u.user_id) == 2
        read = stores.notifications.mark_read(a.id, u.user_id)
        assert read.is_read is True
        assert stores.notifications.unread_count(u.user_id) == 1
        unread = stores.notifications.list_for_user(u.user_id, unread_only=True)
        assert [n.title for n in unread] == ["B"]

    def test_cannot_mark_someone_elses(self, stores):
        u1 = stores.user("n1@x.com")
        u2 = stores.user("n2@x.com")
        n = stores.notifications.create(u1.user_id, "WORKSPACE_INVITE", "A", "")
        with pytest.raises(NotFound):
            stores.notifications.mark_read(n.id, u2.user_id)
        with pytest.raises(NotFound):
            stores.notifications.mark_read("missing", u1.user_id)

    def test_mark_all_read(self, stores):
        u = stores.user("n1@x.com")
        other = stores.user("n2@x.com")
        for t in ("A", "B", "C"):
            stores.notifications.create(u.user_id, "WORKSPACE_INVITE", t, "")
        stores.notifications.create(other.user_id, "WORKSPACE_INVITE", "X", "")
        assert stores.notifications.mark_all_read(u.user_id) == 3
        assert stores.notifications.unread_count(u.user_id) == 0
        assert stores.notifications.unread_count(other.user_id) == 1

    def test_to_dict(self, stores):
        u = stores.user("n1@x.com")
        n = stores.notifications.create(u.user_id, "WORKSPACE_INVITE", "A", "msg")
        d = n.to_dict()
        assert d["id"] == n.id
        assert d["type"] == "WORKSPACE_INVITE"
        assert d["is_read"] is False
