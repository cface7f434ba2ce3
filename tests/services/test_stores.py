from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from matchgate.models.action import Action, ActionKind
from matchgate.models.notification import Notification, NotificationType
from matchgate.services.stores import (
    SqlActionStore,
    SqlConversationStore,
    SqlMatchEventLog,
    SqlNotificationSink,
    SqlProfileStore,
)
from matchgate.utils.database import MatchEventDB, session_scope
from matchgate.utils.errors import ConflictError, DuplicateActionError
from tests.conftest import MISSING_USER, USER_1, USER_2, USER_3

NOW = datetime(2026, 10, 18, 3, 0)


def _insert(store, actor_id, target_id, kind=ActionKind.LIKE, created_at=NOW):
    action = Action(
        id=f"{actor_id[:8]}-{target_id[:8]}",
        actor_id=actor_id,
        target_id=target_id,
        kind=kind,
        created_at=created_at,
    )
    return store.insert(action)


def test_profile_store(session_factory):
    profiles = SqlProfileStore(session_factory)

    assert profiles.exists(USER_1)
    assert not profiles.exists(MISSING_USER)
    assert profiles.display_name(USER_2) == "Ben"
    assert profiles.display_name(MISSING_USER) is None


def test_insert_and_get(session_factory):
    actions = SqlActionStore(session_factory)
    _insert(actions, USER_1, USER_2)

    stored = actions.get(USER_1, USER_2)
    assert stored.kind == ActionKind.LIKE
    assert stored.is_matched is False
    assert actions.get(USER_2, USER_1) is None


def test_insert_same_ordered_pair_raises_duplicate(session_factory):
    actions = SqlActionStore(session_factory)
    _insert(actions, USER_1, USER_2)

    with pytest.raises(DuplicateActionError):
        actions.insert(Action(id="other", actor_id=USER_1, target_id=USER_2, kind=ActionKind.PASS, created_at=NOW))


def test_count_likes_since_is_half_open(session_factory):
    actions = SqlActionStore(session_factory)
    _insert(actions, USER_1, USER_2, created_at=NOW)
    _insert(actions, USER_1, USER_3, created_at=NOW + timedelta(hours=1))
    _insert(actions, USER_2, USER_3, created_at=NOW)
    _insert(actions, USER_3, USER_1, kind=ActionKind.PASS, created_at=NOW)

    assert actions.count_likes_since(USER_1, NOW) == 2
    assert actions.count_likes_since(USER_1, NOW, NOW + timedelta(hours=1)) == 1
    assert actions.count_likes_since(USER_1, NOW + timedelta(hours=2)) == 0
    assert actions.count_likes_since(USER_3, NOW) == 0


def _like(actor_id, target_id, created_at=NOW):
    return Action(
        id=f"{actor_id[:8]}-{target_id[:8]}",
        actor_id=actor_id,
        target_id=target_id,
        kind=ActionKind.LIKE,
        created_at=created_at,
    )


def test_insert_like_counts_and_inserts_below_limit(session_factory):
    actions = SqlActionStore(session_factory)
    _insert(actions, USER_1, USER_2)
    # Outside the window
    _insert(actions, USER_1, MISSING_USER, created_at=NOW - timedelta(days=1))

    used = actions.insert_like(_like(USER_1, USER_3), NOW - timedelta(hours=1), NOW + timedelta(hours=1), limit=2)

    assert used == 2
    assert actions.get(USER_1, USER_3) is not None


def test_insert_like_refuses_at_limit(session_factory):
    actions = SqlActionStore(session_factory)
    _insert(actions, USER_1, USER_2)
    _insert(actions, USER_1, MISSING_USER)

    used = actions.insert_like(_like(USER_1, USER_3), NOW, NOW + timedelta(days=1), limit=2)

    assert used is None
    assert actions.get(USER_1, USER_3) is None
    assert actions.count_likes_since(USER_1, NOW) == 2


def test_insert_like_on_existing_pair_raises_duplicate(session_factory):
    actions = SqlActionStore(session_factory)
    _insert(actions, USER_1, USER_2, kind=ActionKind.PASS)

    with pytest.raises(DuplicateActionError):
        actions.insert_like(
            Action(id="again", actor_id=USER_1, target_id=USER_2, kind=ActionKind.LIKE, created_at=NOW),
            NOW,
            NOW + timedelta(days=1),
            limit=10,
        )


def test_promote_match_requires_both_likes(session_factory):
    actions = SqlActionStore(session_factory)
    _insert(actions, USER_1, USER_2)
    _insert(actions, USER_2, USER_1, kind=ActionKind.PASS)

    assert actions.promote_match(USER_2, USER_1, NOW) is None
    assert actions.get(USER_1, USER_2).is_matched is False


def test_promote_match_only_once(session_factory):
    actions = SqlActionStore(session_factory)
    _insert(actions, USER_2, USER_1)
    _insert(actions, USER_1, USER_2)

    event = actions.promote_match(USER_2, USER_1, NOW)

    assert event is not None
    assert (event.participant_low, event.participant_high) == (USER_1, USER_2)
    assert actions.get(USER_1, USER_2).matched_at == NOW
    assert actions.get(USER_2, USER_1).matched_at == NOW
    assert actions.promote_match(USER_1, USER_2, NOW + timedelta(seconds=1)) is None
    assert actions.get(USER_1, USER_2).matched_at == NOW


def test_promote_match_returns_none_when_event_insert_collides(session_factory):
    actions = SqlActionStore(session_factory)
    _insert(actions, USER_1, USER_2)
    _insert(actions, USER_2, USER_1)
    with session_scope(session_factory, "test_seed") as session:
        session.add(MatchEventDB(id="winner", participant_low=USER_1, participant_high=USER_2, created_at=NOW))

    # Another transaction wrote the event after this one looked for it
    with patch.object(SqlActionStore, "_event_exists", return_value=False):
        assert actions.promote_match(USER_1, USER_2, NOW) is None

    # The flip was rolled back with the failed insert
    assert actions.get(USER_1, USER_2).is_matched is False
    assert [e.id for e in SqlMatchEventLog(session_factory).pending()] == ["winner"]


def test_count_matched_ignores_paging(session_factory):
    actions = SqlActionStore(session_factory)
    for other in (USER_2, USER_3):
        _insert(actions, USER_1, other)
        _insert(actions, other, USER_1)
        actions.promote_match(USER_1, other, NOW)

    assert actions.count_matched(USER_1) == 2
    assert len(actions.list_matched(USER_1, limit=1)) == 1
    assert actions.count_matched(USER_2) == 1
    assert actions.count_matched(MISSING_USER) == 0


def test_find_unmatched_mutual_likes_reports_each_pair_once(session_factory):
    actions = SqlActionStore(session_factory)
    _insert(actions, USER_1, USER_2)
    _insert(actions, USER_2, USER_1)
    _insert(actions, USER_3, USER_1)

    assert actions.find_unmatched_mutual_likes() == [(USER_1, USER_2)]

    actions.promote_match(USER_1, USER_2, NOW)
    assert actions.find_unmatched_mutual_likes() == []


def test_list_matched_includes_name_and_conversation(session_factory):
    actions = SqlActionStore(session_factory)
    _insert(actions, USER_1, USER_2)
    _insert(actions, USER_2, USER_1)
    actions.promote_match(USER_1, USER_2, NOW)
    conversation = SqlConversationStore(session_factory).create(USER_1, USER_2)

    matches = actions.list_matched(USER_2)

    assert len(matches) == 1
    assert matches[0].user_id == USER_1
    assert matches[0].name == "Aiko"
    assert matches[0].matched_at == NOW
    assert matches[0].conversation_id == conversation.id
    assert actions.list_matched(USER_3) == []


def test_conversation_pair_is_unique(session_factory):
    conversations = SqlConversationStore(session_factory)
    created = conversations.create(USER_1, USER_2)

    with pytest.raises(ConflictError):
        conversations.create(USER_1, USER_2)

    assert conversations.get_by_pair(USER_1, USER_2).id == created.id
    assert conversations.get_by_pair(USER_1, USER_3) is None


def test_notification_sink(session_factory):
    sink = SqlNotificationSink(session_factory)
    for n in range(3):
        sink.create(
            Notification(
                id=f"n{n}",
                recipient_id=USER_1,
                type=NotificationType.MATCH,
                title="New match!",
                message="hi",
                payload={"n": n},
                is_read=n == 0,
                created_at=NOW + timedelta(minutes=n),
            )
        )

    newest_first = sink.list_for(USER_1)
    assert [n.id for n in newest_first] == ["n2", "n1", "n0"]
    assert [n.id for n in sink.list_for(USER_1, limit=1, offset=1)] == ["n1"]
    assert [n.id for n in sink.list_for(USER_1, unread_only=True)] == ["n2", "n1"]
    assert sink.unread_count(USER_1) == 2
    assert sink.list_for(USER_2) == []


def test_match_event_log(session_factory):
    actions = SqlActionStore(session_factory)
    _insert(actions, USER_1, USER_2)
    _insert(actions, USER_2, USER_1)
    event = actions.promote_match(USER_1, USER_2, NOW)
    events = SqlMatchEventLog(session_factory)

    assert [e.id for e in events.pending()] == [event.id]

    events.record_failure(event.id, "boom")
    pending = events.pending()
    assert pending[0].attempts == 1
    assert pending[0].last_error == "boom"

    events.mark_processed(event.id, "c1")
    assert events.pending() == []


def test_match_event_log_ignores_unknown_event(session_factory):
    events = SqlMatchEventLog(session_factory)

    events.mark_processed("missing", "c1")
    events.record_failure("missing", "boom")

    assert events.pending() == []
