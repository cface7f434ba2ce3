from datetime import datetime
from unittest.mock import MagicMock

from sqlalchemy import select

from matchgate.models.conversation import Conversation
from matchgate.models.match_event import MatchEvent
from matchgate.models.outcome import DispatchReport
from matchgate.services import build_event_processor, build_reconciler
from matchgate.services.match_events import MatchEventProcessor
from matchgate.utils.database import ActionDB, ConversationDB, MatchEventDB, NotificationDB, session_scope
from matchgate.utils.errors import TransientStoreError
from tests.conftest import USER_1, USER_2, USER_3

NOW = datetime(2026, 10, 18, 3, 0)


def _event():
    return MatchEvent(id="e1", participant_low=USER_1, participant_high=USER_2, created_at=NOW)


def _conversation():
    return Conversation(id="c1", participant_low=USER_1, participant_high=USER_2, created_at=NOW, updated_at=NOW)


def _processor(conversation=None):
    provisioner = MagicMock()
    provisioner.try_provision.return_value = conversation
    dispatcher = MagicMock()
    dispatcher.dispatch.return_value = DispatchReport(delivered=[USER_2, USER_1])
    events = MagicMock()
    return MatchEventProcessor(provisioner, dispatcher, events), provisioner, dispatcher, events


def _add_like(factory, actor_id, target_id, is_matched=False):
    with session_scope(factory, "seed_like") as session:
        session.add(
            ActionDB(
                id=f"{actor_id[:8]}-{target_id[:8]}",
                actor_id=actor_id,
                target_id=target_id,
                kind="like",
                is_matched=is_matched,
                created_at=NOW,
            )
        )


def test_handle_provisions_then_notifies():
    processor, provisioner, dispatcher, events = _processor(_conversation())

    follow_up = processor.handle(_event())

    provisioner.try_provision.assert_called_once_with(USER_1, USER_2)
    events.mark_processed.assert_called_once_with("e1", "c1")
    dispatcher.dispatch.assert_called_once_with(USER_1, USER_2)
    assert follow_up.conversation.id == "c1"
    assert follow_up.notifications.ok


def test_handle_leaves_event_pending_when_provisioning_fails():
    processor, _, dispatcher, events = _processor(None)

    follow_up = processor.handle(_event())

    assert follow_up.conversation is None
    events.record_failure.assert_called_once_with("e1", "conversation provisioning failed")
    events.mark_processed.assert_not_called()
    dispatcher.dispatch.assert_not_called()


def test_handle_skips_notifications_when_event_cannot_be_marked():
    processor, _, dispatcher, events = _processor(_conversation())
    events.mark_processed.side_effect = TransientStoreError("down", operation="match_events.mark_processed")

    follow_up = processor.handle(_event())

    assert follow_up.conversation.id == "c1"
    assert follow_up.notifications is None
    dispatcher.dispatch.assert_not_called()


def test_process_pending_counts_handled_events():
    processor, _, _, events = _processor(_conversation())
    events.pending.return_value = [_event(), _event()]

    assert processor.process_pending(limit=5) == 2
    events.pending.assert_called_once_with(5)


def test_reconciler_promotes_unmatched_mutual_likes(session_factory, clock):
    _add_like(session_factory, USER_1, USER_2)
    _add_like(session_factory, USER_2, USER_1)
    _add_like(session_factory, USER_1, USER_3)

    formed = build_reconciler(session_factory, clock=clock).reconcile()

    assert formed == 1
    with session_scope(session_factory, "test") as session:
        matched = session.scalars(select(ActionDB).where(ActionDB.is_matched.is_(True))).all()
        assert {(row.actor_id, row.target_id) for row in matched} == {(USER_1, USER_2), (USER_2, USER_1)}
        assert all(row.matched_at == datetime(2026, 10, 18, 3, 0) for row in matched)
        assert len(session.scalars(select(ConversationDB)).all()) == 1
        assert len(session.scalars(select(NotificationDB)).all()) == 2


def test_reconciler_is_a_no_op_when_nothing_to_do(session_factory, clock):
    _add_like(session_factory, USER_1, USER_2)

    assert build_reconciler(session_factory, clock=clock).reconcile() == 0


def test_process_pending_retries_stored_events(session_factory):
    with session_scope(session_factory, "seed_event") as session:
        session.add(
            MatchEventDB(id="e1", participant_low=USER_1, participant_high=USER_2, status="pending", created_at=NOW)
        )

    assert build_event_processor(session_factory).process_pending() == 1

    with session_scope(session_factory, "test") as session:
        event = session.get(MatchEventDB, "e1")
        assert event.status == "processed"
        assert event.attempts == 1
        assert event.conversation_id is not None
