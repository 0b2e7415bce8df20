"""
Interleaved writers on the same session. SQLite ignores FOR UPDATE, so these
tests stage the interleaving by hand: a writer whose view of the session is
stale must be rejected by the unique sequence constraints, never allowed to
overwrite or reorder what the other writer committed.
"""
import pytest

from backend.app.core.exceptions import InvalidOperationError
from backend.app.core.security import Principal, Role
from backend.app.models.outlet_orm import OutletEscalationORM
from backend.app.schemas.outlet import SessionStatus, StaffRole
from backend.app.services.notification_sink import NotificationSink
from backend.app.services.outlet_service import OutletOrchestrator
from backend.app.services.reply_generator import TemplateReplyGenerator

ORG_ID = "org-test"
OWNER = Principal(user_id="user-1", org_id=ORG_ID, role=Role.USER)


class ListSink(NotificationSink):
    def __init__(self):
        self.sent = []

    async def notify(self, org_id, user_id, kind, title, body, severity):
        self.sent.append((user_id, kind, severity))


def _orchestrator(db, sink=None):
    return OutletOrchestrator(db, TemplateReplyGenerator(), sink or ListSink())


async def _new_session(session_factory):
    async with session_factory() as db:
        outlet_session = await _orchestrator(db).create_session(OWNER)
        return outlet_session.id


@pytest.mark.asyncio
async def test_stale_writer_cannot_lose_a_message_increment(db_session, session_factory):
    sid = await _new_session(session_factory)

    async with session_factory() as first_db, session_factory() as second_db:
        second = _orchestrator(second_db)
        # The second writer reads the session before the first one appends
        stale = await second.store.get(ORG_ID, sid)
        assert stale.message_count == 0

        result = await _orchestrator(first_db).post_message(OWNER, sid, "first message")
        assert [result.user_message.seq, result.ai_message.seq] == [1, 2]

        with pytest.raises(InvalidOperationError) as exc_info:
            await second.post_message(OWNER, sid, "second message")
        assert exc_info.value.status_code == 409

    async with session_factory() as check_db:
        orchestrator = _orchestrator(check_db)
        outlet_session, messages = await orchestrator.get_session_detail(OWNER, sid)
        assert outlet_session.message_count == 2
        assert [m.seq for m in messages] == [1, 2]
        assert messages[0].content == "first message"

    # The rejected writer retries with a fresh view and lands after the first pair
    async with session_factory() as retry_db:
        result = await _orchestrator(retry_db).post_message(OWNER, sid, "second message")
        assert [result.user_message.seq, result.ai_message.seq] == [3, 4]
        assert result.user_message.content == "second message"


@pytest.mark.asyncio
async def test_conflicting_crisis_post_writes_no_escalation(db_session, session_factory):
    sid = await _new_session(session_factory)
    stale_sink = ListSink()

    async with session_factory() as first_db, session_factory() as second_db:
        second = _orchestrator(second_db, stale_sink)
        stale = await second.store.get(ORG_ID, sid)  # keep the stale row in the identity map

        await _orchestrator(first_db).post_message(OWNER, sid, "just tired")

        with pytest.raises(InvalidOperationError):
            await second.post_message(OWNER, sid, "I want to die")

    async with session_factory() as check_db:
        orchestrator = _orchestrator(check_db)
        outlet_session, _ = await orchestrator.get_session_detail(OWNER, sid)
        assert outlet_session.status == SessionStatus.OPEN.value
        assert outlet_session.risk_level == 0
        assert await orchestrator.ledger.list_by_session(sid) == []
    assert stale_sink.sent == []


@pytest.mark.asyncio
async def test_racing_escalation_is_rejected_not_500(db_session, session_factory, monkeypatch):
    sid = await _new_session(session_factory)
    sink = ListSink()

    async with session_factory() as db:
        orchestrator = _orchestrator(db, sink)
        read_max_seq = db.scalar

        async def max_seq_then_competing_append(statement, *args, **kwargs):
            value = await read_max_seq(statement, *args, **kwargs)
            # Another escalation commits between the read and this writer's insert
            async with session_factory() as racer:
                racer.add(OutletEscalationORM(
                    org_id=ORG_ID,
                    session_id=sid,
                    seq=(value or 0) + 1,
                    escalated_to_role=StaffRole.MANAGER.value,
                ))
                await racer.commit()
            return value

        monkeypatch.setattr(db, "scalar", max_seq_then_competing_append)

        with pytest.raises(InvalidOperationError) as exc_info:
            await orchestrator.escalate(OWNER, sid, StaffRole.ADMIN, reason="please look")
        assert exc_info.value.status_code == 409

    assert sink.sent == []
    async with session_factory() as check_db:
        entries = await _orchestrator(check_db).ledger.list_by_session(sid)
        assert [(e.seq, e.escalated_to_role) for e in entries] == [(1, "manager")]
