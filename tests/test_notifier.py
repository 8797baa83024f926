import pytest

from apps.api.services.notifier import Notifier
from models import Notification, NotificationType


@pytest.mark.asyncio
async def test_create_commits_notification(mock_session):
    ok = await Notifier(mock_session).create(3, NotificationType.LIKE, "hello", {"userId": 1})

    assert ok is True
    notification = mock_session.add.call_args.args[0]
    assert isinstance(notification, Notification)
    assert notification.user_id == 3
    assert notification.type == "like"
    mock_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_create_failure_is_swallowed(mock_session):
    mock_session.commit.side_effect = RuntimeError("db down")

    ok = await Notifier(mock_session).create(3, NotificationType.MATCH, "hello")

    assert ok is False
    mock_session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_like_notification_names_the_liker(mock_session, mock_result):
    mock_result.scalar_one_or_none.return_value = "Alice"

    await Notifier(mock_session).send_like(2, 1)

    notification = mock_session.add.call_args.args[0]
    assert notification.message == "Alice liked your profile"
    assert notification.data == {"userId": 1}


@pytest.mark.asyncio
async def test_message_notification_carries_conversation(mock_session, mock_result):
    mock_result.scalar_one_or_none.return_value = "Bob"

    await Notifier(mock_session).send_message(1, 2, conversation_id=10)

    notification = mock_session.add.call_args.args[0]
    assert notification.type == "message"
    assert notification.data == {"userId": 2, "conversationId": 10}


@pytest.mark.asyncio
async def test_unknown_actor_falls_back_to_someone(mock_session):
    await Notifier(mock_session).send_visit(2, 99)

    notification = mock_session.add.call_args.args[0]
    assert notification.message == "Someone viewed your profile"


@pytest.mark.asyncio
async def test_failed_actor_lookup_rolls_back(mock_session):
    mock_session.execute.side_effect = Exception("current transaction is aborted")

    stored = await Notifier(mock_session).send_match(2, 1)

    assert stored is False
    mock_session.rollback.assert_awaited_once()
    mock_session.add.assert_not_called()
