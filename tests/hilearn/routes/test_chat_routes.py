from datetime import datetime, timedelta

from hilearn.models.chat_message import ChatMessage
from hilearn.routes.chat_routes import (
    count_unread,
    get_messages,
    get_support_agent,
    get_unread_count,
    list_contacts,
    mark_as_read,
    save_message,
    serialize_message,
)

BASE_TIME = datetime(2026, 3, 2, 9, 0)


def _add_message(db, sender, receiver, text, minutes=0, read=False):
    chat_message = ChatMessage(
        sender_id=sender.id,
        receiver_id=receiver.id,
        message=text,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        read=read,
    )
    db.add(chat_message)
    db.commit()
    db.refresh(chat_message)
    return chat_message


def test_save_message_persists_unread_row(db_session, make_user) -> None:
    alice = make_user('Alice')
    bob = make_user('Bob')

    saved = save_message(db_session, alice.id, bob.id, 'Hi Bob')

    rows = db_session.query(ChatMessage).all()
    assert [row.id for row in rows] == [saved.id]
    assert saved.read is False
    assert saved.sender_id == alice.id
    assert saved.receiver_id == bob.id


def test_serialize_message_uses_wire_field_names(db_session, make_user) -> None:
    alice = make_user('Alice', role='ADMIN')
    bob = make_user('Bob')
    saved = _add_message(db_session, alice, bob, 'Welcome aboard')

    payload = serialize_message(saved)

    assert payload == {
        'id': saved.id,
        'message': 'Welcome aboard',
        'senderId': alice.id,
        'receiverId': bob.id,
        'createdAt': '2026-03-02T09:00:00Z',
        'read': False,
        'sender': {'id': alice.id, 'name': 'Alice', 'avatar': None},
    }


def test_get_messages_is_symmetric_and_ascending(db_session, make_user) -> None:
    alice = make_user('Alice')
    bob = make_user('Bob')
    carol = make_user('Carol')

    third = _add_message(db_session, alice, bob, 'third', minutes=10)
    first = _add_message(db_session, bob, alice, 'first', minutes=1)
    second = _add_message(db_session, alice, bob, 'second', minutes=5)
    _add_message(db_session, alice, carol, 'unrelated', minutes=3)

    seen_by_alice = get_messages(user_id=bob.id, current_user=alice, db=db_session)
    seen_by_bob = get_messages(user_id=alice.id, current_user=bob, db=db_session)

    assert [message.id for message in seen_by_alice] == [first.id, second.id, third.id]
    assert [message.id for message in seen_by_bob] == [first.id, second.id, third.id]


def test_get_messages_returns_empty_list_for_strangers(db_session, make_user) -> None:
    alice = make_user('Alice')
    bob = make_user('Bob')

    assert get_messages(user_id=bob.id, current_user=alice, db=db_session) == []


def test_mark_as_read_is_idempotent(db_session, make_user) -> None:
    alice = make_user('Alice')
    bob = make_user('Bob')
    _add_message(db_session, bob, alice, 'one', minutes=1)
    _add_message(db_session, bob, alice, 'two', minutes=2)

    first_call = mark_as_read(user_id=bob.id, current_user=alice, db=db_session)
    assert first_call.count == 2
    assert get_unread_count(current_user=alice, db=db_session).count == 0

    second_call = mark_as_read(user_id=bob.id, current_user=alice, db=db_session)
    assert second_call.count == 0
    assert get_unread_count(current_user=alice, db=db_session).count == 0


def test_mark_as_read_only_touches_messages_received_from_that_sender(db_session, make_user) -> None:
    alice = make_user('Alice')
    bob = make_user('Bob')
    carol = make_user('Carol')
    _add_message(db_session, bob, alice, 'from bob', minutes=1)
    _add_message(db_session, carol, alice, 'from carol', minutes=2)
    _add_message(db_session, alice, bob, 'to bob', minutes=3)

    mark_as_read(user_id=bob.id, current_user=alice, db=db_session)

    assert count_unread(db_session, alice.id) == 1
    assert count_unread(db_session, bob.id) == 1


def test_unread_count_is_recomputed_on_every_call(db_session, make_user) -> None:
    alice = make_user('Alice')
    bob = make_user('Bob')

    assert get_unread_count(current_user=alice, db=db_session).count == 0

    _add_message(db_session, bob, alice, 'ping', minutes=1)
    _add_message(db_session, bob, alice, 'ping again', minutes=2)
    _add_message(db_session, bob, alice, 'already seen', minutes=3, read=True)
    assert get_unread_count(current_user=alice, db=db_session).count == 2

    mark_as_read(user_id=bob.id, current_user=alice, db=db_session)
    assert get_unread_count(current_user=alice, db=db_session).count == 0

    _add_message(db_session, bob, alice, 'new one', minutes=4)
    assert get_unread_count(current_user=alice, db=db_session).count == 1


def test_list_contacts_returns_distinct_counterparts_sorted_by_name(db_session, make_user) -> None:
    admin = make_user('Zed Admin', role='ADMIN')
    bob = make_user('Bob')
    amy = make_user('Amy')
    make_user('Nobody')

    _add_message(db_session, bob, admin, 'help', minutes=1)
    _add_message(db_session, admin, bob, 'sure', minutes=2)
    _add_message(db_session, bob, admin, 'thanks', minutes=3)
    _add_message(db_session, admin, amy, 'reminder', minutes=4)

    contacts = list_contacts(current_user=admin, db=db_session)

    assert [contact.name for contact in contacts] == ['Amy', 'Bob']


def test_learner_without_staff_gets_no_support_agent_and_no_contacts(db_session, make_user) -> None:
    learner = make_user('Learner')

    assert get_support_agent(current_user=learner, db=db_session) is None
    assert list_contacts(current_user=learner, db=db_session) == []


def test_support_agent_prefers_flagged_staff(db_session, make_user) -> None:
    learner = make_user('Learner')
    make_user('First Admin', role='ADMIN')
    flagged = make_user('Help Desk', role='INSTRUCTOR', support_agent=True)

    agent = get_support_agent(current_user=learner, db=db_session)

    assert agent.id == flagged.id


def test_support_agent_falls_back_to_first_admin(db_session, make_user) -> None:
    learner = make_user('Learner')
    make_user('Instructor', role='INSTRUCTOR')
    first_admin = make_user('First Admin', role='ADMIN')
    make_user('Second Admin', role='ADMIN')

    agent = get_support_agent(current_user=learner, db=db_session)

    assert agent.id == first_admin.id


def test_flagged_learner_is_never_picked_as_support_agent(db_session, make_user) -> None:
    learner = make_user('Learner')
    make_user('Odd Flag', role='STUDENT', support_agent=True)

    assert get_support_agent(current_user=learner, db=db_session) is None
