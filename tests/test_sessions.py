from datetime import timedelta
import pytest
from fastapi import HTTPException
from hireveno.database.database import SessionStatus, UserRole, utcnow
from hireveno.services.sessions import (
    session_price, session_amount, validate_booking, get_bookable_tutor, transition, complete_if_ended,
    complete_ended_sessions, can_transition
)
from hireveno.services.notifications import notification_relay
from conftest import make_session, make_user, auth_headers

@pytest.mark.parametrize("duration,price", [(30, 1000), (45, 1125), (60, 1500), (90, 2250), (120, 3000)])
def test_session_price(duration, price):
    assert session_price(duration) == price
    assert session_amount(duration) == price * 100

def test_validate_booking_rejects_bad_duration():
    with pytest.raises(HTTPException) as exc:
        validate_booking(50, utcnow() + timedelta(days=1))
    assert exc.value.status_code == 400

def test_validate_booking_rejects_past_time():
    now = utcnow()
    with pytest.raises(HTTPException) as exc:
        validate_booking(60, now - timedelta(minutes=1), now)
    assert exc.value.status_code == 400

def test_bookable_tutor_needs_badge(db, aspirant, department):
    no_badge = make_user(db, UserRole.STUDENT, name="No Badge", is_verified=True, department_id=department.id)
    with pytest.raises(HTTPException) as exc:
        get_bookable_tutor(db, aspirant, no_badge.id)
    assert exc.value.status_code == 400

def test_aspirant_cannot_be_booked(db, aspirant):
    other = make_user(db, UserRole.ASPIRANT, name="Other Learner")
    with pytest.raises(HTTPException) as exc:
        get_bookable_tutor(db, aspirant, other.id)
    assert exc.value.status_code == 404

def test_allowed_transitions():
    assert can_transition(SessionStatus.PENDING, SessionStatus.CONFIRMED)
    assert can_transition(SessionStatus.CONFIRMED, SessionStatus.COMPLETED)
    assert can_transition(SessionStatus.CONFIRMED, SessionStatus.CANCELLED)
    assert not can_transition(SessionStatus.COMPLETED, SessionStatus.CONFIRMED)
    assert not can_transition(SessionStatus.CANCELLED, SessionStatus.CONFIRMED)
    assert not can_transition(SessionStatus.PENDING, SessionStatus.COMPLETED)

def test_transition_out_of_completed_is_rejected(db, aspirant, tutor):
    session = make_session(db, aspirant, tutor, status=SessionStatus.COMPLETED)
    with pytest.raises(HTTPException) as exc:
        transition(db, session, SessionStatus.CANCELLED)
    assert exc.value.status_code == 409
    db.refresh(session)
    assert session.status == SessionStatus.COMPLETED

def test_transition_notifies_both_parties(db, aspirant, tutor):
    session = make_session(db, aspirant, tutor, status=SessionStatus.PENDING)
    transition(db, session, SessionStatus.CONFIRMED)

    assert session.status == SessionStatus.CONFIRMED
    for user in (aspirant, tutor):
        notifications = notification_relay.drain(user.id)
        assert [n.message for n in notifications] == ["Session confirmed! You can now start chatting."]

def test_complete_if_ended_flips_only_once(db, aspirant, tutor):
    start = utcnow() - timedelta(hours=2)
    session = make_session(db, aspirant, tutor, duration=60, scheduled_at=start)
    now = start + timedelta(minutes=61)

    assert complete_if_ended(db, session, now) is True
    assert complete_if_ended(db, session, now) is False
    assert session.status == SessionStatus.COMPLETED
    assert len(notification_relay.drain(aspirant.id)) == 1

def test_complete_if_ended_waits_for_the_end(db, aspirant, tutor):
    start = utcnow() - timedelta(minutes=10)
    session = make_session(db, aspirant, tutor, duration=60, scheduled_at=start)
    assert complete_if_ended(db, session, start + timedelta(minutes=59)) is False
    assert session.status == SessionStatus.CONFIRMED

def test_sweeper_completes_only_ended_sessions(db, aspirant, tutor):
    now = utcnow()
    ended = make_session(db, aspirant, tutor, duration=30, scheduled_at=now - timedelta(minutes=45))
    running = make_session(db, aspirant, tutor, duration=60, scheduled_at=now - timedelta(minutes=15))

    assert complete_ended_sessions(db, now) == 1
    db.refresh(ended)
    db.refresh(running)
    assert ended.status == SessionStatus.COMPLETED
    assert running.status == SessionStatus.CONFIRMED

def test_tutor_accepts_pending_session(client, db, aspirant, tutor):
    session = make_session(db, aspirant, tutor, status=SessionStatus.PENDING)
    response = client.post(f"/sessions/{session.id}/accept", headers=auth_headers(tutor))
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"

def test_learner_cannot_accept(client, db, aspirant, tutor):
    session = make_session(db, aspirant, tutor, status=SessionStatus.PENDING)
    response = client.post(f"/sessions/{session.id}/accept", headers=auth_headers(aspirant))
    assert response.status_code == 403

def test_other_user_cannot_see_session(client, db, aspirant, tutor):
    session = make_session(db, aspirant, tutor)
    outsider = make_user(db, UserRole.ASPIRANT, name="Nosy Outsider")
    response = client.get(f"/sessions/{session.id}", headers=auth_headers(outsider))
    assert response.status_code == 403

def test_list_sessions_for_both_parties(client, db, aspirant, tutor):
    make_session(db, aspirant, tutor)
    assert len(client.get("/sessions/", headers=auth_headers(aspirant)).json()) == 1
    assert len(client.get("/sessions/", headers=auth_headers(tutor)).json()) == 1
