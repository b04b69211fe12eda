from hireveno.services.notifications import (
    Event, EventBus, NotificationRelay, MESSAGE_CREATED, SESSION_CREATED, SESSION_STATUS_CHANGED
)

def relay_with_bus(inbox_size=50):
    bus = EventBus()
    return bus, NotificationRelay(inbox_size=inbox_size).attach(bus)

def message_event(actor="learner-1", name="Ada"):
    return Event(name=MESSAGE_CREATED, session_id="s-1", client_id="learner-1", student_id="tutor-1",
                 actor_id=actor, actor_name=name)

def test_message_goes_to_the_other_party_only():
    bus, relay = relay_with_bus()
    bus.publish(message_event())

    assert relay.drain("learner-1") == []
    notifications = relay.drain("tutor-1")
    assert len(notifications) == 1
    assert notifications[0].message == "New message from Ada"
    assert notifications[0].link == "/chat/s-1"

def test_booking_goes_to_the_tutor():
    bus, relay = relay_with_bus()
    bus.publish(Event(name=SESSION_CREATED, session_id="s-1", client_id="learner-1", student_id="tutor-1",
                      actor_id="learner-1", actor_name="Ada"))
    assert relay.pending("learner-1") == 0
    assert [n.message for n in relay.drain("tutor-1")] == ["New session booked by Ada"]

def test_status_change_goes_to_both_parties():
    bus, relay = relay_with_bus()
    bus.publish(Event(name=SESSION_STATUS_CHANGED, session_id="s-1", client_id="learner-1", student_id="tutor-1",
                      old_status="pending", new_status="cancelled"))
    assert [n.message for n in relay.drain("learner-1")] == ["Session has been cancelled."]
    assert [n.message for n in relay.drain("tutor-1")] == ["Session has been cancelled."]

def test_unchanged_status_is_not_announced():
    bus, relay = relay_with_bus()
    bus.publish(Event(name=SESSION_STATUS_CHANGED, session_id="s-1", client_id="learner-1", student_id="tutor-1",
                      old_status="confirmed", new_status="confirmed"))
    assert relay.pending("learner-1") == 0

def test_drain_empties_the_inbox():
    bus, relay = relay_with_bus()
    bus.publish(message_event())
    assert len(relay.drain("tutor-1")) == 1
    assert relay.drain("tutor-1") == []

def test_inbox_drops_oldest_when_full():
    bus, relay = relay_with_bus(inbox_size=2)
    for name in ("A", "B", "C"):
        bus.publish(message_event(name=name))
    assert [n.message for n in relay.drain("tutor-1")] == ["New message from B", "New message from C"]

def test_failing_subscriber_does_not_stop_others():
    bus, relay = relay_with_bus()

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(MESSAGE_CREATED, broken)
    bus.publish(message_event())
    assert relay.pending("tutor-1") == 1

def test_notifications_endpoint_drains(client, aspirant, tutor):
    from conftest import auth_headers
    from hireveno.services.notifications import event_bus

    event_bus.publish(Event(name=MESSAGE_CREATED, session_id="s-9", client_id=aspirant.id, student_id=tutor.id,
                            actor_id=tutor.id, actor_name="Tunde Tutor"))
    first = client.get("/notifications/", headers=auth_headers(aspirant)).json()
    second = client.get("/notifications/", headers=auth_headers(aspirant)).json()
    assert [n["message"] for n in first] == ["New message from Tunde Tutor"]
    assert second == []
