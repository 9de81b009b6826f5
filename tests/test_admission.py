import threading

import pytest

from backend import RedisBackend
from exceptions import CapacityExceeded, RoomNotFound, Unauthorized
from services.admission import AdmissionGate


def test_first_touch_admits_new_token(gate, backend, room_id):
    admission = gate.admit(room_id, "t1")
    assert admission.newly_admitted is True
    assert admission.connected == ["t1"]
    assert backend.get_room(room_id)["connected"] == ["t1"]


def test_known_token_is_admitted_without_using_capacity(gate, backend, room_id):
    gate.admit(room_id, "t1")
    admission = gate.admit(room_id, "t1")
    assert admission.newly_admitted is False
    assert backend.get_room(room_id)["connected"] == ["t1"]


def test_full_room_rejects_new_token_but_admits_members(gate, backend, room_id):
    """maxUsers=2: t1 and t2 join, t3 is turned away, t1 still gets in."""
    gate.admit(room_id, "t1")
    gate.admit(room_id, "t2")

    with pytest.raises(CapacityExceeded):
        gate.admit(room_id, "t3")

    assert gate.admit(room_id, "t1").newly_admitted is False
    assert backend.get_room(room_id)["connected"] == ["t1", "t2"]


def test_membership_never_exceeds_capacity(gate, backend, manager):
    room_id = manager.create_room(max_users=3)
    for i in range(10):
        try:
            gate.admit(room_id, f"token-{i % 5}")
        except CapacityExceeded:
            pass
    connected = backend.get_room(room_id)["connected"]
    assert connected == ["token-0", "token-1", "token-2"]


def test_missing_token_is_unauthorized(gate, room_id):
    with pytest.raises(Unauthorized):
        gate.admit(room_id, None)
    with pytest.raises(Unauthorized):
        gate.admit(room_id, "")


def test_unknown_room_is_not_found(gate):
    with pytest.raises(RoomNotFound):
        gate.admit("does-not-exist", "t1")


def test_admission_keeps_room_expiry(gate, backend, room_id):
    ttl_before = backend.get_ttl(f"room:meta:{room_id}")
    gate.admit(room_id, "t1")
    ttl_after = backend.get_ttl(f"room:meta:{room_id}")
    assert 0 < ttl_after <= ttl_before


def test_concurrent_newcomers_never_overfill_the_room(redis_client, manager):
    """Twelve tokens race for three seats: exactly three get in."""
    backend = RedisBackend(redis_client, max_retries=200)
    gate = AdmissionGate(backend)
    room_id = manager.create_room(max_users=3)

    admitted, rejected, errors = [], [], []

    def join(token):
        try:
            gate.admit(room_id, token)
            admitted.append(token)
        except CapacityExceeded:
            rejected.append(token)
        except Exception as e:  # surfaced through the assertion below
            errors.append(e)

    threads = [threading.Thread(target=join, args=(f"token-{i}",)) for i in range(12)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(admitted) == 3
    assert len(rejected) == 9
    assert sorted(backend.get_room(room_id)["connected"]) == sorted(admitted)
