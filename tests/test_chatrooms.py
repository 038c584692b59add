import threading

import pytest
from sqlalchemy.orm import sessionmaker

from chatrooms.core.errors import AlreadyMember, CapacityExceeded, NotFound
from chatrooms.core.database import Base, build_engine
from chatrooms.models.orm import Chatroom, ChatroomUser, User
from chatrooms.services.membership_service import MembershipService
from chatrooms.services.room_manager import RoomManager


def test_create_chatroom(client, alice):
    response = client.post("/chatrooms", json={"name": "General Chat", "max_members": 50}, headers=alice["headers"])

    assert response.status_code == 201
    body = response.json()
    assert body["id"] == 1
    assert body["name"] == "General Chat"
    assert body["max_members"] == 50


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "General Chat", "max_members": 0},
        {"name": "General Chat", "max_members": -3},
        {"name": "   ", "max_members": 5},
        {"name": "x" * 256, "max_members": 5},
        {"max_members": 5},
        {"name": "General Chat"},
    ],
)
def test_create_chatroom_validation(client, alice, payload):
    response = client.post("/chatrooms", json=payload, headers=alice["headers"])

    assert response.status_code == 400
    assert response.json()["error"] == "Validation errors occurred"


def test_list_chatrooms_is_paginated(client, alice):
    for i in range(12):
        client.post("/chatrooms", json={"name": f"Room {i}", "max_members": 5}, headers=alice["headers"])

    first = client.get("/chatrooms", headers=alice["headers"]).json()
    second = client.get("/chatrooms?page=2", headers=alice["headers"]).json()

    assert first["total"] == 12
    assert first["per_page"] == 10
    assert first["last_page"] == 2
    assert [room["name"] for room in first["data"]] == [f"Room {i}" for i in range(10)]
    assert second["current_page"] == 2
    assert [room["name"] for room in second["data"]] == ["Room 10", "Room 11"]


def test_list_chatrooms_when_empty(client, alice):
    body = client.get("/chatrooms", headers=alice["headers"]).json()

    assert body == {"data": [], "current_page": 1, "per_page": 10, "total": 0, "last_page": 1}


def test_join_leave_walkthrough(client, alice, bob, carol, chatroom):
    join = f"/chatrooms/{chatroom['id']}/join"

    response = client.post(join, headers=alice["headers"])
    assert response.status_code == 200
    assert response.json() == {"message": "You have successfully joined the chatroom"}

    response = client.post(join, headers=alice["headers"])
    assert response.status_code == 400
    assert response.json() == {"error": "You are already in this chatroom"}

    assert client.post(join, headers=bob["headers"]).status_code == 200

    response = client.post(join, headers=carol["headers"])
    assert response.status_code == 403
    assert response.json() == {"error": "Chatroom is full"}


def test_leaving_frees_a_seat(client, alice, bob, carol, chatroom):
    base = f"/chatrooms/{chatroom['id']}"
    client.post(f"{base}/join", headers=alice["headers"])
    client.post(f"{base}/join", headers=bob["headers"])

    assert client.post(f"{base}/leave", headers=bob["headers"]).status_code == 200
    assert client.post(f"{base}/join", headers=carol["headers"]).status_code == 200


def test_leave_is_idempotent(client, carol, chatroom):
    leave = f"/chatrooms/{chatroom['id']}/leave"

    for _ in range(2):
        response = client.post(leave, headers=carol["headers"])
        assert response.status_code == 200
        assert response.json() == {"message": "Left successfully"}


def test_join_and_leave_unknown_chatroom(client, alice):
    for action in ("join", "leave"):
        response = client.post(f"/chatrooms/999/{action}", headers=alice["headers"])
        assert response.status_code == 404
        assert response.json() == {"error": "Chatroom not found."}


class TestMembershipService:
    def _users(self, db, count):
        users = [User(name=f"user{i}", email=f"user{i}@example.com", password_hash="x") for i in range(count)]
        db.add_all(users)
        db.commit()
        return users

    def test_member_count_never_exceeds_capacity(self, db):
        room = RoomManager(db).create_room("Tiny", max_members=3)
        service = MembershipService(db)

        outcomes = []
        for user in self._users(db, 6):
            try:
                service.join(room.id, user)
                outcomes.append("joined")
            except CapacityExceeded:
                outcomes.append("full")

        assert outcomes == ["joined"] * 3 + ["full"] * 3
        assert RoomManager(db).member_count(room.id) == 3

    def test_capacity_is_checked_before_membership(self, db):
        room = RoomManager(db).create_room("Solo", max_members=1)
        (user,) = self._users(db, 1)
        service = MembershipService(db)

        service.join(room.id, user)
        with pytest.raises(CapacityExceeded):
            service.join(room.id, user)

    def test_duplicate_join(self, db):
        room = RoomManager(db).create_room("Pair", max_members=2)
        (user,) = self._users(db, 1)
        service = MembershipService(db)

        service.join(room.id, user)
        with pytest.raises(AlreadyMember):
            service.join(room.id, user)
        assert db.get(ChatroomUser, (room.id, user.id)) is not None

    def test_unknown_chatroom(self, db):
        (user,) = self._users(db, 1)

        with pytest.raises(NotFound):
            MembershipService(db).join(42, user)
        with pytest.raises(NotFound):
            MembershipService(db).leave(42, user)

    def test_leave_removes_only_that_membership(self, db):
        room = RoomManager(db).create_room("Pair", max_members=2)
        first, second = self._users(db, 2)
        service = MembershipService(db)
        service.join(room.id, first)
        service.join(room.id, second)

        service.leave(room.id, first)

        assert not service.is_member(room.id, first.id)
        assert service.is_member(room.id, second.id)
        assert db.get(Chatroom, room.id) is not None


def test_concurrent_joins_cannot_take_the_same_last_seat(tmp_path, monkeypatch):
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    with Session() as setup:
        room = RoomManager(setup).create_room("Last Seat", max_members=1)
        users = [User(name=name, email=f"{name}@example.com", password_hash="x") for name in ("ann", "ben")]
        setup.add_all(users)
        setup.commit()
        user_ids = [user.id for user in users]

    # Both joins read the member count before either one inserts
    barrier = threading.Barrier(2)
    counted = RoomManager.member_count

    def member_count_then_wait(self, room_id):
        count = counted(self, room_id)
        barrier.wait(timeout=5)
        return count

    monkeypatch.setattr(RoomManager, "member_count", member_count_then_wait)

    results = {}

    def join(user_id):
        with Session() as session:
            try:
                MembershipService(session).join(room.id, session.get(User, user_id))
                results[user_id] = "joined"
            except CapacityExceeded:
                results[user_id] = "full"

    threads = [threading.Thread(target=join, args=(user_id,)) for user_id in user_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=15)

    monkeypatch.undo()
    with Session() as check:
        members = RoomManager(check).member_count(room.id)
    engine.dispose()

    assert sorted(results.values()) == ["full", "joined"]
    assert members == 1
