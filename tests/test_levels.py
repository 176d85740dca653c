from datetime import datetime

from conftest import auth_headers, make_level, make_team

from hctf.models.audit_event import AuditEvent
from hctf.models.category import Category
from hctf.models.level import Level


def _category(factory, name="Web"):
    with factory() as session:
        category = Category(category_name=name)
        session.add(category)
        session.commit()
        return category


def test_create_level_converts_release_time_to_utc(client, session_factory, admin_headers):
    category = _category(session_factory)

    res = client.post(
        "/api/Level/create",
        json={
            "categoryId": category.category_id,
            "levelName": "Warmup",
            "releaseTime": "2024-01-01T00:00:00+08:00",
        },
        headers=admin_headers,
    )

    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "success"
    assert body["data"]["level_name"] == "Warmup"
    assert body["data"]["release_time"] == "2023-12-31 16:00:00"
    assert body["data"]["rules"] == []

    with session_factory() as session:
        level = session.get(Level, body["data"]["level_id"])
        assert level.release_time == datetime(2023, 12, 31, 16, 0, 0)
        assert level.category_id == category.category_id
        events = session.query(AuditEvent).filter_by(action="level.create").all()
        assert [e.targets for e in events] == [[level.level_id]]


def test_create_level_unknown_category(client, admin_headers):
    res = client.post(
        "/api/Level/create",
        json={"categoryId": 999, "levelName": "Warmup", "releaseTime": "2024-01-01T00:00:00Z"},
        headers=admin_headers,
    )

    assert res.status_code == 404
    assert res.json() == {"status": "error", "code": "category_not_found", "message": "Category does not exist"}


def test_create_level_reports_every_missing_field(client, admin_headers):
    res = client.post("/api/Level/create", json={}, headers=admin_headers)

    assert res.status_code == 400
    body = res.json()
    assert body["code"] == "invalid_parameters"
    assert body["message"] == [
        "Missing categoryId field",
        "Missing levelName field",
        "Missing releaseTime field",
    ]


def test_create_level_rejects_bad_types(client, admin_headers):
    res = client.post(
        "/api/Level/create",
        json={"categoryId": "abc", "levelName": "Warmup", "releaseTime": "not a date"},
        headers=admin_headers,
    )

    assert res.status_code == 400
    messages = res.json()["message"]
    assert len(messages) == 2
    assert messages[0].startswith("categoryId: ")
    assert messages[1].startswith("releaseTime: ")


def test_level_endpoints_require_admin(client, session_factory):
    player = make_team(session_factory, "player")

    anonymous = client.get("/api/Level/info", params={"levelId": 1})
    assert anonymous.status_code == 401
    assert anonymous.json()["code"] == "unauthorized"

    forbidden = client.get("/api/Level/info", params={"levelId": 1}, headers=auth_headers(player))
    assert forbidden.status_code == 403
    assert forbidden.json()["code"] == "permission_denied"


def test_banned_admin_is_locked_out(client, session_factory):
    banned = make_team(session_factory, "fallen", admin=True, banned=True)

    res = client.get("/api/Level/info", params={"levelId": 1}, headers=auth_headers(banned))

    assert res.status_code == 403
    assert res.json()["code"] == "team_banned"


def test_level_info_includes_challenges(client, session_factory, admin_headers):
    level = make_level(session_factory, challenges=2)

    res = client.get("/api/Level/info", params={"levelId": level.level_id}, headers=admin_headers)

    assert res.status_code == 200
    data = res.json()["data"]
    assert data["level_id"] == level.level_id
    assert data["rules"] == {"unlock": "always"}
    assert [c["title"] for c in data["challenges"]] == ["chal-0", "chal-1"]


def test_level_info_missing_level(client, admin_headers):
    res = client.get("/api/Level/info", params={"levelId": 42}, headers=admin_headers)

    assert res.status_code == 404
    assert res.json()["code"] == "level_not_found"


def test_level_info_requires_level_id(client, admin_headers):
    res = client.get("/api/Level/info", headers=admin_headers)

    assert res.status_code == 400
    assert res.json()["message"] == ["Missing levelId field"]


def test_set_name(client, session_factory, admin_headers):
    level = make_level(session_factory)

    res = client.post(
        "/api/Level/setName",
        json={"levelId": level.level_id, "levelName": "Pwn 101"},
        headers=admin_headers,
    )

    assert res.status_code == 200
    assert res.json()["data"]["level_name"] == "Pwn 101"
    with session_factory() as session:
        assert session.get(Level, level.level_id).level_name == "Pwn 101"
        event = session.query(AuditEvent).filter_by(action="level.rename").one()
        assert event.targets == [level.level_id]
        assert event.actor_id is not None


def test_set_name_missing_level(client, admin_headers):
    res = client.post("/api/Level/setName", json={"levelId": 7, "levelName": "x"}, headers=admin_headers)

    assert res.status_code == 404
    assert res.json()["code"] == "level_not_found"


def test_set_release_time(client, session_factory, admin_headers):
    level = make_level(session_factory)

    res = client.post(
        "/api/Level/setReleaseTime",
        json={"levelId": level.level_id, "releaseTime": "2024-06-01T12:30:00-02:00"},
        headers=admin_headers,
    )

    assert res.status_code == 200
    assert res.json()["data"]["release_time"] == "2024-06-01 14:30:00"
    with session_factory() as session:
        assert session.get(Level, level.level_id).release_time == datetime(2024, 6, 1, 14, 30, 0)
        assert session.query(AuditEvent).filter_by(action="level.set_release_time").count() == 1


def test_set_release_time_missing_level(client, admin_headers):
    res = client.post(
        "/api/Level/setReleaseTime",
        json={"levelId": 7, "releaseTime": "2024-06-01T12:30:00Z"},
        headers=admin_headers,
    )

    assert res.status_code == 404


def test_set_rules_decodes_json_text(client, session_factory, admin_headers):
    level = make_level(session_factory)

    res = client.post(
        "/api/Level/setRules",
        json={"levelId": level.level_id, "rules": '{"after": [1, 2], "minScore": 300}'},
        headers=admin_headers,
    )

    assert res.status_code == 200
    assert res.json()["data"]["rules"] == {"after": [1, 2], "minScore": 300}
    with session_factory() as session:
        assert session.get(Level, level.level_id).rules == {"after": [1, 2], "minScore": 300}
        assert session.query(AuditEvent).filter_by(action="level.set_rules").count() == 1


def test_set_rules_rejects_invalid_json_and_keeps_rules(client, session_factory, admin_headers):
    level = make_level(session_factory)

    for bad in ('{"after": [1, 2}', {"after": [1]}, ""):
        res = client.post(
            "/api/Level/setRules",
            json={"levelId": level.level_id, "rules": bad},
            headers=admin_headers,
        )
        assert res.status_code == 400
        assert res.json()["code"] == "invalid_parameters"

    with session_factory() as session:
        assert session.get(Level, level.level_id).rules == {"unlock": "always"}
        assert session.query(AuditEvent).count() == 0


def test_delete_level_with_challenges_is_refused(client, session_factory, admin_headers):
    level = make_level(session_factory, challenges=2)

    res = client.post("/api/Level/deleteLevel", json={"levelId": level.level_id}, headers=admin_headers)

    assert res.status_code == 403
    assert res.json()["code"] == "level_not_empty"
    with session_factory() as session:
        assert session.get(Level, level.level_id) is not None


def test_delete_empty_level(client, session_factory, admin_headers):
    level = make_level(session_factory)

    res = client.post("/api/Level/deleteLevel", json={"levelId": str(level.level_id)}, headers=admin_headers)

    assert res.status_code == 200
    assert res.json() == {"status": "success", "data": None}
    with session_factory() as session:
        assert session.get(Level, level.level_id) is None
        assert session.query(AuditEvent).filter_by(action="level.delete").count() == 1


def test_delete_unknown_level(client, admin_headers):
    for level_id in (12345, "not-an-id", 10**20, str(10**20), "--5", 0):
        res = client.post("/api/Level/deleteLevel", json={"levelId": level_id}, headers=admin_headers)
        assert res.status_code == 404
        assert res.json()["code"] == "level_not_found"


def test_delete_level_requires_level_id(client, admin_headers):
    res = client.post("/api/Level/deleteLevel", json={"levelId": None}, headers=admin_headers)

    assert res.status_code == 400
    assert res.json()["code"] == "invalid_parameters"


def test_out_of_range_ids_are_rejected(client, admin_headers):
    create = client.post(
        "/api/Level/create",
        json={"categoryId": 10**20, "levelName": "Warmup", "releaseTime": "2024-01-01T00:00:00Z"},
        headers=admin_headers,
    )
    info = client.get("/api/Level/info", params={"levelId": 10**20}, headers=admin_headers)
    rename = client.post("/api/Level/setName", json={"levelId": 10**20, "levelName": "x"}, headers=admin_headers)

    for res in (create, info, rename):
        assert res.status_code == 400
        assert res.json()["code"] == "invalid_parameters"
