import pytest

from lostfound.database import SessionLocal
from lostfound.errors import ConflictError
from lostfound.models import ActionType, LostItem, Report, ReportStatus, RoleEnum, User
from lostfound.schemas import ReportResolution, TokenData
from lostfound.services import reports as report_service

REASON = "Spam listing with fake contact details"


def report(client, account, report_type, item_id, reason=REASON):
    return client.post(
        "/reports",
        json={"reportType": report_type, "reportedItemId": item_id, "reason": reason},
        headers=account.headers,
    )


def create_post(client, account, title="Lost cat sightings"):
    response = client.post("/posts", json={"title": title, "content": "Seen near block 4"}, headers=account.headers)
    return response.json()["data"]


class TestReportCreation:
    def test_create_report_records_owner(self, client, resident, other_resident, create_item):
        item = create_item(resident, kind="lost")
        response = report(client, other_resident, "LOST_ITEM", item["id"])

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "PENDING"
        assert data["reportedUserId"] == resident.id
        assert data["reporterUsername"] == other_resident.username
        assert data["reportedItemTitle"] == "Blue Umbrella"

    def test_self_report_rejected(self, client, resident, create_item):
        item = create_item(resident)
        response = report(client, resident, "FOUND_ITEM", item["id"])

        assert response.status_code == 400
        assert response.json()["message"] == "不能举报自己的内容"

    def test_duplicate_report_conflicts(self, client, db_session, resident, other_resident, create_item):
        item = create_item(resident)
        assert report(client, other_resident, "FOUND_ITEM", item["id"]).status_code == 201

        response = report(client, other_resident, "FOUND_ITEM", item["id"])

        assert response.status_code == 409
        assert db_session.query(Report).count() == 1

    def test_missing_content_returns_404(self, client, other_resident):
        assert report(client, other_resident, "POST", 77).status_code == 404

    def test_reason_length_validated(self, client, resident, other_resident, create_item):
        item = create_item(resident)
        assert report(client, other_resident, "FOUND_ITEM", item["id"], reason="bad").status_code == 400

    def test_comment_report_falls_back_to_post_comments(self, client, resident, other_resident):
        post = create_post(client, other_resident)
        comment = client.post(
            "/post-comments", json={"postId": post["id"], "content": "buy cheap watches"}, headers=resident.headers
        ).json()["data"]

        response = report(client, other_resident, "COMMENT", comment["id"])

        assert response.status_code == 201
        assert response.json()["data"]["reportedUserId"] == resident.id


class TestReportResolution:
    def test_content_delete_removes_post_and_keeps_report(self, client, resident, other_resident, admin):
        post = create_post(client, resident)
        created = report(client, other_resident, "POST", post["id"]).json()["data"]

        response = client.put(
            f"/reports/{created['id']}/resolve",
            json={"status": "RESOLVED", "resolutionNotes": "Removed", "actionType": "CONTENT_DELETE"},
            headers=admin.headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "RESOLVED"
        assert data["resolvedByAdminId"] == admin.id
        assert data["resolvedAt"] is not None
        assert data["reportedItemTitle"] == f"帖子ID: {post['id']} (已删除)"
        assert client.get(f"/posts/{post['id']}").status_code == 404

    def test_second_resolution_rejected(self, client, resident, other_resident, admin, create_item):
        item = create_item(resident)
        created = report(client, other_resident, "FOUND_ITEM", item["id"]).json()["data"]
        body = {"status": "REJECTED", "resolutionNotes": "Not abusive"}

        assert client.put(f"/reports/{created['id']}/resolve", json=body, headers=admin.headers).status_code == 200
        again = client.put(f"/reports/{created['id']}/resolve", json=body, headers=admin.headers)

        assert again.status_code == 400
        assert again.json()["message"] == "该举报已经被处理"

    def test_user_lock_sets_lock_window(self, client, db_session, resident, other_resident, admin, create_item):
        item = create_item(resident)
        created = report(client, other_resident, "FOUND_ITEM", item["id"]).json()["data"]

        response = client.put(
            f"/reports/{created['id']}/resolve",
            json={"status": "RESOLVED", "resolutionNotes": "Repeated spam", "actionType": "USER_LOCK", "actionDays": 3},
            headers=admin.headers,
        )

        assert response.status_code == 200
        user = db_session.get(User, resident.id)
        assert user.is_locked is True
        assert user.lock_reason == "Repeated spam"
        assert user.lock_active()

        login = client.post("/auth/login", json={"username": resident.username, "password": resident.password})
        assert login.status_code == 401

    def test_locked_user_token_stops_working(self, client, resident, other_resident, admin, create_item):
        item = create_item(resident)
        created = report(client, other_resident, "FOUND_ITEM", item["id"]).json()["data"]
        client.put(
            f"/reports/{created['id']}/resolve",
            json={"status": "RESOLVED", "actionType": "USER_LOCK", "actionDays": 7},
            headers=admin.headers,
        )

        response = client.post(
            "/found-items",
            json={"title": "Keys", "description": "Ring of keys", "eventDate": "2024-05-01T10:00:00", "location": "Lobby"},
            headers=resident.headers,
        )

        assert response.status_code == 401
        assert response.json()["message"] == "账户已被锁定，请联系管理员解锁"
        assert client.get("/users/me", headers=resident.headers).status_code == 401

    def test_ban_without_days_is_rejected_atomically(self, client, db_session, resident, other_resident, admin, create_item):
        item = create_item(resident)
        created = report(client, other_resident, "FOUND_ITEM", item["id"]).json()["data"]

        response = client.put(
            f"/reports/{created['id']}/resolve",
            json={"status": "RESOLVED", "actionType": "USER_BAN"},
            headers=admin.headers,
        )

        assert response.status_code == 400
        stored = db_session.get(Report, created["id"])
        assert stored.status.value == "PENDING"
        assert db_session.get(User, resident.id).is_locked is False

    def test_rejected_report_takes_no_action(self, client, resident, other_resident, admin, create_item):
        item = create_item(resident)
        created = report(client, other_resident, "FOUND_ITEM", item["id"]).json()["data"]

        client.put(
            f"/reports/{created['id']}/resolve",
            json={"status": "REJECTED", "actionType": "CONTENT_DELETE"},
            headers=admin.headers,
        )

        assert client.get(f"/found-items/{item['id']}").status_code == 200

    def test_residents_cannot_resolve(self, client, resident, other_resident, create_item):
        item = create_item(resident)
        created = report(client, other_resident, "FOUND_ITEM", item["id"]).json()["data"]

        response = client.put(
            f"/reports/{created['id']}/resolve", json={"status": "REJECTED"}, headers=other_resident.headers
        )

        assert response.status_code == 403


class TestReportQueries:
    def test_admin_listing_counts_pending(self, client, resident, other_resident, admin, create_item):
        first = create_item(resident, title="Umbrella")
        second = create_item(resident, title="Scarf")
        created = report(client, other_resident, "FOUND_ITEM", first["id"]).json()["data"]
        report(client, other_resident, "FOUND_ITEM", second["id"])
        client.put(f"/reports/{created['id']}/resolve", json={"status": "REJECTED"}, headers=admin.headers)

        page = client.get("/reports/admin", headers=admin.headers).json()["data"]
        assert page["totalItems"] == 2
        assert page["pendingReportsCount"] == 1

        pending = client.get("/reports/admin?status=PENDING", headers=admin.headers).json()["data"]
        assert [r["reportedItemTitle"] for r in pending["items"]] == ["Scarf"]

    def test_my_reports_and_content_reports(self, client, resident, other_resident, admin, create_item):
        item = create_item(resident)
        report(client, other_resident, "FOUND_ITEM", item["id"])

        mine = client.get("/reports/my", headers=other_resident.headers).json()["data"]
        assert len(mine) == 1
        assert client.get("/reports/my", headers=resident.headers).json()["data"] == []

        for_item = client.get(f"/reports/item/FOUND_ITEM/{item['id']}", headers=admin.headers).json()["data"]
        assert len(for_item) == 1

    def test_admin_listing_forbidden_for_residents(self, client, resident):
        assert client.get("/reports/admin", headers=resident.headers).status_code == 403


class TestConcurrentResolution:
    def test_resolve_against_stale_read_conflicts(self, client, db_session, resident, other_resident, admin, create_item):
        item = create_item(resident, kind="lost")
        report_id = report(client, other_resident, "LOST_ITEM", item["id"]).json()["data"]["id"]
        identity = TokenData(user_id=admin.id, username=admin.username, role=RoleEnum.ADMIN)

        stale = SessionLocal()
        try:
            assert stale.get(Report, report_id).status == ReportStatus.PENDING
            db_session.get(Report, report_id).status = ReportStatus.REJECTED
            db_session.commit()

            with pytest.raises(ConflictError):
                report_service.resolve_report(
                    stale,
                    report_id,
                    ReportResolution(status=ReportStatus.RESOLVED, action_type=ActionType.CONTENT_DELETE),
                    identity,
                )
        finally:
            stale.close()

        db_session.expire_all()
        assert db_session.get(Report, report_id).status == ReportStatus.REJECTED
        assert db_session.get(Report, report_id).resolved_by_admin_id is None
        assert db_session.get(LostItem, item["id"]) is not None
