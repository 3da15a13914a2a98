import pytest

from lostfound.database import SessionLocal
from lostfound.errors import ConflictError
from lostfound.models import ClaimApplication, ClaimStatus, FoundItem, FoundItemStatus, RoleEnum
from lostfound.schemas import TokenData
from lostfound.services import claims as claim_service

CLAIM = {"description": "It has my initials on the handle"}


def apply(client, account, item_id, payload=CLAIM):
    return client.post(f"/claims/apply/{item_id}", json=payload, headers=account.headers)


def item_status(client, item_id):
    return client.get(f"/found-items/{item_id}").json()["data"]["status"]


class TestClaimSubmission:
    """Submitting applications against found items."""

    def test_submit_moves_item_to_processing(self, client, resident, other_resident, create_item):
        item = create_item(resident)
        response = apply(client, other_resident, item["id"])

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "pending"
        assert body["data"]["foundItemTitle"] == "Blue Umbrella"
        assert body["data"]["foundItemImage"] == "/uploads/general/umbrella.jpg"
        assert body["data"]["ownerId"] == resident.id
        assert item_status(client, item["id"]) == "processing"

    def test_owner_cannot_claim_own_item(self, client, resident, create_item):
        item = create_item(resident)
        response = apply(client, resident, item["id"])

        assert response.status_code == 400
        assert response.json()["message"] == "不能认领自己发布的失物招领"
        assert item_status(client, item["id"]) == "pending"

    def test_item_not_pending_rejects_second_applicant(self, client, resident, other_resident, make_account, create_item):
        item = create_item(resident)
        carol = make_account("carol")
        assert apply(client, other_resident, item["id"]).status_code == 201

        response = apply(client, carol, item["id"])

        assert response.status_code == 400
        assert response.json()["message"] == "该失物招领当前不可认领，状态: processing"

    def test_duplicate_active_application_conflicts(self, client, db_session, resident, other_resident, create_item):
        item = create_item(resident)
        assert apply(client, other_resident, item["id"]).status_code == 201
        # Reopen the item so only the duplicate-application rule can fire.
        db_session.get(FoundItem, item["id"]).status = FoundItemStatus.PENDING
        db_session.commit()

        response = apply(client, other_resident, item["id"])

        assert response.status_code == 409
        assert db_session.query(ClaimApplication).count() == 1

    def test_missing_item_returns_404(self, client, other_resident):
        response = apply(client, other_resident, 999)

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_short_description_fails_validation(self, client, resident, other_resident, create_item):
        item = create_item(resident)
        response = apply(client, other_resident, item["id"], {"description": "mine"})

        assert response.status_code == 400
        assert response.json()["message"].startswith("输入数据验证失败")
        assert item_status(client, item["id"]) == "pending"

    def test_requires_authentication(self, client, resident, create_item):
        item = create_item(resident)
        response = client.post(f"/claims/apply/{item['id']}", json=CLAIM)

        assert response.status_code == 401


class TestClaimDecisions:
    """Owner approval and rejection."""

    def test_blue_umbrella_scenario(self, client, db_session, resident, other_resident, make_account, create_item):
        """Alice finds the umbrella, Bob claims it, Alice approves and nobody else can claim it."""
        item = create_item(resident, title="Blue Umbrella")
        claim = apply(client, other_resident, item["id"]).json()["data"]
        assert item_status(client, item["id"]) == "processing"

        approved = client.post(f"/claims/approve/{claim['id']}", headers=resident.headers)
        assert approved.status_code == 200
        assert approved.json()["data"]["status"] == "approved"
        assert approved.json()["data"]["processedAt"] is not None
        assert item_status(client, item["id"]) == "claimed"

        carol = make_account("carol")
        late = apply(client, carol, item["id"])
        assert late.status_code == 400
        assert "claimed" in late.json()["message"]

        again = client.post(f"/claims/approve/{claim['id']}", headers=resident.headers)
        assert again.status_code == 400
        assert again.json()["message"] == "该认领申请已经被处理过，当前状态: approved"

        approved_count = (
            db_session.query(ClaimApplication)
            .filter(
                ClaimApplication.found_item_id == item["id"],
                ClaimApplication.status == ClaimStatus.APPROVED,
            )
            .count()
        )
        assert approved_count == 1

    def test_reject_returns_item_to_pending_and_allows_resubmission(self, client, resident, other_resident, create_item):
        item = create_item(resident)
        claim = apply(client, other_resident, item["id"]).json()["data"]

        rejected = client.post(f"/claims/reject/{claim['id']}", headers=resident.headers)

        assert rejected.status_code == 200
        assert rejected.json()["data"]["status"] == "rejected"
        assert item_status(client, item["id"]) == "pending"

        retry = apply(client, other_resident, item["id"])
        assert retry.status_code == 201
        assert item_status(client, item["id"]) == "processing"

    def test_only_owner_may_decide(self, client, resident, other_resident, admin, create_item):
        item = create_item(resident)
        claim = apply(client, other_resident, item["id"]).json()["data"]

        for account in (other_resident, admin):
            response = client.post(f"/claims/approve/{claim['id']}", headers=account.headers)
            assert response.status_code == 403
            assert response.json()["message"] == "您没有权限处理该认领申请"
        assert item_status(client, item["id"]) == "processing"

    def test_decision_requires_processing_item(self, client, db_session, resident, other_resident, create_item):
        item = create_item(resident)
        claim = apply(client, other_resident, item["id"]).json()["data"]
        db_session.get(FoundItem, item["id"]).status = FoundItemStatus.PENDING
        db_session.commit()

        response = client.post(f"/claims/reject/{claim['id']}", headers=resident.headers)

        assert response.status_code == 400
        assert response.json()["message"] == "该失物招领状态不是'认领中'，当前状态: pending"

    def test_unknown_claim_returns_404(self, client, resident):
        response = client.post("/claims/approve/42", headers=resident.headers)
        assert response.status_code == 404


class TestClaimQueries:
    def test_my_applications_and_for_processing(self, client, resident, other_resident, create_item):
        item = create_item(resident)
        apply(client, other_resident, item["id"])

        mine = client.get("/claims/my-applications", headers=other_resident.headers).json()["data"]
        assert mine["totalItems"] == 1
        assert mine["items"][0]["applicantId"] == other_resident.id

        incoming = client.get("/claims/for-processing", headers=resident.headers).json()["data"]
        assert incoming["totalItems"] == 1
        assert client.get("/claims/for-processing", headers=other_resident.headers).json()["data"]["totalItems"] == 0

        filtered = client.get("/claims/my-applications?status=approved", headers=other_resident.headers)
        assert filtered.json()["data"]["totalItems"] == 0

    def test_claim_detail_visibility(self, client, resident, other_resident, make_account, admin, create_item):
        item = create_item(resident)
        claim = apply(client, other_resident, item["id"]).json()["data"]
        stranger = make_account("mallory")

        assert client.get(f"/claims/{claim['id']}", headers=resident.headers).status_code == 200
        assert client.get(f"/claims/{claim['id']}", headers=other_resident.headers).status_code == 200
        assert client.get(f"/claims/{claim['id']}", headers=admin.headers).status_code == 200
        assert client.get(f"/claims/{claim['id']}", headers=stranger.headers).status_code == 403

    def test_by_found_item_is_owner_or_admin(self, client, resident, other_resident, admin, create_item):
        item = create_item(resident)
        apply(client, other_resident, item["id"])

        assert client.get(f"/claims/by-found-item/{item['id']}", headers=resident.headers).status_code == 200
        assert client.get(f"/claims/by-found-item/{item['id']}", headers=admin.headers).status_code == 200
        assert client.get(f"/claims/by-found-item/{item['id']}", headers=other_resident.headers).status_code == 403


class TestClaimAdministration:
    def test_admin_listing_filters(self, client, resident, other_resident, admin, create_item):
        umbrella = create_item(resident, title="Blue Umbrella")
        wallet = create_item(resident, title="Brown Wallet")
        apply(client, other_resident, umbrella["id"])
        apply(client, other_resident, wallet["id"])

        everything = client.get("/claims/admin/all", headers=admin.headers).json()["data"]
        assert everything["totalItems"] == 2

        by_title = client.get("/claims/admin/all?itemTitle=wallet", headers=admin.headers).json()["data"]
        assert [c["foundItemTitle"] for c in by_title["items"]] == ["Brown Wallet"]

        by_name = client.get("/claims/admin/all?applicantName=bo", headers=admin.headers).json()["data"]
        assert by_name["totalItems"] == 2

    def test_admin_listing_forbidden_for_residents(self, client, resident):
        assert client.get("/claims/admin/all", headers=resident.headers).status_code == 403

    def test_page_size_is_bounded(self, client, admin):
        assert client.get("/claims/admin/all?size=101", headers=admin.headers).status_code == 400
        assert client.get("/claims/admin/all?size=0", headers=admin.headers).status_code == 400

    def test_deleting_approved_claim_reopens_item(self, client, resident, other_resident, admin, create_item):
        item = create_item(resident)
        claim = apply(client, other_resident, item["id"]).json()["data"]
        client.post(f"/claims/approve/{claim['id']}", headers=resident.headers)

        response = client.delete(f"/claims/admin/{claim['id']}", headers=admin.headers)

        assert response.status_code == 200
        assert item_status(client, item["id"]) == "pending"
        assert client.get(f"/claims/{claim['id']}", headers=admin.headers).status_code == 404


class TestConcurrentDecisions:
    """A decision made against a stale read must not overwrite a newer one."""

    def _identity(self, account):
        return TokenData(user_id=account.id, username=account.username, role=RoleEnum.RESIDENT)

    def test_approve_after_claim_changed_elsewhere(self, client, db_session, resident, other_resident, create_item):
        item = create_item(resident)
        claim_id = apply(client, other_resident, item["id"]).json()["data"]["id"]

        stale = SessionLocal()
        try:
            assert stale.get(ClaimApplication, claim_id).status == ClaimStatus.PENDING
            db_session.get(ClaimApplication, claim_id).status = ClaimStatus.REJECTED
            db_session.commit()

            with pytest.raises(ConflictError):
                claim_service.approve(stale, claim_id, self._identity(resident))
        finally:
            stale.close()

        db_session.expire_all()
        assert db_session.get(FoundItem, item["id"]).status == FoundItemStatus.PROCESSING
        assert db_session.get(ClaimApplication, claim_id).status == ClaimStatus.REJECTED

    def test_reject_after_item_changed_elsewhere(self, client, db_session, resident, other_resident, create_item):
        item = create_item(resident)
        claim_id = apply(client, other_resident, item["id"]).json()["data"]["id"]

        stale = SessionLocal()
        try:
            assert stale.get(ClaimApplication, claim_id).found_item.status == FoundItemStatus.PROCESSING
            db_session.get(FoundItem, item["id"]).status = FoundItemStatus.PENDING
            db_session.commit()

            with pytest.raises(ConflictError):
                claim_service.reject(stale, claim_id, self._identity(resident))
        finally:
            stale.close()

        db_session.expire_all()
        assert db_session.get(ClaimApplication, claim_id).status == ClaimStatus.PENDING
        assert db_session.get(FoundItem, item["id"]).status == FoundItemStatus.PENDING


class TestStatusOwnership:
    """Found-item statuses held by the claim workflow."""

    def test_owner_cannot_reopen_claimed_item(self, client, db_session, resident, other_resident, make_account, create_item):
        item = create_item(resident)
        claim = apply(client, other_resident, item["id"]).json()["data"]
        client.post(f"/claims/approve/{claim['id']}", headers=resident.headers)

        reopen = client.put(f"/found-items/{item['id']}/status", json={"status": "pending"}, headers=resident.headers)
        via_update = client.put(f"/found-items/{item['id']}", json={"status": "pending"}, headers=resident.headers)

        assert reopen.status_code == 400
        assert via_update.status_code == 400
        assert item_status(client, item["id"]) == "claimed"

        carol = make_account("carol")
        assert apply(client, carol, item["id"]).status_code == 400
        approved = (
            db_session.query(ClaimApplication)
            .filter(ClaimApplication.found_item_id == item["id"], ClaimApplication.status == ClaimStatus.APPROVED)
            .count()
        )
        assert approved == 1

    @pytest.mark.parametrize("target", ["processing", "claimed"])
    def test_claim_states_cannot_be_set_directly(self, client, resident, create_item, target):
        item = create_item(resident)

        response = client.put(f"/found-items/{item['id']}/status", json={"status": target}, headers=resident.headers)

        assert response.status_code == 400
        assert item_status(client, item["id"]) == "pending"

    def test_closing_claimed_item_is_allowed(self, client, resident, other_resident, create_item):
        item = create_item(resident)
        claim = apply(client, other_resident, item["id"]).json()["data"]
        client.post(f"/claims/approve/{claim['id']}", headers=resident.headers)

        response = client.put(f"/found-items/{item['id']}/status", json={"status": "closed"}, headers=resident.headers)

        assert response.status_code == 200
        assert client.get(f"/found-items/{item['id']}").status_code == 404

    def test_second_approval_conflicts(self, client, db_session, resident, other_resident, make_account, create_item):
        item = create_item(resident)
        first = apply(client, other_resident, item["id"]).json()["data"]
        client.post(f"/claims/approve/{first['id']}", headers=resident.headers)
        # Force a second pending claim onto the item, as a bad migration or manual edit would.
        carol = make_account("carol")
        db_session.add(
            ClaimApplication(
                found_item_id=item["id"],
                applicant_id=carol.id,
                description="It has my name sewn in",
                status=ClaimStatus.PENDING,
            )
        )
        db_session.get(FoundItem, item["id"]).status = FoundItemStatus.PROCESSING
        db_session.commit()
        second = db_session.query(ClaimApplication).filter(ClaimApplication.applicant_id == carol.id).one()

        response = client.post(f"/claims/approve/{second.id}", headers=resident.headers)

        assert response.status_code == 409
        assert response.json()["message"] == "该失物招领已有已批准的认领申请"

    def test_deleting_pending_claim_reopens_item(self, client, resident, other_resident, admin, create_item):
        item = create_item(resident)
        claim = apply(client, other_resident, item["id"]).json()["data"]

        client.delete(f"/claims/admin/{claim['id']}", headers=admin.headers)

        assert item_status(client, item["id"]) == "pending"
