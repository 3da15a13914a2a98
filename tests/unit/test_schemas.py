"""Unit tests for schema validation."""
import os
from datetime import datetime

import pytest
from pydantic import ValidationError

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

from lostfound.models import ActionType, ItemKind, RoleEnum
from lostfound.schemas import (
    ApiResponse,
    ClaimRequest,
    InitAdminRequest,
    ItemCommentCreate,
    ItemCreate,
    LoginRequest,
    RegisterRequest,
    ReportCreate,
    ReportResolution,
    TokenData,
    UserLockRequest,
    ok,
)


class TestUserSchemas:
    """Test user-related schemas."""

    def test_register_valid(self):
        request = RegisterRequest(username="alice", password="secret1", email="alice@example.com")
        assert request.username == "alice"

    def test_register_short_username(self):
        with pytest.raises(ValidationError):
            RegisterRequest(username="al", password="secret1")

    def test_register_short_password(self):
        with pytest.raises(ValidationError):
            RegisterRequest(username="alice", password="12345")

    def test_register_invalid_email(self):
        with pytest.raises(ValidationError):
            RegisterRequest(username="alice", password="secret1", email="not-an-email")

    def test_register_accepts_camel_case(self):
        request = RegisterRequest.model_validate({"username": "alice", "password": "secret1", "realName": "Alice"})
        assert request.real_name == "Alice"

    @pytest.mark.parametrize("key", ["usernameOrEmail", "username_or_email", "username"])
    def test_login_aliases(self, key):
        request = LoginRequest.model_validate({key: "alice", "password": "secret1"})
        assert request.username_or_email == "alice"

    def test_init_admin_defaults_to_sysadmin(self):
        assert InitAdminRequest(username="root", password="secret1").role is RoleEnum.SYSADMIN

    def test_lock_days_must_be_positive(self):
        with pytest.raises(ValidationError):
            UserLockRequest(days=0)
        assert UserLockRequest().days is None


class TestContentSchemas:
    def test_item_create_valid(self):
        item = ItemCreate.model_validate(
            {
                "title": "Wallet",
                "description": "Brown leather",
                "eventDate": "2024-05-01T10:00:00",
                "location": "Lobby",
                "images": ["/uploads/a.jpg"],
            }
        )
        assert item.event_date == datetime(2024, 5, 1, 10, 0)
        assert item.images == ["/uploads/a.jpg"]

    def test_item_create_requires_title(self):
        with pytest.raises(ValidationError):
            ItemCreate(title="", description="x", event_date=datetime(2024, 1, 1), location="Lobby")

    def test_claim_description_length(self):
        with pytest.raises(ValidationError):
            ClaimRequest(description="too short")
        assert ClaimRequest(description="It has my initials inside").description

    def test_report_reason_length(self):
        with pytest.raises(ValidationError):
            ReportCreate(report_type="POST", reported_item_id=1, reason="bad")

    def test_report_resolution_defaults(self):
        resolution = ReportResolution(status="REJECTED")
        assert resolution.action_type is ActionType.NONE
        assert resolution.action_days is None

    def test_item_comment_kind(self):
        comment = ItemCommentCreate.model_validate({"itemId": 1, "itemType": "lost", "content": "seen it"})
        assert comment.item_type is ItemKind.LOST
        with pytest.raises(ValidationError):
            ItemCommentCreate.model_validate({"itemId": 1, "itemType": "misc", "content": "seen it"})


class TestEnvelope:
    def test_ok_envelope_serializes_camel_case(self):
        body = ok({"value": 1}, "done", 201).model_dump(by_alias=True)
        assert body == {"success": True, "message": "done", "data": {"value": 1}, "code": 201}

    def test_default_envelope(self):
        response = ApiResponse()
        assert response.success is True
        assert response.code == 200
        assert response.data is None

    def test_token_data_admin_flag(self):
        assert TokenData(user_id=1, username="a", role="admin").is_admin
        assert TokenData(user_id=1, username="a", role="sysadmin").is_admin
        assert not TokenData(user_id=1, username="a", role="resident").is_admin
