from unittest.mock import AsyncMock

from apps.api.routers.profile import clean_interests
from core.security import create_access_token
from models import Profile, User


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["success"] is True


def test_metrics_endpoint(client):
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "api_request_duration_seconds" in response.text


def test_missing_token_is_unauthorized(client):
    response = client.get("/profile/browse")
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Access token required"}


def test_valid_token_reaches_handler(client, mock_result):
    token = create_access_token(1, "alice@example.com", "alice")
    response = client.get("/notifications/unread-count", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "count": 0}


def test_garbage_token_is_rejected(client):
    response = client.get("/notifications", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token"


def test_invalid_sort_key_is_a_validation_error(auth_client):
    response = auth_client.get("/profile/browse", params={"sortBy": "height"})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["errors"][0]["field"] == "sortBy"


def test_inverted_age_range_is_rejected(auth_client):
    response = auth_client.get("/profile/browse", params={"ageMin": 40, "ageMax": 30})
    assert response.status_code == 400


def test_browse_passes_tag_filters(auth_client, monkeypatch):
    browse = AsyncMock(return_value=([], 0))
    monkeypatch.setattr("apps.api.routers.match.BrowseService.browse", browse)

    response = auth_client.get(
        "/profile/browse?sortBy=distance&maxDistance=50&commonTags[]=jazz&commonTags[]=Cin%C3%A9ma"
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "profiles": [], "total": 0}
    viewer_id, filters = browse.await_args.args
    assert viewer_id == 1
    assert filters.common_tags == ["jazz", "Cinéma"]
    assert filters.max_distance == 50
    assert filters.sort_by == "distance"


def test_like_returns_match_flag(auth_client, monkeypatch):
    like = AsyncMock(return_value=True)
    monkeypatch.setattr("apps.api.routers.match.InteractionService.like", like)

    response = auth_client.post("/profile/like", json={"targetUserId": 2, "isLike": True})

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "It's a match!", "isMatch": True}
    like.assert_awaited_once_with(1, 2, True)


def test_like_requires_target(auth_client):
    response = auth_client.post("/profile/like", json={"isLike": True})
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "targetUserId"


def test_unlike_returns_had_match(auth_client, monkeypatch):
    monkeypatch.setattr("apps.api.routers.match.InteractionService.unlike", AsyncMock(return_value=False))

    response = auth_client.delete("/profile/like/2")

    assert response.status_code == 200
    assert response.json()["hadMatch"] is False


def test_report_is_rate_limited(auth_client, monkeypatch):
    report = AsyncMock()
    monkeypatch.setattr("apps.api.routers.reports.InteractionService.check_target", AsyncMock())
    monkeypatch.setattr("apps.api.routers.reports.acquire_rate_limit", AsyncMock(return_value=False))
    monkeypatch.setattr("apps.api.routers.reports.InteractionService.report", report)

    response = auth_client.post("/profile/report", json={"targetUserId": 2, "reason": "Fake profile"})

    assert response.status_code == 429
    report.assert_not_awaited()


def test_report_of_unknown_user_keeps_cooldown(auth_client, monkeypatch):
    acquire = AsyncMock(return_value=True)
    monkeypatch.setattr("apps.api.routers.reports.acquire_rate_limit", acquire)

    response = auth_client.post("/profile/report", json={"targetUserId": 404, "reason": "Fake profile"})

    assert response.status_code == 404
    acquire.assert_not_awaited()


def test_self_report_keeps_cooldown(auth_client, monkeypatch):
    acquire = AsyncMock(return_value=True)
    monkeypatch.setattr("apps.api.routers.reports.acquire_rate_limit", acquire)

    response = auth_client.post("/profile/report", json={"targetUserId": 1, "reason": "Fake profile"})

    assert response.status_code == 400
    acquire.assert_not_awaited()


def test_report_rejects_blank_reason(auth_client):
    response = auth_client.post("/profile/report", json={"targetUserId": 2, "reason": "   "})
    assert response.status_code == 400


def test_block_is_silent_success(auth_client, monkeypatch):
    block = AsyncMock()
    monkeypatch.setattr("apps.api.routers.reports.InteractionService.block", block)

    response = auth_client.post("/profile/block", json={"targetUserId": 2})

    assert response.status_code == 200
    block.assert_awaited_once_with(1, 2)


def test_message_of_1000_characters_is_accepted(auth_client, monkeypatch):
    send = AsyncMock(return_value={"id": 1, "content": "x" * 1000})
    monkeypatch.setattr("apps.api.routers.chat.ChatService.send", send)

    response = auth_client.post("/chat/conversations/10/messages", json={"content": "x" * 1000})

    assert response.status_code == 201
    send.assert_awaited_once_with(10, 1, "x" * 1000)


def test_message_of_1001_characters_is_rejected(auth_client, monkeypatch):
    send = AsyncMock()
    monkeypatch.setattr("apps.api.routers.chat.ChatService.send", send)

    response = auth_client.post("/chat/conversations/10/messages", json={"content": "x" * 1001})

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "content"
    send.assert_not_awaited()


def test_marking_foreign_notification_is_not_found(auth_client):
    response = auth_client.put("/notifications/42/read")
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_profile_update_validates_ranges(auth_client):
    assert auth_client.put("/profile", json={"age": 17}).status_code == 400
    assert auth_client.put("/profile", json={"biography": "short"}).status_code == 400
    assert auth_client.put("/profile", json={"gender": "other"}).status_code == 400
    assert auth_client.put("/profile", json={"interests": [f"tag{i}" for i in range(11)]}).status_code == 400
    assert auth_client.put("/profile", json={"latitude": 48.85}).status_code == 400


def test_register_rejects_weak_password(client, mock_session):
    response = client.post(
        "/auth/register",
        json={
            "email": "dave@example.com",
            "username": "dave",
            "password": "weak",
            "first_name": "Dave",
            "last_name": "Smith",
        },
    )

    assert response.status_code == 400
    errors = response.json()["errors"]
    assert all(error["field"] == "password" for error in errors)
    mock_session.execute.assert_not_awaited()


def test_register_rejects_bad_username(client):
    response = client.post(
        "/auth/register",
        json={
            "email": "dave@example.com",
            "username": "da ve!",
            "password": "Tr0ubadour",
            "first_name": "Dave",
            "last_name": "Smith",
        },
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "username"


def test_register_creates_account_and_sends_email(client, mock_session, mock_mailer):
    response = client.post(
        "/auth/register",
        json={
            "email": "Dave@Example.com",
            "username": "dave",
            "password": "Tr0ubadour",
            "first_name": "Dave",
            "last_name": "Smith",
        },
    )

    assert response.status_code == 201
    assert response.json()["user"]["email"] == "dave@example.com"
    mock_session.commit.assert_awaited_once()
    mock_mailer.send_verification.assert_awaited_once()


def test_login_with_unknown_email_is_unauthorized(client):
    response = client.post("/auth/login", json={"email": "nobody@example.com", "password": "whatever"})
    assert response.status_code == 401


def test_forgot_password_never_reveals_accounts(client, mock_mailer):
    response = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
    assert response.status_code == 200
    mock_mailer.send_password_reset.assert_not_awaited()


def test_clean_interests_keeps_spelling_and_collapses_case_duplicates():
    assert clean_interests(["Musique", "Cinéma"]) == ["Musique", "Cinéma"]
    assert clean_interests(["Musique", "musique", "  Cinéma ", "CINÉMA", ""]) == ["Musique", "Cinéma"]


def test_profile_interests_round_trip(auth_client, mock_result):
    user = User(id=1, email="alice@example.com", username="alice", first_name="Alice", last_name="Martin")
    profile = Profile(user_id=1, interests=[], fame_rating=0)
    mock_result.scalar_one_or_none.return_value = profile
    mock_result.first.return_value = (user, profile)

    response = auth_client.put("/profile", json={"interests": ["Musique", "Cinéma"]})

    assert response.status_code == 200
    assert set(response.json()["profile"]["interests"]) == {"Musique", "Cinéma"}

    fetched = auth_client.get("/profile")

    assert fetched.status_code == 200
    assert set(fetched.json()["profile"]["interests"]) == {"Musique", "Cinéma"}
