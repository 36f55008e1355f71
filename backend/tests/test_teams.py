"""
Tests for teams and the invite lifecycle.

Tests cover:
- Create team (owner membership in the same transaction), list teams
- Invite: RBAC claim gate, per-team role check, AlreadyMember, mail + breaker
- Accept: email binding, idempotence, invite consumption
"""

import logging
from uuid import uuid4

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import models
from auth.permissions import highest_role, is_member, role_of
from breaker import CircuitBreaker
from errors import MailFailed
from mailer import MockMailer
from repositories.teams import TeamInviteRepository

logger = logging.getLogger(__name__)


def _smtp_down():
    raise RuntimeError("smtp down")


def _invite(client: TestClient, team_id, email: str, headers):
    return client.post(f"/api/v1/teams/{team_id}/invite", json={"email": email}, headers=headers)


# ============== Create / List Tests (5 tests) ==============


def test_create_team_makes_caller_owner(
    client: TestClient, test_db: Session, owner_user: models.User, auth_headers
):
    response = client.post("/api/v1/teams", json={"name": "Alpha"}, headers=auth_headers(owner_user))

    assert response.status_code == 201, f"Expected 201, got {response.status_code}: {response.json()}"
    data = response.json()
    assert data["name"] == "Alpha"
    assert data["created_by"] == str(owner_user.id)

    team = test_db.query(models.Team).filter(models.Team.name == "Alpha").one()
    assert role_of(test_db, team.id, owner_user.id) == ("owner", True)
    logger.info("✓ Team created with owner membership")


def test_create_team_empty_name(client: TestClient, owner_user: models.User, auth_headers):
    response = client.post("/api/v1/teams", json={"name": "   "}, headers=auth_headers(owner_user))
    assert response.status_code == 400, f"Expected 400, got {response.status_code}: {response.json()}"


def test_create_team_requires_auth(client: TestClient):
    response = client.post("/api/v1/teams", json={"name": "Alpha"})
    assert response.status_code == 401


def test_list_teams_only_own_in_creation_order(
    client: TestClient,
    make_team,
    owner_user: models.User,
    member_user: models.User,
    outsider_user: models.User,
    auth_headers,
):
    make_team("First", owner_user, members=[member_user])
    make_team("Not mine", outsider_user)
    make_team("Second", outsider_user, members=[member_user])

    response = client.get("/api/v1/teams", headers=auth_headers(member_user))

    assert response.status_code == 200, f"Expected 200, got {response.status_code}: {response.json()}"
    assert [team["name"] for team in response.json()["items"]] == ["First", "Second"]


def test_list_teams_empty(client: TestClient, outsider_headers):
    response = client.get("/api/v1/teams", headers=outsider_headers)

    assert response.status_code == 200
    assert response.json() == {"items": []}


# ============== Invite Tests (10 tests) ==============


def test_invite_by_owner(
    client: TestClient, team: models.Team, owner_headers, mock_mailer: MockMailer, owner_user: models.User
):
    response = _invite(client, team.id, "c@d", owner_headers)

    assert response.status_code == 201, f"Expected 201, got {response.status_code}: {response.json()}"
    data = response.json()
    assert data["team_id"] == str(team.id)
    assert data["email"] == "c@d"
    assert data["inviter_id"] == str(owner_user.id)
    assert data["code"]

    assert len(mock_mailer.messages) == 1
    message = mock_mailer.messages[0]
    assert message.to == "c@d"
    assert data["code"] in message.body
    logger.info("✓ Invite created and mailed")


def test_invite_codes_are_unique(client: TestClient, team: models.Team, owner_headers):
    first = _invite(client, team.id, "c@d", owner_headers)
    second = _invite(client, team.id, "c@d", owner_headers)

    assert first.json()["code"] != second.json()["code"]


def test_invite_by_team_admin(client: TestClient, make_team, owner_user, member_user, auth_headers):
    team = make_team("Admins", owner_user, admins=[member_user])

    response = _invite(client, team.id, "c@d", auth_headers(member_user, "admin"))

    assert response.status_code == 201, f"Expected 201, got {response.status_code}: {response.json()}"


def test_invite_member_token_rejected(client: TestClient, team: models.Team, member_headers):
    response = _invite(client, team.id, "c@d", member_headers)

    assert response.status_code == 403, f"Expected 403, got {response.status_code}: {response.json()}"


def test_invite_owner_claim_but_plain_member_of_team(
    client: TestClient, team: models.Team, make_team, member_user: models.User, auth_headers
):
    """An owner token from another team does not grant invite rights here."""
    make_team("Member's own", member_user)

    response = _invite(client, team.id, "c@d", auth_headers(member_user, "owner"))

    assert response.status_code == 403, f"Expected 403, got {response.status_code}: {response.json()}"


def test_invite_unknown_team(client: TestClient, owner_headers):
    response = _invite(client, uuid4(), "c@d", owner_headers)
    assert response.status_code == 404, f"Expected 404, got {response.status_code}: {response.json()}"


def test_invite_existing_member(client: TestClient, team: models.Team, owner_headers):
    response = _invite(client, team.id, "MEMBER@test.com", owner_headers)

    assert response.status_code == 400, f"Expected 400, got {response.status_code}: {response.json()}"


def test_invite_empty_email(client: TestClient, team: models.Team, owner_headers):
    response = _invite(client, team.id, "  ", owner_headers)
    assert response.status_code == 400


def test_invite_mail_failure_returns_500(
    client: TestClient, test_db: Session, team: models.Team, owner_headers, mock_mailer: MockMailer
):
    mock_mailer.set_error(MailFailed())

    response = _invite(client, team.id, "c@d", owner_headers)

    assert response.status_code == 500, f"Expected 500, got {response.status_code}: {response.json()}"
    assert response.json()["detail"] == "internal server error"
    # Invite row is stored before the mail is attempted
    assert test_db.query(models.TeamInvite).filter(models.TeamInvite.email == "c@d").count() == 1


def test_invite_open_breaker_skips_mailer(
    client: TestClient,
    team: models.Team,
    owner_headers,
    mock_mailer: MockMailer,
    breaker: CircuitBreaker,
):
    for _ in range(20):
        try:
            breaker.call(_smtp_down)
        except RuntimeError:
            pass

    response = _invite(client, team.id, "c@d", owner_headers)

    assert response.status_code == 500
    assert mock_mailer.messages == []
    logger.info("✓ Open breaker prevented the send")


# ============== Accept Tests (6 tests) ==============


def test_invite_accept_flow(
    client: TestClient,
    test_db: Session,
    team: models.Team,
    owner_headers,
    make_user,
    auth_headers,
):
    """Owner invites c@d, the user with that email joins, the code is consumed."""
    invite = _invite(client, team.id, "c@d", owner_headers)
    assert invite.status_code == 201
    code = invite.json()["code"]

    invitee = make_user("c@d")
    headers = auth_headers(invitee)

    response = client.post("/api/v1/teams/invites/accept", json={"code": code}, headers=headers)

    assert response.status_code == 200, f"Expected 200, got {response.status_code}: {response.json()}"
    data = response.json()
    assert data["team_id"] == str(team.id)
    assert data["user_id"] == str(invitee.id)
    assert data["role"] == "member"

    assert TeamInviteRepository(test_db).get_by_code(code) is None
    assert is_member(test_db, team.id, invitee.id)

    again = client.post("/api/v1/teams/invites/accept", json={"code": code}, headers=headers)
    assert again.status_code == 404, f"Expected 404, got {again.status_code}: {again.json()}"
    logger.info("✓ Invite accepted once, second accept is 404")


def test_accept_with_different_email_case(
    client: TestClient, team: models.Team, owner_headers, make_user, auth_headers
):
    code = _invite(client, team.id, "Case@Test.com", owner_headers).json()["code"]
    invitee = make_user("case@test.com")

    response = client.post("/api/v1/teams/invites/accept", json={"code": code}, headers=auth_headers(invitee))

    assert response.status_code == 200, f"Expected 200, got {response.status_code}: {response.json()}"


def test_accept_email_mismatch(
    client: TestClient, test_db: Session, team: models.Team, owner_headers, outsider_user, outsider_headers
):
    code = _invite(client, team.id, "c@d", owner_headers).json()["code"]

    response = client.post("/api/v1/teams/invites/accept", json={"code": code}, headers=outsider_headers)

    assert response.status_code == 403, f"Expected 403, got {response.status_code}: {response.json()}"
    assert not is_member(test_db, team.id, outsider_user.id)
    assert TeamInviteRepository(test_db).get_by_code(code) is not None


def test_accept_when_already_member(
    client: TestClient, test_db: Session, team: models.Team, member_user: models.User, member_headers
):
    invite = models.TeamInvite(
        team_id=team.id, email="member@test.com", inviter_id=team.created_by, code="pre-existing"
    )
    test_db.add(invite)
    test_db.commit()

    response = client.post("/api/v1/teams/invites/accept", json={"code": "pre-existing"}, headers=member_headers)

    assert response.status_code == 400, f"Expected 400, got {response.status_code}: {response.json()}"


def test_accept_unknown_code(client: TestClient, outsider_headers):
    response = client.post("/api/v1/teams/invites/accept", json={"code": "nope"}, headers=outsider_headers)
    assert response.status_code == 404


def test_accept_empty_code(client: TestClient, outsider_headers):
    response = client.post("/api/v1/teams/invites/accept", json={"code": ""}, headers=outsider_headers)
    assert response.status_code == 400


# ============== Membership Oracle Tests (3 tests) ==============


def test_role_of_non_member(test_db: Session, team: models.Team, outsider_user: models.User):
    assert role_of(test_db, team.id, outsider_user.id) == (None, False)
    assert not is_member(test_db, team.id, outsider_user.id)


def test_highest_role_precedence(test_db: Session, make_team, owner_user, member_user, outsider_user):
    make_team("A", outsider_user, members=[member_user])
    make_team("B", owner_user, admins=[member_user])

    assert highest_role(test_db, member_user.id) == "admin"


def test_highest_role_without_teams(test_db: Session, outsider_user: models.User):
    assert highest_role(test_db, outsider_user.id) is None
