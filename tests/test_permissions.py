import pytest

from app.core.permissions import Permission, ROLE_PERMISSIONS, get_permissions_for_role, has_permission


def test_admin_holds_every_permission():
    assert get_permissions_for_role("admin") == set(Permission)


@pytest.mark.parametrize(
    "permission",
    [Permission.PROJECT_CREATE, Permission.PHASE_MANAGE, Permission.APPROVAL_REQUEST, Permission.TEAM_MANAGE],
)
def test_pm_runs_delivery(permission):
    assert has_permission("pm", permission)


@pytest.mark.parametrize("permission", [Permission.APPROVAL_RESPOND, Permission.APPROVAL_DELETE])
def test_pm_does_not_decide_for_the_client(permission):
    assert not has_permission("pm", permission)


def test_client_permissions():
    assert ROLE_PERMISSIONS["client"] == {
        Permission.PROJECT_VIEW,
        Permission.APPROVAL_RESPOND,
        Permission.MESSAGE_POST,
    }
    assert not has_permission("client", Permission.PROJECT_VIEW_ALL)


def test_unknown_role_has_nothing():
    assert get_permissions_for_role("intern") == set()
    assert not has_permission("intern", Permission.PROJECT_VIEW)


def test_inactive_user_is_rejected(client, auth, db, users):
    users["pm"].is_active = False
    db.commit()
    assert client.get("/api/projects", headers=auth("pm")).status_code == 401
