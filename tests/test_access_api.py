from conftest import auth_headers
from factoring.api.deps import IdentityContext


def test_me_for_owner(client, world):
    response = client.get(f"/api/v1/c/{world.company_id}/me", headers=world.owner.headers)

    assert response.status_code == 200
    access = response.json()["access"]
    assert access["user_id"] == str(world.owner.user_id)
    assert access["is_staff"] is False
    assert access["membership"] == {"role": "OWNER", "status": "ACTIVE"}
    assert access["can_manage"] is True


def test_me_for_staff_without_membership(client, world):
    response = client.get(f"/api/v1/c/{world.company_id}/me", headers=world.staff.headers)

    access = response.json()["access"]
    assert access["is_staff"] is True
    assert access["membership"] is None
    assert access["can_manage"] is True


def test_me_normalizes_legacy_roles(client, world, seeder):
    legacy = IdentityContext(user_id=world.outsider.user_id, email=world.outsider.identity.email)
    seeder.membership(company_id=world.company_id, user_id=legacy.user_id, role="client", status="active")

    response = client.get(f"/api/v1/c/{world.company_id}/me", headers=auth_headers(legacy))

    access = response.json()["access"]
    assert access["membership"] == {"role": "VIEWER", "status": "ACTIVE"}
    assert access["can_manage"] is False


def test_email_claim_is_lowercased(client, world):
    shouting = IdentityContext(user_id=world.operator.user_id, email="OPERATOR@ACME.TEST")

    response = client.get(f"/api/v1/c/{world.company_id}/me", headers=auth_headers(shouting))

    assert response.json()["access"]["email"] == "operator@acme.test"
