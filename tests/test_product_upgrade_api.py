import pytest

from koperasi.models.member import Member
from koperasi.services.exceptions import ConflictError, ValidationError
from koperasi.services.upgrade import execute_upgrade, preview_upgrade


@pytest.fixture
def upgrade_setup(make_product, make_member, add_payment):
    bronze = make_product("100000", term=12, title="Simpanan Bronze")
    silver = make_product("150000", term=12, title="Simpanan Silver")
    member = make_member(bronze)
    for period in (1, 2, 3):
        add_payment(member, bronze, period, 100000)
    return bronze, silver, member


def calculate(client, headers, member, product):
    return client.post(
        "/api/admin/product-upgrade/calculate",
        json={"memberId": str(member.id), "newProductId": str(product.id)},
        headers=headers,
    )


def test_calculate_upgrade(client, auth_headers, upgrade_setup):
    bronze, silver, member = upgrade_setup

    r = calculate(client, auth_headers, member, silver)
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["completedPeriods"] == 3
    assert data["totalPeriods"] == 12
    assert data["remainingPeriods"] == 9
    assert data["monthlyDelta"] == 50000
    assert data["totalShortfall"] == 150000
    assert data["compensationPerMonth"] == 16666.67
    assert data["newPaymentWithCompensation"] == 166666.67
    assert data["oldProduct"]["title"] == "Simpanan Bronze"
    assert data["newProduct"]["depositAmount"] == 150000
    assert data["completedPeriodsAtUpgrade"] == 3
    assert data["oldProductTitle"] == "Simpanan Bronze"
    assert data["newProductTitle"] == "Simpanan Silver"


def test_execute_upgrade_and_continue_paying(client, auth_headers, upgrade_setup):
    bronze, silver, member = upgrade_setup
    preview = calculate(client, auth_headers, member, silver).json()["data"]

    r = client.post(
        "/api/admin/product-upgrade/execute",
        json={
            "memberId": str(member.id),
            "newProductId": str(silver.id),
            "calculationResult": preview,
            "notes": "Naik ke Silver",
        },
        headers=auth_headers,
    )
    assert r.status_code == 200, r.text
    upgrade = r.json()["data"]
    assert upgrade["completedPeriodsAtUpgrade"] == 3
    assert upgrade["newPaymentWithCompensation"] == 166666.67
    assert upgrade["notes"] == "Naik ke Silver"

    check = client.get(
        f"/api/admin/savings/check-period/{member.id}/{silver.id}", headers=auth_headers
    ).json()["data"]
    assert check["nextPeriod"] == 4
    assert check["lastPeriod"] == 3
    assert check["isPartialPayment"] is False
    assert check["expectedAmount"] == 166666.67
    assert check["depositAmount"] == 150000
    assert check["hasUpgrade"] is True
    assert check["upgradeInfo"]["completedPeriodsAtUpgrade"] == 3

    r = client.post(
        "/api/admin/savings",
        data={
            "memberId": str(member.id),
            "productId": str(silver.id),
            "installmentPeriod": "4",
            "amount": "150000",
        },
        headers=auth_headers,
    )
    assert r.status_code == 201, r.text
    assert r.json()["data"]["paymentType"] == "Partial"

    detail = client.get(f"/api/admin/members/{member.uuid}", headers=auth_headers).json()["data"]
    assert detail["hasUpgraded"] is True
    assert detail["productId"] == str(silver.id)
    assert detail["upgradeInfo"]["compensationPerMonth"] == 16666.67
    assert len(detail["upgradeHistory"]) == 1

    periods = client.get(
        f"/api/admin/members/{member.uuid}/period-status", headers=auth_headers
    ).json()["data"]["periods"]
    assert periods[0]["required"] == 100000
    assert periods[0]["status"] == "paid"
    assert periods[3]["required"] == 166666.67

    history = client.get(f"/api/admin/product-upgrade/history/{member.id}", headers=auth_headers)
    assert history.status_code == 200, history.text
    assert [h["newProductTitle"] for h in history.json()["data"]] == ["Simpanan Silver"]


def test_second_upgrade_is_refused(client, auth_headers, upgrade_setup, make_product):
    bronze, silver, member = upgrade_setup
    gold = make_product("2000000", term=12, title="Simpanan Gold")
    payload = {"memberId": str(member.id), "newProductId": str(silver.id)}
    assert client.post("/api/admin/product-upgrade/execute", json=payload, headers=auth_headers).status_code == 200

    assert calculate(client, auth_headers, member, gold).status_code == 409
    payload["newProductId"] = str(gold.id)
    assert client.post("/api/admin/product-upgrade/execute", json=payload, headers=auth_headers).status_code == 409


def test_stale_calculation_is_refused(client, auth_headers, upgrade_setup, add_payment):
    bronze, silver, member = upgrade_setup
    preview = calculate(client, auth_headers, member, silver).json()["data"]
    add_payment(member, bronze, 4, 100000)

    r = client.post(
        "/api/admin/product-upgrade/execute",
        json={"memberId": str(member.id), "newProductId": str(silver.id), "calculationResult": preview},
        headers=auth_headers,
    )
    assert r.status_code == 409, r.text
    assert "recalculate" in r.json()["message"]


def test_stale_completed_periods_at_upgrade_is_refused(db_session, upgrade_setup, add_payment):
    bronze, silver, member = upgrade_setup
    add_payment(member, bronze, 4, 100000)

    with pytest.raises(ConflictError):
        execute_upgrade(db_session, member.id, silver.id, submitted={"completedPeriodsAtUpgrade": 3})

    upgrade = execute_upgrade(db_session, member.id, silver.id, submitted={"completedPeriodsAtUpgrade": 4})
    assert upgrade.completed_periods_at_upgrade == 4


def test_upgrade_to_same_or_inactive_product(client, auth_headers, upgrade_setup, make_product):
    bronze, silver, member = upgrade_setup
    retired = make_product("300000", term=12, is_active=False)

    assert calculate(client, auth_headers, member, bronze).status_code == 400
    assert calculate(client, auth_headers, member, retired).status_code == 400


def test_upgrade_with_no_remaining_periods(client, auth_headers, make_product, make_member, add_payment):
    short = make_product("100000", term=2)
    bigger = make_product("150000", term=2)
    member = make_member(short)
    add_payment(member, short, 1, 100000)
    add_payment(member, short, 2, 100000)

    r = calculate(client, auth_headers, member, bigger)
    assert r.status_code == 400
    assert "No remaining periods" in r.json()["message"]


def test_product_locked_after_upgrade(db_session, upgrade_setup):
    bronze, silver, member = upgrade_setup
    execute_upgrade(db_session, member.id, silver.id, submitted={})

    from koperasi.services.member import update_member

    member = db_session.query(Member).filter(Member.id == member.id).first()
    with pytest.raises(ValidationError):
        update_member(db_session, member, {"product_id": bronze.id})


def test_service_preview_matches_execute(db_session, upgrade_setup):
    bronze, silver, member = upgrade_setup
    result = preview_upgrade(db_session, member.id, silver.id)
    upgrade = execute_upgrade(
        db_session, member.id, silver.id,
        submitted={
            "completedPeriods": result.completed_periods,
            "compensationPerMonth": "16666.67",
            "newPaymentWithCompensation": 166666.67,
        },
    )
    assert upgrade.compensation_per_month == result.compensation_per_month

    with pytest.raises(ConflictError):
        execute_upgrade(db_session, member.id, silver.id, submitted={})
