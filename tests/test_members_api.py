import re

from koperasi.models.savings import SavingsStatus

MEMBER_CODE = re.compile(r"^MEMBER_\d{13}_[0-9A-Z]{5}$")


def test_create_member_generates_code(client, auth_headers, make_product):
    product = make_product("100000")
    r = client.post(
        "/api/admin/members",
        json={"name": "Siti", "gender": "P", "productId": str(product.id), "savingsStartDate": "2026-01-01"},
        headers=auth_headers,
    )
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    assert MEMBER_CODE.match(data["uuid"])
    assert data["product"]["depositAmount"] == 100000
    assert data["hasUpgraded"] is False
    assert data["isCompleted"] is False


def test_create_member_validation(client, auth_headers, make_member):
    existing = make_member()

    r = client.post("/api/admin/members", json={"name": "Budi", "gender": "X"}, headers=auth_headers)
    assert r.status_code == 400
    r = client.post("/api/admin/members", json={"gender": "L"}, headers=auth_headers)
    assert r.status_code == 400
    r = client.post(
        "/api/admin/members", json={"name": "Budi", "gender": "L", "uuid": existing.uuid}, headers=auth_headers
    )
    assert r.status_code == 400
    r = client.post(
        "/api/admin/members",
        json={"name": "Budi", "gender": "L", "productId": "00000000-0000-0000-0000-000000000009"},
        headers=auth_headers,
    )
    assert r.status_code == 404


def test_member_lookup_by_code_or_id(client, auth_headers, make_member):
    member = make_member(name="Rina")

    by_code = client.get(f"/api/admin/members/{member.uuid}", headers=auth_headers)
    by_id = client.get(f"/api/admin/members/{member.id}", headers=auth_headers)
    assert by_code.status_code == 200, by_code.text
    assert by_id.json()["data"]["uuid"] == member.uuid
    assert by_code.json()["data"]["upgradeHistory"] == []
    assert client.get("/api/admin/members/MEMBER_UNKNOWN", headers=auth_headers).status_code == 404


def test_list_members_with_balance(client, auth_headers, make_product, make_member, add_payment):
    product = make_product("100000")
    member = make_member(product, name="Agus")
    make_member(product, name="Dewi")
    add_payment(member, product, 1, 100000)
    add_payment(member, product, 2, 100000, status=SavingsStatus.PENDING)

    r = client.get("/api/admin/members", params={"search": "agus"}, headers=auth_headers)
    assert r.status_code == 200, r.text
    rows = r.json()["data"]
    assert [m["name"] for m in rows] == ["Agus"]
    assert rows[0]["totalSavings"] == 100000


def test_complete_and_uncomplete(client, auth_headers, make_member):
    member = make_member()
    url = f"/api/admin/members/{member.uuid}"

    r = client.patch(f"{url}/complete", headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["isCompleted"] is True
    assert client.patch(f"{url}/complete", headers=auth_headers).status_code == 400

    r = client.patch(f"{url}/uncomplete", headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["isCompleted"] is False
    assert client.patch(f"{url}/uncomplete", headers=auth_headers).status_code == 400


def test_update_member(client, auth_headers, make_product, make_member):
    bronze = make_product("100000")
    silver = make_product("150000")
    member = make_member(bronze)

    r = client.put(
        f"/api/admin/members/{member.uuid}",
        json={"city": "Bandung", "productId": str(silver.id)},
        headers=auth_headers,
    )
    assert r.status_code == 200, r.text
    assert r.json()["data"]["city"] == "Bandung"
    assert r.json()["data"]["productId"] == str(silver.id)


def test_period_status(client, auth_headers, make_product, make_member, add_payment):
    product = make_product("100000", term=12)
    member = make_member(product)
    add_payment(member, product, 1, 100000)
    add_payment(member, product, 2, 30000)
    add_payment(member, product, 3, 100000, status=SavingsStatus.PENDING)

    r = client.get(f"/api/admin/members/{member.uuid}/period-status", headers=auth_headers)
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["totalPeriods"] == 12
    assert data["hasUpgrade"] is False
    periods = data["periods"]
    assert len(periods) == 12
    assert periods[0]["periodMonth"] == "2026-01"
    assert [p["status"] for p in periods[:4]] == ["paid", "partial", "pending", "belum_bayar"]
    assert periods[1]["remaining"] == 70000
    assert periods[1]["percentage"] == 30.0


def test_period_status_caps_stored_periods(client, auth_headers, make_product, make_member, add_payment):
    product = make_product("100000", term=None)
    member = make_member(product)
    add_payment(member, product, 1, 100000)
    add_payment(member, product, 100000, 100000)

    r = client.get(f"/api/admin/members/{member.uuid}/period-status", headers=auth_headers)
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["totalPeriods"] == 120
    assert len(data["periods"]) == 120
    assert data["periods"][0]["status"] == "paid"


def test_projection(client, auth_headers, make_product, make_member, add_payment):
    product = make_product("100000", term=3)
    member = make_member(product)
    add_payment(member, product, 1, 100000, proof_file="bukti-1-1-a.png")

    r = client.get(f"/api/admin/members/{member.uuid}/projection", headers=auth_headers)
    assert r.status_code == 200, r.text
    rows = r.json()["data"]
    assert [row["installmentPeriod"] for row in rows] == [1, 2, 3]
    assert rows[0]["realization"] == 100000
    assert rows[0]["paymentProof"] == "bukti-1-1-a.png"
    assert rows[1]["realization"] == 0
    assert rows[2]["periodMonth"] == "2026-03"


def test_products_crud(client, auth_headers):
    r = client.post(
        "/api/admin/products",
        json={"title": "Simpanan Silver", "depositAmount": 150000, "termDuration": 12},
        headers=auth_headers,
    )
    assert r.status_code == 201, r.text
    product = r.json()["data"]
    assert product["isActive"] is True

    r = client.put(f"/api/admin/products/{product['id']}", json={"termDuration": 24}, headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["termDuration"] == 24
    assert r.json()["data"]["depositAmount"] == 150000

    r = client.patch(f"/api/admin/products/{product['id']}/toggle-status", headers=auth_headers)
    assert r.json()["data"]["isActive"] is False

    r = client.post("/api/admin/products", json={"title": "Nol", "depositAmount": 0}, headers=auth_headers)
    assert r.status_code == 400
