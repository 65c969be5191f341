import os

from koperasi.core.config import SAVINGS_PROOFS_DIR
from koperasi.models.savings import SavingsStatus, SavingsType


def submit(client, headers, member, product, period, amount, files=None, **extra):
    data = {
        "memberId": str(member.id),
        "productId": str(product.id),
        "installmentPeriod": str(period),
        "amount": str(amount),
    }
    data.update(extra)
    return client.post("/api/admin/savings", data=data, files=files, headers=headers)


def test_requires_authentication(client):
    r = client.get("/api/admin/savings")
    assert r.status_code == 401


def test_create_full_and_partial_payments(client, auth_headers, make_product, make_member):
    product = make_product("100000")
    member = make_member(product)

    r = submit(client, auth_headers, member, product, 1, 100000)
    assert r.status_code == 201, r.text
    body = r.json()["data"]
    assert body["status"] == "Pending"
    assert body["paymentType"] == "Full"
    assert body["partialSequence"] == 1
    assert body["description"] == "Pembayaran Simpanan Periode - 1"

    r = submit(client, auth_headers, member, product, 2, 40000)
    assert r.status_code == 201, r.text
    assert r.json()["data"]["paymentType"] == "Partial"


def test_partial_sequence_and_description_numbering(client, auth_headers, make_product, make_member):
    product = make_product("100000")
    member = make_member(product)

    first = submit(client, auth_headers, member, product, 1, 40000).json()["data"]
    assert client.patch(f"/api/admin/savings/{first['id']}/approve", headers=auth_headers).status_code == 200

    r = submit(client, auth_headers, member, product, 1, 60000)
    assert r.status_code == 201, r.text
    second = r.json()["data"]
    assert second["partialSequence"] == 2
    assert second["description"] == "Pembayaran Simpanan Periode - 1 (#2)"


def test_duplicate_pending_deposit_is_rejected(client, auth_headers, make_product, make_member):
    product = make_product("100000")
    member = make_member(product)

    assert submit(client, auth_headers, member, product, 1, 50000).status_code == 201
    r = submit(client, auth_headers, member, product, 1, 50000)
    assert r.status_code == 409, r.text
    assert r.json()["success"] is False


def test_invalid_submissions(client, auth_headers, make_product, make_member):
    product = make_product("100000", term=12)
    member = make_member(product)

    assert submit(client, auth_headers, member, product, 1, 0).status_code == 400
    assert submit(client, auth_headers, member, product, 0, 100000).status_code == 400
    assert submit(client, auth_headers, member, product, 13, 100000).status_code == 400
    assert submit(client, auth_headers, member, product, 1, 100000, type="Hibah").status_code == 400

    r = client.post(
        "/api/admin/savings",
        data={"productId": str(product.id), "installmentPeriod": "1", "amount": "100000"},
        headers=auth_headers,
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Member ID and Product ID are required"


def test_period_ceiling_applies_without_term(client, auth_headers, make_product, make_member):
    product = make_product("100000", term=None)
    member = make_member(product)

    r = submit(client, auth_headers, member, product, 100000, 100000)
    assert r.status_code == 400, r.text
    assert "maximum of 120" in r.json()["message"]
    assert submit(client, auth_headers, member, product, 121, 100000).status_code == 400
    assert submit(client, auth_headers, member, product, 120, 100000).status_code == 201


def test_unknown_member_is_not_found(client, auth_headers, make_product):
    product = make_product("100000")
    r = client.post(
        "/api/admin/savings",
        data={
            "memberId": "00000000-0000-0000-0000-000000000001",
            "productId": str(product.id),
            "installmentPeriod": "1",
            "amount": "100000",
        },
        headers=auth_headers,
    )
    assert r.status_code == 404, r.text


def test_review_transitions(client, auth_headers, make_product, make_member):
    product = make_product("100000")
    member = make_member(product)
    record = submit(client, auth_headers, member, product, 1, 100000).json()["data"]
    url = f"/api/admin/savings/{record['id']}"

    r = client.patch(f"{url}/reject", json={}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Rejection reason is required"

    r = client.patch(f"{url}/reject", json={"rejectionReason": "Bukti tidak jelas"}, headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["status"] == "Rejected"
    assert r.json()["data"]["rejectionReason"] == "Bukti tidak jelas"

    r = client.patch(f"{url}/approve", headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["status"] == "Approved"
    assert r.json()["data"]["rejectionReason"] is None

    assert client.patch(f"{url}/approve", headers=auth_headers).status_code == 400
    assert client.patch(f"{url}/reject", json={"rejectionReason": "x"}, headers=auth_headers).status_code == 400
    assert client.put(url, json={"amount": 1}, headers=auth_headers).status_code == 400


def test_mark_partial_only_from_pending(client, auth_headers, make_product, make_member):
    product = make_product("100000")
    member = make_member(product)
    record = submit(client, auth_headers, member, product, 1, 30000).json()["data"]
    url = f"/api/admin/savings/{record['id']}"

    r = client.patch(f"{url}/partial", json={"notes": "sisa menyusul"}, headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["status"] == "Partial"
    assert r.json()["data"]["notes"] == "sisa menyusul"

    assert client.patch(f"{url}/partial", headers=auth_headers).status_code == 400


def test_check_period_with_partial_history(client, auth_headers, make_product, make_member, add_payment):
    product = make_product("100000")
    member = make_member(product)
    add_payment(member, product, 1, 100000)
    add_payment(member, product, 2, 50000)
    add_payment(member, product, 3, 100000, status=SavingsStatus.PENDING)
    add_payment(member, product, 4, 100000, status=SavingsStatus.REJECTED, rejection_reason="Nominal salah")

    r = client.get(f"/api/admin/savings/check-period/{member.id}/{product.id}", headers=auth_headers)
    assert r.status_code == 200, r.text
    data = r.json()["data"]

    assert data["nextPeriod"] == 2
    assert data["lastPeriod"] == 2
    assert data["isPartialPayment"] is True
    assert data["remainingAmount"] == 50000
    assert data["expectedAmount"] == 50000
    assert data["depositAmount"] == 100000
    assert data["hasUpgrade"] is False
    assert data["upgradeInfo"] is None
    assert data["incompletePeriods"] == [{"period": 2, "paidAmount": 50000, "remainingAmount": 50000}]
    assert [t["installmentPeriod"] for t in data["pendingTransactions"]] == [3]
    assert data["rejectedTransactions"][0]["rejectionReason"] == "Nominal salah"
    assert set(data["transactionsByPeriod"]) == {"1", "2", "3", "4"}
    assert data["termDuration"] == 12
    assert data["termCompleted"] is False


def test_check_period_after_full_payments(client, auth_headers, make_product, make_member, add_payment):
    product = make_product("100000", term=2)
    member = make_member(product)
    add_payment(member, product, 1, 100000)
    add_payment(member, product, 2, 100000)
    add_payment(member, product, 2, 5000, savings_type=SavingsType.PENARIKAN)

    data = client.get(
        f"/api/admin/savings/check-period/{member.id}/{product.id}", headers=auth_headers
    ).json()["data"]

    assert data["nextPeriod"] == 3
    assert data["isPartialPayment"] is False
    assert data["expectedAmount"] == 100000
    assert data["termCompleted"] is True
    assert len(data["transactionsByPeriod"]["2"]) == 1


def test_list_savings_summary_and_pagination(client, auth_headers, make_product, make_member, add_payment):
    product = make_product("100000")
    member = make_member(product)
    add_payment(member, product, 1, 100000)
    add_payment(member, product, 2, 100000)
    add_payment(member, product, 2, 30000, savings_type=SavingsType.PENARIKAN)
    add_payment(member, product, 3, 100000, status=SavingsStatus.PENDING)

    r = client.get("/api/admin/savings", params={"limit": 2}, headers=auth_headers)
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert len(data["savings"]) == 2
    assert data["pagination"]["totalItems"] == 4
    assert data["pagination"]["totalPages"] == 2
    assert data["summary"] == {"totalSetoran": 200000, "totalPenarikan": 30000, "saldo": 170000}

    r = client.get("/api/admin/savings", params={"status": "Pending"}, headers=auth_headers)
    assert r.json()["data"]["pagination"]["totalItems"] == 1
    assert client.get("/api/admin/savings", params={"status": "Lunas"}, headers=auth_headers).status_code == 400


def test_period_summary(client, auth_headers, make_product, make_member, add_payment):
    product = make_product("100000")
    member = make_member(product)
    add_payment(member, product, 1, 60000)

    r = client.get(f"/api/admin/savings/period-summary/{member.id}/{product.id}/1", headers=auth_headers)
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["paid"] == 60000
    assert data["remaining"] == 40000
    assert data["status"] == "partial"
    assert data["percentage"] == 60.0
    assert data["transactionCount"] == 1


def test_member_savings_summary(client, auth_headers, make_product, make_member, add_payment):
    product = make_product("100000")
    member = make_member(product)
    add_payment(member, product, 1, 100000)
    add_payment(member, product, 1, 25000, savings_type=SavingsType.PENARIKAN)

    r = client.get(f"/api/admin/savings/member/{member.id}", headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["summary"]["balance"] == 75000


def test_proof_upload_and_delete(client, auth_headers, make_product, make_member):
    product = make_product("100000")
    member = make_member(product)

    r = submit(
        client, auth_headers, member, product, 1, 100000,
        files={"proofFile": ("transfer.png", b"\x89PNG fake", "image/png")},
    )
    assert r.status_code == 201, r.text
    record = r.json()["data"]
    assert record["proofFile"].startswith("bukti-")
    stored = SAVINGS_PROOFS_DIR / record["proofFile"]
    assert os.path.exists(stored)

    r = client.delete(f"/api/admin/savings/{record['id']}", headers=auth_headers)
    assert r.status_code == 200, r.text
    assert not os.path.exists(stored)
    assert client.get(f"/api/admin/savings/{record['id']}", headers=auth_headers).status_code == 404


def test_proof_with_bad_extension_is_rejected(client, auth_headers, make_product, make_member):
    product = make_product("100000")
    member = make_member(product)

    r = submit(
        client, auth_headers, member, product, 1, 100000,
        files={"proofFile": ("transfer.exe", b"MZ", "application/octet-stream")},
    )
    assert r.status_code == 400
    assert "Invalid file type" in r.json()["message"]


def test_failed_submission_removes_uploaded_proof(client, auth_headers, make_product, make_member):
    product = make_product("100000", term=12)
    member = make_member(product)
    before = set(os.listdir(SAVINGS_PROOFS_DIR)) if SAVINGS_PROOFS_DIR.exists() else set()

    r = submit(
        client, auth_headers, member, product, 20, 100000,
        files={"proofFile": ("transfer.jpg", b"jpeg", "image/jpeg")},
    )
    assert r.status_code == 400
    assert set(os.listdir(SAVINGS_PROOFS_DIR)) == before


def test_invalid_id_format(client, auth_headers):
    r = client.get("/api/admin/savings/not-a-uuid", headers=auth_headers)
    assert r.status_code == 400
