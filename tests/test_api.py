from datetime import timedelta

from smartmess.services.credits.subscription_check_service import EXPIRED_MESSAGE

from .conftest import OWNER_ID

OFF_DAYS = "/api/mess/off-days"


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert "off_days" in body["loaded_modules"]


class TestAuth:
    def test_missing_headers(self, client):
        response = client.get(OFF_DAYS)

        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_unknown_role(self, client):
        response = client.get(OFF_DAYS, headers={"X-User-Id": OWNER_ID, "X-User-Role": "chef"})

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid user role"

    def test_wrong_role(self, client, admin_headers):
        assert client.get(OFF_DAYS, headers=admin_headers).status_code == 403

    def test_owner_without_mess(self, client):
        response = client.get(OFF_DAYS, headers={"X-User-Id": "owner-9999", "X-User-Role": "mess-owner"})

        assert response.status_code == 400
        assert response.json()["message"] == "Mess owner not associated with any mess"


class TestOffDays:
    def test_create_list_and_cancel(self, client, owner_headers, membership, today):
        end_before = membership.subscription_end_date

        created = client.post(
            OFF_DAYS,
            json={"offDate": today.isoformat(), "reason": "Gas cylinder delay", "subscriptionExtension": True},
            headers=owner_headers,
        )

        assert created.status_code == 201
        body = created.json()
        assert body["success"] is True
        off_day = body["data"]["offDay"]
        assert off_day["offDate"] == today.isoformat()
        assert off_day["extensionState"] == "applied"
        assert body["data"]["membershipsExtended"] == 1
        assert membership.subscription_end_date == end_before + timedelta(days=1)

        listed = client.get(OFF_DAYS, params={"filter": "upcoming"}, headers=owner_headers).json()
        assert [o["id"] for o in listed["data"]["offDays"]] == [off_day["id"]]
        assert listed["data"]["pagination"] == {"current": 1, "pages": 1, "total": 1}

        cancelled = client.request(
            "DELETE",
            f"{OFF_DAYS}/{off_day['id']}",
            json={"sendAnnouncement": False},
            headers=owner_headers,
        )

        assert cancelled.status_code == 200
        reversal = cancelled.json()["data"]["reversalInfo"]
        assert reversal["subscriptionExtensionReversed"] is True
        assert reversal["membershipsReversed"] == 1
        assert membership.subscription_end_date == end_before

    def test_past_date_is_rejected(self, client, owner_headers, mess, today):
        response = client.post(
            OFF_DAYS,
            json={"offDate": (today - timedelta(days=1)).isoformat(), "reason": "Late entry"},
            headers=owner_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Off date cannot be in the past"

    def test_unknown_off_day(self, client, owner_headers, mess):
        response = client.request("DELETE", f"{OFF_DAYS}/missing-id", headers=owner_headers)

        assert response.status_code == 404

    def test_expired_subscription_blocks_creation(self, client, owner_headers, funded_credits, today):
        funded_credits(0)

        response = client.post(
            OFF_DAYS,
            json={"offDate": today.isoformat(), "reason": "Festival"},
            headers=owner_headers,
        )

        assert response.status_code == 403
        body = response.json()
        assert body["subscriptionExpired"] is True
        assert body["message"] == EXPIRED_MESSAGE
        assert body["data"]["isExpired"] is True

    def test_history(self, client, owner_headers, mess, today):
        created = client.post(
            OFF_DAYS,
            json={"offDate": today.isoformat(), "reason": "Gas cylinder delay"},
            headers=owner_headers,
        ).json()["data"]["offDay"]
        client.put(f"{OFF_DAYS}/{created['id']}", json={"reason": "Gas refill delayed"}, headers=owner_headers)

        response = client.get(f"{OFF_DAYS}/{created['id']}/history", headers=owner_headers)

        assert response.status_code == 200
        entries = response.json()["data"]
        assert [e["action"] for e in entries] == ["update", "create"]
        assert entries[0]["offDayId"] == created["id"]
        assert entries[0]["changes"]["reason"] == {"from": "Gas cylinder delay", "to": "Gas refill delayed"}

    def test_history_of_unknown_off_day(self, client, owner_headers, mess):
        response = client.get(f"{OFF_DAYS}/missing-id/history", headers=owner_headers)

        assert response.status_code == 404

    def test_settings_created_on_first_read(self, client, owner_headers, mess):
        response = client.get("/api/mess/off-day-settings", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["data"]["pattern"] == "none"


class TestPaymentRequests:
    def test_insufficient_credits(self, client, owner_headers, slabs, pending_request, funded_credits):
        funded_credits(5)

        response = client.post(f"/api/payment-requests/{pending_request.id}/approve", headers=owner_headers)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["data"]["requiredCredits"] == 10
        assert body["data"]["availableCredits"] == 5
        assert body["data"]["redirectTo"] == "/mess-owner/platform-subscription"

    def test_approve(self, client, owner_headers, slabs, pending_request, funded_credits):
        funded_credits(30)

        response = client.post(
            f"/api/payment-requests/{pending_request.id}/approve",
            json={"paymentMethod": "upi"},
            headers=owner_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["creditsDeducted"] == 10
        assert data["remainingCredits"] == 20
        assert data["membership"]["status"] == "active"

    def test_expired_owner_cannot_accept_users(self, client, owner_headers, slabs, pending_request, funded_credits):
        funded_credits(0)

        response = client.post(f"/api/payment-requests/{pending_request.id}/approve", headers=owner_headers)

        assert response.status_code == 403
        assert response.json()["subscriptionExpired"] is True

    def test_reject(self, client, owner_headers, pending_request):
        response = client.post(
            f"/api/payment-requests/{pending_request.id}/reject",
            json={"remarks": "Wrong amount"},
            headers=owner_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["paymentRequestStatus"] == "rejected"


class TestCreditManagement:
    def test_admin_lists_slabs(self, client, admin_headers, slabs):
        response = client.get("/api/credit-management/admin/slabs", headers=admin_headers)

        assert response.status_code == 200
        assert [s["minUsers"] for s in response.json()["data"]] == [1, 11]

    def test_owner_cannot_use_admin_routes(self, client, owner_headers, mess):
        assert client.get("/api/credit-management/admin/slabs", headers=owner_headers).status_code == 403

    def test_subscription_status_starts_trial(self, client, owner_headers, mess):
        response = client.get("/api/credit-management/subscription-status", headers=owner_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["isTrialActive"] is True
        assert data["status"] == "trial"


class TestBilling:
    def test_create_and_pay(self, client, owner_headers, membership, today):
        created = client.post(
            "/api/billing",
            json={
                "membershipId": membership.id,
                "periodStart": today.isoformat(),
                "periodEnd": (today + timedelta(days=29)).isoformat(),
            },
            headers=owner_headers,
        )

        assert created.status_code == 201
        bill = created.json()["data"]
        assert bill["finalAmount"] == "2950.00"

        paid = client.post(f"/api/billing/{bill['id']}/pay", json={"paymentMethod": "cash"}, headers=owner_headers)

        assert paid.status_code == 200
        data = paid.json()["data"]
        assert data["billing"]["paymentStatus"] == "paid"
        assert data["transaction"]["status"] == "success"
