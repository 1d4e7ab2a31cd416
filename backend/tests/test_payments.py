"""
Tests for star packages, invoice creation and the Telegram webhook.
"""
import json
import os

from fruitmerge.payments import parse_payload


def message_update(user_id=7, text=None, successful_payment=None, first_name="Gina", username="gina"):
    message = {
        "message_id": 10,
        "date": 1760000000,
        "chat": {"id": user_id, "type": "private"},
        "from": {"id": user_id, "is_bot": False, "first_name": first_name, "username": username},
    }
    if text is not None:
        message["text"] = text
    if successful_payment is not None:
        message["successful_payment"] = successful_payment
    return {"update_id": 1000, "message": message}


def payment_update(user_id=7, payload="stars:stars_100:7", amount=10, charge_id="charge-1"):
    return message_update(user_id, successful_payment={
        "currency": "XTR",
        "total_amount": amount,
        "invoice_payload": payload,
        "telegram_payment_charge_id": charge_id,
        "provider_payment_charge_id": "",
    })


def pre_checkout_update(payload="stars:stars_500:7"):
    return {
        "update_id": 1001,
        "pre_checkout_query": {
            "id": "query-1",
            "from": {"id": 7, "is_bot": False, "first_name": "Gina"},
            "currency": "XTR",
            "total_amount": 45,
            "invoice_payload": payload,
        },
    }


# ============================================================================
# Payload parsing
# ============================================================================

def test_parse_payload():
    stars = parse_payload("stars:stars_500:123")
    assert (stars.kind, stars.target_id, stars.user_id) == ("stars", "stars_500", "123")

    item = parse_payload("item:golden_basket:9")
    assert (item.kind, item.target_id, item.user_id) == ("item", "golden_basket", "9")

    assert parse_payload("item:skin").user_id is None
    assert parse_payload("donation") is None
    assert parse_payload("") is None


# ============================================================================
# Packages and invoices
# ============================================================================

def test_star_packages(client):
    response = client.get("/api/star-packages")
    assert response.status_code == 200
    packages = {p["id"]: p for p in response.json()}
    assert packages["stars_100"] == {"id": "stars_100", "stars": 100, "price": 10, "bonus": 0}
    assert packages["stars_5000"]["bonus"] == 1500


def test_buy_stars_creates_invoice(client, fake_telegram):
    response = client.post("/api/buy-stars", json={"packageId": "stars_500", "userId": 7})
    assert response.status_code == 200
    assert response.json()["invoiceLink"].startswith("https://t.me/")

    invoice = fake_telegram.invoices[0]
    assert invoice["payload"] == "stars:stars_500:7"
    assert invoice["amount"] == 45
    assert invoice["title"] == "550 ⭐ Stars"
    assert invoice["description"] == "500 Stars + 50 Bonus"


def test_buy_stars_unknown_package(client, fake_telegram):
    response = client.post("/api/buy-stars", json={"packageId": "stars_1", "userId": 7})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid package"
    assert fake_telegram.invoices == []


def test_buy_stars_gateway_failure(client, fake_telegram):
    fake_telegram.fail_invoices = True
    response = client.post("/api/buy-stars", json={"packageId": "stars_100", "userId": 7})
    assert response.status_code == 500
    assert response.json()["success"] is False
    assert "XTR" in response.json()["error"]


def test_create_invoice_for_item(client, fake_telegram):
    response = client.post("/api/create-invoice", json={
        "itemId": "golden_basket", "title": "Golden Basket",
        "description": "A shiny basket", "price": 25, "userId": 7,
    })
    assert response.status_code == 200
    assert fake_telegram.invoices[0]["payload"] == "item:golden_basket:7"
    assert fake_telegram.invoices[0]["amount"] == 25


# ============================================================================
# Webhook: payments
# ============================================================================

def test_pre_checkout_is_approved(client, fake_telegram):
    response = client.post("/api/webhook", json=pre_checkout_update())
    assert response.status_code == 200
    assert fake_telegram.pre_checkouts == [("query-1", True, None)]


def test_pre_checkout_unknown_package_declined(client, fake_telegram):
    client.post("/api/webhook", json=pre_checkout_update("stars:stars_3:7"))
    query_id, ok, error_message = fake_telegram.pre_checkouts[0]
    assert ok is False
    assert error_message


def test_successful_payment_credits_stars(client, store, fake_telegram, data_file):
    """Test stars:stars_100:7 credits 100 stars and logs one payment at the package price."""
    response = client.post("/api/webhook", json=payment_update())
    assert response.status_code == 200

    user = store.users["7"]
    assert user.stars_balance == 100
    assert user.total_stars_purchased == 100
    assert user.total_spent == 10
    assert len(store.payments) == 1
    assert store.payments[0].amount == 10
    assert store.payments[0].item == "stars:stars_100:7"
    assert store.stats.total_revenue == 10

    # Forced flush wrote the payment to disk
    with open(data_file, encoding="utf-8") as fh:
        saved = json.load(fh)
    assert saved["payments"][0]["amount"] == 10

    confirmation = fake_telegram.messages_to(7)
    assert "100 ⭐ Stars" in confirmation[0]["text"]
    admin = fake_telegram.messages_to("999")
    assert "10 XTR" in admin[0]["text"]


def test_successful_payment_with_bonus(client, store):
    client.post("/api/webhook", json=payment_update(payload="stars:stars_1000:7", amount=80))
    assert store.users["7"].stars_balance == 1200


def test_duplicate_payment_delivery_credits_once(client, store):
    client.post("/api/webhook", json=payment_update(charge_id="charge-dup"))
    client.post("/api/webhook", json=payment_update(charge_id="charge-dup"))
    assert store.users["7"].stars_balance == 100
    assert len(store.payments) == 1


def test_item_payment_grants_item(client, store, fake_telegram):
    client.post("/api/webhook", json=payment_update(payload="item:golden_basket:7", amount=25))
    assert store.users["7"].purchased_items == ["golden_basket"]
    assert store.users["7"].stars_balance == 0
    assert fake_telegram.messages_to(7)


def test_payment_credits_payload_user(client, store):
    """Test a gift paid by one player lands on the player named in the payload."""
    client.post("/api/webhook", json=payment_update(user_id=7, payload="stars:stars_100:8"))
    assert store.users["8"].stars_balance == 100
    assert "7" not in store.users or store.users["7"].stars_balance == 0


def test_gift_recipient_keeps_own_name(client, store):
    """Test a recipient created by a gift is not named after the payer."""
    client.post("/api/webhook", json=payment_update(user_id=7, payload="stars:stars_100:55"))
    recipient = store.users["55"]
    assert recipient.username == "Player_55"
    assert recipient.telegram_username is None
    assert store.payments[0].username == "gina"
    assert store.payments[0].user_id == "55"


def test_malformed_update_still_acknowledged(client, store):
    """Test processing errors are swallowed and the delivery acknowledged."""
    broken = message_update(successful_payment={"currency": "XTR"})
    response = client.post("/api/webhook", json=broken)
    assert response.status_code == 200
    assert store.payments == []

    response = client.post("/api/webhook", content=b"not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 200


# ============================================================================
# Webhook: commands
# ============================================================================

def test_start_sends_welcome(client, fake_telegram):
    client.post("/api/webhook", json=message_update(user_id=11, text="/start", first_name="Lena"))
    sent = fake_telegram.messages_to(11)
    assert len(sent) == 1
    assert "Welcome to Fruit Merge, Lena" in sent[0]["text"]
    assert sent[0]["play_button"] == "🎮 Play Now"


def test_start_with_referral(client, store, fake_telegram):
    client.post("/api/webhook", json=message_update(user_id=11, text="/start ref_42"))
    assert store.friends_of("11") == ["42"]
    assert store.friends_of("42") == ["11"]
    assert store.users["11"].referred_by == "42"
    assert fake_telegram.messages_to(11)


def test_start_with_self_referral_ignored(client, store):
    client.post("/api/webhook", json=message_update(user_id=11, text="/start ref_11"))
    assert store.friends == {}


def test_stats_only_for_admin(client, store, fake_telegram):
    client.post("/api/webhook", json=message_update(user_id=12, text="/stats"))
    assert fake_telegram.messages == []

    client.post("/api/webhook", json=message_update(user_id=999, text="/stats"))
    sent = fake_telegram.messages_to(999)
    assert len(sent) == 1
    assert "Total Users" in sent[0]["text"]


def test_payment_survives_flush_failure(client, store, persistence, data_file):
    """Test a failing save does not undo the credit or break the acknowledgement."""
    os.makedirs(data_file)  # a directory where the file should go makes the save fail
    response = client.post("/api/webhook", json=payment_update())
    assert response.status_code == 200
    assert store.users["7"].stars_balance == 100
