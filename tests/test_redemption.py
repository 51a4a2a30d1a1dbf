from unittest import mock
import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from conftest import make_prize
from models import db, User, Prize, PrizeRedemption


def set_points(app, user_id, points):
    with app.app_context():
        db.session.get(User, user_id).points = points
        db.session.commit()


def get_points(app, user_id):
    with app.app_context():
        return db.session.get(User, user_id).points


def redeem(player, prize_id, **details):
    return player.client.post(
        "/api/prize-redemption",
        json={"prizeId": prize_id, **details},
        headers=player.headers,
    )


def update_claim(admin, claim_id, status, **extra):
    return admin.client.put(
        "/api/admin/claims",
        json={"claimId": claim_id, "status": status, **extra},
        headers=admin.headers,
    )


@pytest.fixture
def claim(app, player):
    set_points(app, player.id, 100)
    prize_id = make_prize(app, points_required=80, stock=2)
    response = redeem(player, prize_id, fullName="Player One", whatsappNumber="+92 300 1234567",
                      address="House 12, Street 4, Lahore")
    assert response.status_code == 201
    return response.get_json()["claim"]


def test_redemption_debits_points_and_stock(app, player, claim):
    assert claim["status"] == "pending"
    assert claim["pointsUsed"] == 80
    assert get_points(app, player.id) == 20
    with app.app_context():
        assert db.session.get(Prize, claim["prizeId"]).stock == 1


def test_second_redemption_with_too_few_points(app, player, claim):
    other_prize = make_prize(app, points_required=80, name="Smart watch")
    response = redeem(player, other_prize)
    assert response.status_code == 400
    body = response.get_json()
    assert body["required"] == 80
    assert body["available"] == 20
    assert get_points(app, player.id) == 20
    with app.app_context():
        assert PrizeRedemption.query.count() == 1


def test_out_of_stock(app, player):
    set_points(app, player.id, 500)
    prize_id = make_prize(app, points_required=10, stock=0)
    response = redeem(player, prize_id)
    assert response.status_code == 400
    assert "stock" in response.get_json()["error"]
    assert get_points(app, player.id) == 500


def test_unlimited_stock_stays_unlimited(app, player):
    set_points(app, player.id, 50)
    prize_id = make_prize(app, points_required=10, stock=None)
    assert redeem(player, prize_id).status_code == 201
    with app.app_context():
        assert db.session.get(Prize, prize_id).stock is None


def test_unavailable_prize(app, player):
    set_points(app, player.id, 500)
    hidden = make_prize(app, points_required=10, status="draft")
    inactive = make_prize(app, points_required=10, is_active=False)
    assert redeem(player, hidden).status_code == 404
    assert redeem(player, inactive).status_code == 404
    assert redeem(player, 999).status_code == 404


def test_duplicate_pending_claim(app, player, claim):
    set_points(app, player.id, 200)
    response = redeem(player, claim["prizeId"])
    assert response.status_code == 400
    assert get_points(app, player.id) == 200


def test_invalid_whatsapp_number(app, player):
    set_points(app, player.id, 100)
    prize_id = make_prize(app, points_required=10)
    response = redeem(player, prize_id, whatsappNumber="call me")
    assert response.status_code == 400
    assert response.get_json()["details"][0]["field"] == "whatsappNumber"


def test_claim_history_newest_first(app, player):
    set_points(app, player.id, 100)
    first = make_prize(app, points_required=10, name="Mug")
    second = make_prize(app, points_required=10, name="Cap")
    redeem(player, first)
    redeem(player, second)
    claims = player.client.get("/api/prize-redemption").get_json()["claims"]
    assert [c["prize"]["name"] for c in claims] == ["Cap", "Mug"]


def test_prize_catalogue_lists_available_prizes(app, player):
    make_prize(app, points_required=50, name="Headphones")
    make_prize(app, points_required=20, name="Keychain")
    make_prize(app, points_required=5, name="Draft prize", status="draft")
    prizes = player.client.get("/api/prizes").get_json()["prizes"]
    assert [p["name"] for p in prizes] == ["Keychain", "Headphones"]


def test_rejecting_twice_refunds_once(app, player, admin, claim):
    with mock.patch("classes.redemption_manager.notify_claim_status", return_value=True) as notify:
        first = update_claim(admin, claim["id"], "rejected", notes="Address could not be verified")
        assert first.status_code == 200
        assert get_points(app, player.id) == 100

        second = update_claim(admin, claim["id"], "rejected")
        assert second.status_code == 200
        assert get_points(app, player.id) == 100
        assert notify.call_count == 1

    body = second.get_json()
    assert body["claim"]["status"] == "rejected"
    assert body["claim"]["notes"] == "Address could not be verified"


def test_terminal_claims_cannot_move(app, player, admin, claim):
    assert update_claim(admin, claim["id"], "fulfilled").status_code == 200
    response = update_claim(admin, claim["id"], "rejected")
    assert response.status_code == 400
    assert response.get_json()["currentStatus"] == "fulfilled"
    assert get_points(app, player.id) == 20


def test_approved_then_rejected_refunds(app, player, admin, claim):
    assert update_claim(admin, claim["id"], "approved").status_code == 200
    assert get_points(app, player.id) == 20
    assert update_claim(admin, claim["id"], "pending").status_code == 400
    assert update_claim(admin, claim["id"], "rejected").status_code == 200
    assert get_points(app, player.id) == 100
    with app.app_context():
        assert db.session.get(PrizeRedemption, claim["id"]).processed_at is not None


def test_mail_failure_does_not_fail_update(app, player, admin, claim):
    with mock.patch("utils.email.mail.send", side_effect=ConnectionError("smtp down")):
        response = update_claim(admin, claim["id"], "approved")
    assert response.status_code == 200
    assert response.get_json()["notified"] is False


def test_claim_listing_filters_by_status(app, player, admin, claim):
    update_claim(admin, claim["id"], "approved")
    approved = admin.client.get("/api/admin/claims?status=approved").get_json()
    pending = admin.client.get("/api/admin/claims?status=pending").get_json()
    assert [c["id"] for c in approved["claims"]] == [claim["id"]]
    assert approved["claims"][0]["user"]["username"] == "player1"
    assert pending["claims"] == []


def test_unknown_claim(admin):
    assert update_claim(admin, 999, "approved").status_code == 404


def test_failed_claim_insert_keeps_points_and_stock(app, player):
    set_points(app, player.id, 100)
    prize_id = make_prize(app, points_required=80, stock=2)

    def fail_insert(mapper, connection, target):
        raise OperationalError("INSERT INTO prize_redemptions", {}, Exception("lock wait timeout exceeded"))

    event.listen(PrizeRedemption, "before_insert", fail_insert)
    try:
        response = redeem(player, prize_id)
    finally:
        event.remove(PrizeRedemption, "before_insert", fail_insert)

    assert response.status_code == 503
    assert get_points(app, player.id) == 100
    with app.app_context():
        assert db.session.get(Prize, prize_id).stock == 2
        assert PrizeRedemption.query.count() == 0


def test_redemption_locks_user_and_prize_rows(app, player, monkeypatch):
    set_points(app, player.id, 100)
    prize_id = make_prize(app, points_required=80)

    real_get = db.session.get
    locked = []

    def recording_get(entity, ident, **kwargs):
        if kwargs.get("with_for_update"):
            locked.append(entity)
        return real_get(entity, ident, **kwargs)

    monkeypatch.setattr(db.session, "get", recording_get)
    assert redeem(player, prize_id).status_code == 201
    assert User in locked
    assert Prize in locked
