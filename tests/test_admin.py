# =============================================================================
# tests/test_admin.py - Admin overview, users and transactions
# =============================================================================

from app.models.user import User


def test_overview_shows_revenue(client, admin, make_user, login_as, make_file, make_product, make_purchase):
    product = make_product(make_file(admin, price="7.25"))
    make_purchase(make_user("alice"), product)
    make_purchase(make_user("bob"), product)
    make_purchase(make_user("carol"), product, completed=False)
    login_as(admin)

    response = client.get("/admin")

    assert response.status_code == 200
    assert "Users: 4" in response.text
    assert "Paid transactions: 2" in response.text
    assert "Revenue: 14.50 USD" in response.text


def test_toggle_admin(client, admin, make_user, login_as, db):
    alice = make_user("alice")
    login_as(admin)

    response = client.post(f"/admin/users/{alice.id}/toggle-admin")

    assert response.status_code == 303
    db.expire_all()
    assert alice.is_admin is True

    client.post(f"/admin/users/{alice.id}/toggle-admin")
    db.expire_all()
    assert alice.is_admin is False


def test_admin_cannot_demote_themself(client, admin, login_as, db):
    login_as(admin)

    response = client.post(f"/admin/users/{admin.id}/toggle-admin")

    assert "error=" in response.headers["location"]
    db.expire_all()
    assert db.get(User, admin.id).is_admin is True


def test_toggle_unknown_user_is_404(client, admin, login_as):
    login_as(admin)

    assert client.post("/admin/users/999/toggle-admin").status_code == 404


def test_all_transactions_with_filter(client, admin, make_user, login_as, make_file, make_product, make_purchase):
    product = make_product(make_file(admin))
    make_purchase(make_user("alice"), product)
    make_purchase(make_user("bob"), product, completed=False)
    login_as(admin)

    everything = client.get("/admin/transactions")
    pending = client.get("/admin/transactions", params={"status": "pending"})

    assert "alice" in everything.text and "bob" in everything.text
    assert "bob" in pending.text
    assert "<td>alice</td>" not in pending.text
