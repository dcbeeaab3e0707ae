# =============================================================================
# tests/test_products.py - Catalogue and product CRUD
# =============================================================================

from app.models.product import Product


class TestCatalogue:
    """Tests for the public product pages."""

    def test_catalogue_lists_only_active_products(self, client, admin, make_file, make_product):
        file = make_file(admin)
        make_product(file, title="Visible kit")
        make_product(file, title="Hidden kit", is_active=False)

        response = client.get("/products")

        assert response.status_code == 200
        assert "Visible kit" in response.text
        assert "Hidden kit" not in response.text

    def test_catalogue_search(self, client, admin, make_file, make_product):
        file = make_file(admin)
        make_product(file, title="Django starter")
        make_product(file, title="Flask starter")

        response = client.get("/products", params={"search": "django"})

        assert "Django starter" in response.text
        assert "Flask starter" not in response.text

    def test_product_detail_shows_price(self, client, admin, make_file, make_product):
        product = make_product(make_file(admin, price="12.50"), title="Kit")

        response = client.get(f"/products/{product.id}")

        assert response.status_code == 200
        assert "12.50 USD" in response.text

    def test_inactive_product_is_hidden_from_customers(self, client, admin, make_user, login_as, make_file, make_product):
        product = make_product(make_file(admin), is_active=False)
        login_as(make_user("alice"))

        assert client.get(f"/products/{product.id}").status_code == 404

        login_as(admin)
        assert client.get(f"/products/{product.id}").status_code == 200

    def test_detail_marks_owned_product(self, client, admin, make_user, login_as, make_file, make_product, make_purchase):
        product = make_product(make_file(admin))
        alice = make_user("alice")
        make_purchase(alice, product)
        login_as(alice)

        response = client.get(f"/products/{product.id}")

        assert "You already own this file" in response.text


class TestProductCrud:
    """Tests for /admin/products."""

    def test_create_product(self, client, admin, login_as, make_file, db):
        file = make_file(admin)
        login_as(admin)

        response = client.post("/admin/products", data={"title": "Starter kit", "file_id": file.id})

        assert response.status_code == 303
        product = db.query(Product).one()
        assert product.title == "Starter kit"
        assert product.file_id == file.id
        assert product.is_active is True

    def test_create_product_for_unknown_file(self, client, admin, login_as, db):
        login_as(admin)

        response = client.post("/admin/products", data={"title": "Kit", "file_id": 999})

        assert "error=" in response.headers["location"]
        assert db.query(Product).count() == 0

    def test_edit_product(self, client, admin, login_as, make_file, make_product, db):
        first = make_file(admin, name="First")
        second = make_file(admin, name="Second")
        product = make_product(first)
        login_as(admin)

        response = client.post(
            f"/admin/products/{product.id}/edit",
            data={"title": "Updated", "file_id": second.id},
        )

        assert response.status_code == 303
        db.expire_all()
        assert product.title == "Updated"
        assert product.file_id == second.id
        # unchecked checkbox deactivates
        assert product.is_active is False

    def test_delete_unsold_product(self, client, admin, login_as, make_file, make_product, db):
        product = make_product(make_file(admin))
        login_as(admin)

        client.post(f"/admin/products/{product.id}/delete")

        assert db.query(Product).count() == 0

    def test_delete_sold_product_only_deactivates(self, client, admin, make_user, login_as, make_file, make_product, make_purchase, db):
        product = make_product(make_file(admin))
        make_purchase(make_user("alice"), product)
        login_as(admin)

        client.post(f"/admin/products/{product.id}/delete")

        db.expire_all()
        assert db.query(Product).count() == 1
        assert product.is_active is False
