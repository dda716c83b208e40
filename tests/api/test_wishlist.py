"""Tests for wishlist endpoints."""

from fastapi.testclient import TestClient

from storefront.domain import ProductStatus


class TestWishlist:
    """Tests for saving products."""

    def test_save_list_and_remove(self, client: TestClient, renter_headers, live_product) -> None:
        """Saved products are listed until removed."""
        url = f"/wishlist/{live_product.id}"
        assert client.put(url, headers=renter_headers).json() == {
            "product_id": live_product.id,
            "saved": True,
        }
        client.put(url, headers=renter_headers)

        items = client.get("/wishlist", headers=renter_headers).json()["items"]
        assert [i["product"]["id"] for i in items] == [live_product.id]
        assert client.get(url, headers=renter_headers).json()["saved"] is True

        assert client.delete(url, headers=renter_headers).status_code == 204
        assert client.get(url, headers=renter_headers).json()["saved"] is False

    def test_hidden_product_cannot_be_saved(self, client: TestClient, owner, renter_headers, make_product) -> None:
        """Only live products can be saved."""
        draft = make_product(owner, status=ProductStatus.DRAFT)
        response = client.put(f"/wishlist/{draft.id}", headers=renter_headers)
        assert response.status_code == 404

    def test_saves_show_on_dashboard(self, client: TestClient, owner_headers, renter_headers, live_product) -> None:
        """Owners see how often their listings were saved."""
        client.put(f"/wishlist/{live_product.id}", headers=renter_headers)
        stats = client.get("/products/mine", headers=owner_headers).json()["products"][0]
        assert stats["wishlist_saves"] == 1

    def test_requires_sign_in(self, client: TestClient) -> None:
        """Wishlists belong to members."""
        assert client.get("/wishlist").status_code == 401
