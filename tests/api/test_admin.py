"""Tests for the admin console endpoints."""

from fastapi.testclient import TestClient

from storefront.domain import ProductStatus

# ============================================================================
# Products
# ============================================================================


class TestModeration:
    """Tests for listing moderation."""

    def test_lists_every_status(self, client: TestClient, admin_headers, owner, make_product) -> None:
        """Admins see drafts and pending listings with their owner."""
        make_product(owner, status=ProductStatus.DRAFT)
        pending = make_product(owner, status=ProductStatus.PENDING)

        data = client.get("/admin/products", headers=admin_headers).json()
        assert data["total"] == 2
        assert data["items"][0]["owner"]["id"] == owner.id

        filtered = client.get(
            "/admin/products", params={"status": "pending"}, headers=admin_headers
        ).json()
        assert [row["product"]["id"] for row in filtered["items"]] == [pending.id]

    def test_approve_and_reject(self, client: TestClient, admin_headers, owner, make_product) -> None:
        """Pending listings are approved or rejected with a note."""
        first = make_product(owner, status=ProductStatus.PENDING)
        second = make_product(owner, status=ProductStatus.PENDING)

        approved = client.post(f"/admin/products/{first.id}/approve", headers=admin_headers)
        assert approved.json()["status"] == "approved"

        rejected = client.post(
            f"/admin/products/{second.id}/reject",
            json={"admin_note": "Photos are blurry"},
            headers=admin_headers,
        ).json()
        assert rejected["status"] == "rejected"
        assert rejected["admin_note"] == "Photos are blurry"

    def test_invalid_transition(self, client: TestClient, admin_headers, live_product) -> None:
        """Approved listings cannot be rejected."""
        response = client.post(
            f"/admin/products/{live_product.id}/reject",
            json={"admin_note": "Late"},
            headers=admin_headers,
        )
        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_STATE_TRANSITION"

    def test_toggle_publish(self, client: TestClient, admin_headers, live_product) -> None:
        """Toggling flips between approved and draft."""
        url = f"/admin/products/{live_product.id}/toggle-publish"
        assert client.post(url, headers=admin_headers).json()["status"] == "draft"
        assert client.post(url, headers=admin_headers).json()["status"] == "approved"

    def test_deactivation_requests(self, client: TestClient, admin_headers, owner_headers, live_product) -> None:
        """Deactivation requests are rejected or approved."""
        client.post(f"/products/{live_product.id}/deactivate", headers=owner_headers)
        kept = client.post(
            f"/admin/products/{live_product.id}/deactivation/reject", headers=admin_headers
        )
        assert kept.json()["status"] == "approved"

        again = client.post(
            f"/admin/products/{live_product.id}/deactivation/reject", headers=admin_headers
        )
        assert again.status_code == 422
        assert again.json()["error_code"] == "NO_DEACTIVATION_REQUEST"

        client.post(f"/products/{live_product.id}/deactivate", headers=owner_headers)
        down = client.post(
            f"/admin/products/{live_product.id}/deactivation/approve", headers=admin_headers
        )
        assert down.json()["status"] == "draft"

    def test_listing_status(self, client: TestClient, admin_headers, live_product) -> None:
        """Fee strings are parsed; a bare Paid takes the default fee."""
        url = f"/admin/products/{live_product.id}/listing-status"
        paid = client.put(url, json={"listing_status": "Paid"}, headers=admin_headers)
        assert paid.json()["listing_status"] == "Paid: ₹99"

        offer = client.put(url, json={"listing_status": "Offer: ₹500"}, headers=admin_headers)
        assert offer.json()["listing_status"] == "Offer: ₹500"

        bad = client.put(url, json={"listing_status": "Maybe"}, headers=admin_headers)
        assert bad.status_code == 422
        assert bad.json()["error_code"] == "INVALID_LISTING_STATUS"

    def test_create_for_member(self, client: TestClient, admin_headers, renter) -> None:
        """Admin-created listings go live under the member's name."""
        response = client.post(
            "/admin/products",
            json={"title": "Kurta set", "price": 700, "owner_user_id": renter.id},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["owner_user_id"] == renter.id
        assert response.json()["status"] == "approved"

    def test_create_for_unknown_member(self, client: TestClient, admin_headers) -> None:
        """The owner must exist."""
        response = client.post(
            "/admin/products",
            json={"title": "Kurta set", "price": 700, "owner_user_id": "ghost"},
            headers=admin_headers,
        )
        assert response.status_code == 404
        assert response.json()["error_code"] == "USER_NOT_FOUND"

    def test_edit_any_product(self, client: TestClient, admin_headers, live_product) -> None:
        """Admins edit listings they do not own."""
        response = client.patch(
            f"/admin/products/{live_product.id}", json={"title": "Retitled"}, headers=admin_headers
        )
        assert response.json()["title"] == "Retitled"
        assert response.json()["status"] == "approved"

    def test_cascading_delete(self, client: TestClient, admin_headers, owner_headers, renter_headers, live_product, chat_setup) -> None:
        """Deleting a product removes its chats, inquiries, reports and saves."""
        client.put(f"/wishlist/{live_product.id}", headers=renter_headers)
        client.post(
            f"/chats/{chat_setup.chat.id}/report",
            json={"reason": "Spam or misleading"},
            headers=owner_headers,
        )

        response = client.delete(f"/admin/products/{live_product.id}", headers=admin_headers)
        assert response.json() == {
            "product_id": live_product.id,
            "reports": 1,
            "chats": 1,
            "messages": 1,
            "inquiries": 1,
            "wishlist_entries": 1,
        }
        assert client.get(f"/chats/{chat_setup.chat.id}", headers=renter_headers).status_code == 404
        assert client.get("/wishlist", headers=renter_headers).json()["items"] == []


# ============================================================================
# Users, Facets and Reports
# ============================================================================


class TestUsers:
    """Tests for the member directory."""

    def test_search(self, client: TestClient, admin_headers, owner, renter) -> None:
        """Search matches name fragments."""
        items = client.get("/admin/users", params={"q": "mee"}, headers=admin_headers).json()["items"]
        assert [u["id"] for u in items] == [owner.id]

    def test_detail_lists_products(self, client: TestClient, admin_headers, owner, live_product) -> None:
        """User detail includes every listing."""
        data = client.get(f"/admin/users/{owner.id}", headers=admin_headers).json()
        assert data["user"]["name"] == "Meera"
        assert [p["id"] for p in data["products"]] == [live_product.id]


class TestFacetAdmin:
    """Tests for facet term management."""

    def test_create_update_delete(self, client: TestClient, admin_headers) -> None:
        """Terms are created, recolored and deleted."""
        created = client.post(
            "/admin/facets/colors", json={"name": "Teal", "hex": "#008080"}, headers=admin_headers
        )
        assert created.status_code == 201
        term = created.json()
        assert term["kind"] == "colors"

        updated = client.patch(
            f"/admin/facets/terms/{term['id']}", json={"hex": "#00aaaa"}, headers=admin_headers
        )
        assert updated.json()["hex"] == "#00AAAA"

        public = client.get("/facets/colors").json()
        assert [t["name"] for t in public] == ["Teal"]

        deleted = client.delete(f"/admin/facets/terms/{term['id']}", headers=admin_headers)
        assert deleted.json() == {"updated": 0}

    def test_duplicate_term(self, client: TestClient, admin_headers) -> None:
        """Names are unique per kind."""
        client.post("/admin/facets/cities", json={"name": "Pune"}, headers=admin_headers)
        response = client.post("/admin/facets/cities", json={"name": "pune"}, headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["error_code"] == "FACET_EXISTS"


class TestReportAdmin:
    """Tests for report triage."""

    def test_list_and_resolve(self, client: TestClient, admin_headers, owner_headers, chat_setup) -> None:
        """Reports are resolved once."""
        report = client.post(
            f"/chats/{chat_setup.chat.id}/report",
            json={"reason": "Spam or misleading"},
            headers=owner_headers,
        ).json()

        listed = client.get("/admin/reports", params={"status": "new"}, headers=admin_headers).json()
        assert [r["id"] for r in listed] == [report["id"]]

        url = f"/admin/reports/{report['id']}/resolve"
        resolved = client.post(url, json={"status": "reviewed", "note": "Warned"}, headers=admin_headers)
        assert resolved.json()["status"] == "reviewed"
        assert resolved.json()["resolution_note"] == "Warned"

        again = client.post(url, json={"status": "dismissed"}, headers=admin_headers)
        assert again.status_code == 409


# ============================================================================
# Site Content
# ============================================================================


class TestSlides:
    """Tests for hero slide management."""

    def test_slide_lifecycle(self, client: TestClient, admin_headers) -> None:
        """Inactive slides are hidden from the public carousel."""
        slide = client.post(
            "/admin/slides",
            json={"title": "Wedding season", "image_url": "https://img.test/hero.webp"},
            headers=admin_headers,
        ).json()
        assert [s["id"] for s in client.get("/site/slides").json()["items"]] == [slide["id"]]

        client.patch(f"/admin/slides/{slide['id']}", json={"is_active": False}, headers=admin_headers)
        assert client.get("/site/slides").json()["items"] == []
        assert len(client.get("/admin/slides", headers=admin_headers).json()["items"]) == 1

        assert client.delete(f"/admin/slides/{slide['id']}", headers=admin_headers).status_code == 204
        missing = client.delete(f"/admin/slides/{slide['id']}", headers=admin_headers)
        assert missing.status_code == 404

    def test_member_forbidden(self, client: TestClient, renter_headers) -> None:
        """Members cannot reach the console."""
        response = client.get("/admin/slides", headers=renter_headers)
        assert response.status_code == 403
