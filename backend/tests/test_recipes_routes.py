"""
RecipeShare Backend - Recipe API Tests
========================================

What:  The HTTP surface through httpx ASGITransport, with SQLite and a
       mocked S3 client behind the real services.

What we test:
    ✅ Create (201) with and without an image; envelope and camelCase fields
    ✅ Authentication: missing/invalid token → 401
    ✅ Validation failures → 400 envelope; oversized image → 400, no row
    ✅ Store outage → 503
    ✅ Update/delete by a non-owner → 404
    ✅ Listings, detail, X-Request-ID, health
"""

import json

import pytest
from botocore.exceptions import ClientError

# Tokens accepted by the StaticTokenVerifier in conftest
AUTHOR = {"Authorization": "Bearer author-token"}
OTHER = {"Authorization": "Bearer other-token"}


def _fields(**overrides):
    fields = {
        "title": "Pancakes",
        "description": "Sunday breakfast",
        "ingredients": json.dumps(["flour", "milk", "eggs"]),
        "instructions": json.dumps(["mix", "fry"]),
        "prepTimeMinutes": "10",
        "cookingTimeMinutes": "15",
        "servingSize": "4",
        "isPublished": "true",
    }
    fields.update(overrides)
    return fields


async def _create(client, files=None, **overrides):
    response = await client.post("/api/recipes", data=_fields(**overrides), files=files, headers=AUTHOR)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreateEndpoint:
    @pytest.mark.asyncio
    async def test_create_with_image(self, test_client, make_image, author):
        photo = make_image("JPEG", (2000, 1500))

        response = await test_client.post(
            "/api/recipes",
            data=_fields(),
            files={"image": ("pancakes.jpg", photo, "image/jpeg")},
            headers=AUTHOR,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["title"] == "Pancakes"
        assert data["ingredients"] == ["flour", "milk", "eggs"]
        assert data["servingSize"] == 4
        assert data["isPublished"] is True
        assert data["authorId"] == str(author.id)
        assert data["thumbnailUrl"].endswith(f"/{data['id']}/thumbnail.jpg")
        assert data["largeUrl"].endswith(f"/{data['id']}/large.jpg")
        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_create_without_image(self, test_client, s3_client):
        data = await _create(test_client)

        assert data["thumbnailUrl"] is None
        assert data["largeUrl"] is None
        s3_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_requires_token(self, test_client):
        response = await test_client.post("/api/recipes", data=_fields())

        assert response.status_code == 401
        assert response.json()["success"] is False
        assert response.json()["error"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_rejects_invalid_token(self, test_client):
        response = await test_client.post(
            "/api/recipes", data=_fields(), headers={"Authorization": "Bearer nope"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_field_is_400(self, test_client):
        response = await test_client.post(
            "/api/recipes", data=_fields(authorId="someone"), headers=AUTHOR
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "validation_error"
        assert body["details"] == {"field": "authorId"}

    @pytest.mark.asyncio
    async def test_oversized_image_is_400_and_no_row(self, test_client, s3_client):
        huge = b"\x89PNG\r\n\x1a\n" + b"\x00" * (5 * 1024 * 1024)

        response = await test_client.post(
            "/api/recipes",
            data=_fields(),
            files={"image": ("big.png", huge, "image/png")},
            headers=AUTHOR,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Image file size is bigger than 1 MB"
        s3_client.put_object.assert_not_called()

        listing = await test_client.get("/api/recipes/author", headers=AUTHOR)
        assert listing.json()["data"]["totalItems"] == 0

    @pytest.mark.asyncio
    async def test_store_outage_is_503(self, test_client, s3_client, make_image):
        s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "ServiceUnavailable", "Message": "down"}}, "PutObject"
        )

        response = await test_client.post(
            "/api/recipes",
            data=_fields(),
            files={"image": ("p.jpg", make_image("JPEG"), "image/jpeg")},
            headers=AUTHOR,
        )

        assert response.status_code == 503
        assert response.json()["error"] == "store_unavailable"


class TestUpdateEndpoint:
    @pytest.mark.asyncio
    async def test_partial_update(self, test_client):
        created = await _create(test_client)

        response = await test_client.put(
            f"/api/recipes/{created['id']}", data={"title": "Crepes", "description": ""}, headers=AUTHOR
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["title"] == "Crepes"
        assert data["description"] == "Sunday breakfast"

    @pytest.mark.asyncio
    async def test_empty_update_is_400(self, test_client):
        created = await _create(test_client)

        response = await test_client.put(
            f"/api/recipes/{created['id']}", data={"title": ""}, headers=AUTHOR
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_non_owner_gets_404(self, test_client):
        created = await _create(test_client)

        response = await test_client.put(
            f"/api/recipes/{created['id']}", data={"title": "Mine"}, headers=OTHER
        )

        assert response.status_code == 404
        assert response.json()["message"] == "The requested recipe was not found"

    @pytest.mark.asyncio
    async def test_invalid_id_is_400(self, test_client):
        response = await test_client.put("/api/recipes/not-a-uuid", data={"title": "x"}, headers=AUTHOR)
        assert response.status_code == 400


class TestDeleteEndpoint:
    @pytest.mark.asyncio
    async def test_delete(self, test_client):
        created = await _create(test_client)

        response = await test_client.delete(f"/api/recipes/{created['id']}", headers=AUTHOR)

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert (await test_client.get(f"/api/recipes/{created['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_non_owner_delete_is_404(self, test_client):
        created = await _create(test_client)

        response = await test_client.delete(f"/api/recipes/{created['id']}", headers=OTHER)

        assert response.status_code == 404
        assert (await test_client.get(f"/api/recipes/{created['id']}")).status_code == 200


class TestReadEndpoints:
    @pytest.mark.asyncio
    async def test_public_listing_pagination(self, test_client):
        for i in range(10):
            await _create(test_client, title=f"Dish {i}")
        await _create(test_client, title="Draft", isPublished="false")

        response = await test_client.get("/api/recipes", params={"page": 2, "limit": 6})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["totalItems"] == 10
        assert len(data["recipeData"]) == 4
        assert data["hasMore"] is False
        item = data["recipeData"][0]
        assert set(item) == {
            "recipeId", "title", "prepTimeMinutes", "cookingTimeMinutes",
            "servingSize", "imageUrl", "authorName", "authorAvatarUrl",
        }

    @pytest.mark.asyncio
    async def test_limit_above_twenty_is_400(self, test_client):
        response = await test_client.get("/api/recipes", params={"limit": 21})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_author_listing(self, test_client):
        await _create(test_client)
        await _create(test_client, isPublished="false")

        response = await test_client.get("/api/recipes/author", headers=AUTHOR)

        data = response.json()["data"]
        assert data["totalItems"] == 2
        assert data["draftItems"] == 1

    @pytest.mark.asyncio
    async def test_detail_is_owner(self, test_client):
        created = await _create(test_client)

        anonymous = await test_client.get(f"/api/recipes/{created['id']}")
        owner = await test_client.get(f"/api/recipes/{created['id']}", headers=AUTHOR)

        assert anonymous.json()["data"]["isOwner"] is False
        assert owner.json()["data"]["isOwner"] is True
        assert owner.json()["data"]["authorName"] == "Chef Ana"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client):
        response = await test_client.get("/api/recipes", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"


class TestHealth:
    @pytest.mark.asyncio
    async def test_healthy(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["object_store"] == "available"

    @pytest.mark.asyncio
    async def test_degraded_when_bucket_unreachable(self, test_client, s3_client):
        s3_client.head_bucket.side_effect = ClientError(
            {"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadBucket"
        )

        response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["object_store"] == "unavailable"


class TestProductionErrors:
    @pytest.mark.asyncio
    async def test_store_outage_message_is_generic(self, test_client, s3_client, make_image, monkeypatch):
        from recipeshare.config import settings
        from recipeshare.main import GENERIC_SERVER_MESSAGE

        monkeypatch.setattr(settings, "environment", "production")
        s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "ServiceUnavailable", "Message": "bucket recipes-test down"}}, "PutObject"
        )

        response = await test_client.post(
            "/api/recipes",
            data=_fields(),
            files={"image": ("p.jpg", make_image("JPEG"), "image/jpeg")},
            headers=AUTHOR,
        )

        assert response.status_code == 503
        body = response.json()
        assert body["error"] == "store_unavailable"
        assert body["message"] == GENERIC_SERVER_MESSAGE
        assert "details" not in body
        assert "recipes-test" not in response.text

    @pytest.mark.asyncio
    async def test_development_keeps_store_message(self, test_client, s3_client, make_image):
        from recipeshare.main import GENERIC_SERVER_MESSAGE

        s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "ServiceUnavailable", "Message": "down"}}, "PutObject"
        )

        response = await test_client.post(
            "/api/recipes",
            data=_fields(),
            files={"image": ("p.jpg", make_image("JPEG"), "image/jpeg")},
            headers=AUTHOR,
        )

        assert response.status_code == 503
        assert response.json()["message"] != GENERIC_SERVER_MESSAGE


class TestRateLimit:
    @pytest.mark.asyncio
    async def test_over_limit_is_429_with_retry_after(self, test_client, monkeypatch):
        from recipeshare.config import settings

        # Middleware reads its limits when the app handles its first request
        monkeypatch.setattr(settings, "rate_limit_requests", 2)

        for _ in range(2):
            assert (await test_client.get("/api/recipes")).status_code == 200
        response = await test_client.get("/api/recipes", headers={"X-Request-ID": "limit-rid"})

        assert response.status_code == 429
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "rate_limit_exceeded"
        assert body["request_id"] == "limit-rid"
        assert response.headers["X-Request-ID"] == "limit-rid"
        retry_after = int(response.headers["Retry-After"])
        assert 0 < retry_after <= settings.rate_limit_window + 1
        assert body["details"]["retry_after"] == retry_after

    @pytest.mark.asyncio
    async def test_health_is_not_limited(self, test_client, monkeypatch):
        from recipeshare.config import settings

        monkeypatch.setattr(settings, "rate_limit_requests", 1)

        for _ in range(3):
            assert (await test_client.get("/health")).status_code == 200

    @pytest.mark.asyncio
    async def test_window_is_per_client(self):
        from fastapi import FastAPI
        from httpx import ASGITransport, AsyncClient

        from recipeshare.middleware.rate_limit import RateLimitMiddleware

        app = FastAPI()
        app.add_middleware(RateLimitMiddleware, max_requests=1, window=60)

        @app.get("/ping")
        async def ping():
            return {"ok": True}

        first = AsyncClient(transport=ASGITransport(app=app, client=("10.0.0.1", 1234)), base_url="http://test")
        second = AsyncClient(transport=ASGITransport(app=app, client=("10.0.0.2", 1234)), base_url="http://test")
        async with first, second:
            assert (await first.get("/ping")).status_code == 200
            assert (await first.get("/ping")).status_code == 429
            assert (await second.get("/ping")).status_code == 200
