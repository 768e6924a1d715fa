import pytest


@pytest.mark.asyncio
async def test_publish_issue_requires_editor(client, fake_db, make_user):
    author = make_user("author")
    manuscript = fake_db.seed("manuscripts", title="Paper", status="accepted", author_id=author.id)

    response = await client.post(
        "/api/v1/admin/publish-issue",
        headers=author.headers,
        json={"title": "Vol 1", "manuscript_ids": [manuscript["id"]]},
    )

    assert response.status_code == 403
    assert fake_db.rows("issues") == []
    assert fake_db.rows("manuscripts")[0]["status"] == "accepted"


@pytest.mark.asyncio
async def test_publish_issue_validates_before_writing(client, fake_db, make_user):
    editor = make_user("editor")

    response = await client.post(
        "/api/v1/admin/publish-issue", headers=editor.headers, json={"title": "  ", "manuscript_ids": []}
    )

    assert response.status_code == 400
    assert ("issues", "insert") not in fake_db.calls


@pytest.mark.asyncio
async def test_publish_then_read_publicly(client, fake_db, make_user):
    editor = make_user("editor")
    first = fake_db.seed("manuscripts", title="First", status="accepted", authors=[{"name": "Ada"}])
    second = fake_db.seed("manuscripts", title="Second", status="accepted")

    published = await client.post(
        "/api/v1/admin/publish-issue",
        headers=editor.headers,
        json={
            "title": "Vol 2",
            "volume": 2,
            "issue_number": 1,
            "published_at": "2026-03-01T00:00:00Z",
            "manuscript_ids": [first["id"], second["id"], first["id"], "unknown"],
        },
    )
    assert published.status_code == 200
    issue = published.json()["issue"]
    assert issue["volume"] == "2"
    assert [a["title"] for a in published.json()["articles"]] == ["First", "Second"]
    assert {m["status"] for m in fake_db.rows("manuscripts")} == {"published"}

    listing = (await client.get("/api/v1/issues")).json()["issues"]
    latest = (await client.get("/api/v1/issues/latest")).json()
    detail = (await client.get(f"/api/v1/issues/{issue['id']}")).json()
    article_id = detail["articles"][0]["id"]
    article = (await client.get(f"/api/v1/articles/{article_id}")).json()

    assert [i["id"] for i in listing] == [issue["id"]]
    assert latest["issue"]["id"] == issue["id"]
    assert len(detail["articles"]) == 2
    assert article["issue"]["id"] == issue["id"]


@pytest.mark.asyncio
async def test_latest_issue_prefers_published_at_over_nulls(client, fake_db):
    fake_db.seed("issues", title="Undated", published_at=None)
    dated = fake_db.seed("issues", title="Dated", published_at="2026-02-01T00:00:00+00:00")

    response = await client.get("/api/v1/issues/latest")

    assert response.json()["issue"]["id"] == dated["id"]


@pytest.mark.asyncio
async def test_missing_issue_and_article_are_404(client, fake_db):
    assert (await client.get("/api/v1/issues/nope")).status_code == 404
    assert (await client.get("/api/v1/articles/nope")).status_code == 404


@pytest.mark.asyncio
async def test_upload_issue_pdf_and_set_cover(client, fake_db, make_user):
    editor = make_user("admin")

    uploaded = await client.post(
        "/api/v1/admin/upload-issue",
        headers=editor.headers,
        data={"title": "Special Issue"},
        files={"file": ("whole issue.pdf", b"%PDF-1.4", "application/pdf")},
    )
    assert uploaded.status_code == 200
    body = uploaded.json()
    assert body["publicUrl"].startswith("https://storage.test/public/")
    assert body["issue"]["pdf_path"] == body["publicUrl"]

    covered = await client.patch(
        f"/api/v1/admin/issues/{body['issue']['id']}",
        headers=editor.headers,
        json={"cover_url": "https://cdn.example.com/cover.png"},
    )
    assert covered.status_code == 200
    assert covered.json()["issue"]["cover_url"] == "https://cdn.example.com/cover.png"

    missing = await client.patch("/api/v1/admin/issues/nope", headers=editor.headers, json={"cover_url": None})
    assert missing.status_code == 404
