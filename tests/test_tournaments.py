from conftest import auth


def test_list_returns_client_shape(client, published):
    tournaments = client.get("/tournaments").json()
    assert [t["name"] for t in tournaments] == ["European HEMA Championships", "Swordfish"]

    vienna = tournaments[0]
    assert vienna["coordinates"] == [16.3738, 48.2082]
    assert vienna["dateTo"] == "2025-06-15"
    assert vienna["contactEmail"] == "info@ehc.org"
    assert vienna["latestUpdate"] is None
    assert tournaments[1]["dateTo"] == "2025-11-03"


def test_list_attaches_newest_update(client, fake_db, published, user_token):
    vienna, _ = published
    for message in ("Registration open", "Pools published"):
        client.post(f"/tournaments/{vienna['id']}/updates", json={"message": message}, headers=auth(user_token))

    tournaments = {t["id"]: t for t in client.get("/tournaments").json()}
    assert tournaments[vienna["id"]]["latestUpdate"]["message"] == "Pools published"


def test_list_filters(client, published):
    def names(query):
        return [t["name"] for t in client.get(f"/tournaments?{query}").json()]

    assert names("startDate=2025-07-01") == ["Swordfish"]
    assert names("endDate=2025-07-01") == ["European HEMA Championships"]
    assert names("discipline=Rapier") == ["European HEMA Championships"]
    assert names("discipline=Rapier&discipline=Sabre") == ["European HEMA Championships", "Swordfish"]
    assert names("type=Men") == ["Swordfish"]
    assert names("discipline=Sabre&type=Women") == []


def test_list_favorites_filter_needs_a_token(client, published, user_token):
    vienna, gothenburg = published
    assert client.get("/tournaments?favorites=true").status_code == 401

    client.post("/user/favorites", json={"tournamentId": gothenburg["id"], "action": "add"}, headers=auth(user_token))
    favourites = client.get("/tournaments?favorites=true", headers=auth(user_token)).json()
    assert [t["id"] for t in favourites] == [gothenburg["id"]]


def test_detail(client, published):
    vienna, _ = published
    detail = client.get(f"/tournaments/{vienna['id']}").json()
    assert detail["name"] == "European HEMA Championships"
    assert detail["disciplines"][1] == {"name": "Rapier", "type": "Women"}


def test_detail_not_found_and_bad_id(client, published):
    assert client.get("/tournaments/999").status_code == 404
    response = client.get("/tournaments/abc")
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid tournament ID"
    assert client.get("/tournaments/0").status_code == 400


def test_patch_by_owner(client, fake_db, published, user_token):
    vienna, _ = published
    response = client.patch(
        f"/tournaments/{vienna['id']}",
        json={"venueDetails": "Messe Wien", "coordinates": [16.40, 48.21]},
        headers=auth(user_token),
    )
    assert response.status_code == 200
    assert response.json()["venueDetails"] == "Messe Wien"
    assert response.json()["coordinates"] == [16.40, 48.21]

    row = fake_db.tables["tournaments"][0]
    assert row["venue_details"] == "Messe Wien"
    assert row["coordinates"] == [48.21, 16.40]
    assert row["name"] == "European HEMA Championships"


def test_patch_ignores_fields_outside_the_editable_set(client, fake_db, published, user_token):
    vienna, _ = published
    response = client.patch(f"/tournaments/{vienna['id']}", json={"name": "Renamed"}, headers=auth(user_token))
    assert response.status_code == 400
    assert fake_db.tables["tournaments"][0]["name"] == "European HEMA Championships"


def test_patch_authorization(client, published, other_token, admin_token):
    vienna, gothenburg = published
    denied = client.patch(f"/tournaments/{vienna['id']}", json={"description": "x"}, headers=auth(other_token))
    assert denied.status_code == 403

    allowed = client.patch(f"/tournaments/{gothenburg['id']}", json={"description": "x"}, headers=auth(admin_token))
    assert allowed.status_code == 200
    assert allowed.json()["description"] == "x"

    assert client.patch(f"/tournaments/{vienna['id']}", json={"description": "x"}).status_code == 401
    assert client.patch("/tournaments/999", json={"description": "x"}, headers=auth(admin_token)).status_code == 404


def test_patch_fails_closed_when_ownership_lookup_breaks(client, fake_db, published, user_token):
    vienna, _ = published
    fake_db.fail("get_documents", "tournament_owners")
    response = client.patch(f"/tournaments/{vienna['id']}", json={"description": "x"}, headers=auth(user_token))
    assert response.status_code == 403


def test_updates_feed_newest_first(client, published, user_token):
    vienna, _ = published
    url = f"/tournaments/{vienna['id']}/updates"
    client.post(url, json={"message": "Registration open"}, headers=auth(user_token))
    created = client.post(url, json={"message": "  Pools published  "}, headers=auth(user_token))
    assert created.status_code == 200
    assert created.json()["update"]["message"] == "Pools published"

    feed = client.get(url).json()
    assert [u["message"] for u in feed] == ["Pools published", "Registration open"]
    assert feed[0]["id"] == created.json()["update"]["id"]

    detail = client.get(f"/tournaments/{vienna['id']}").json()
    assert detail["latestUpdate"]["message"] == "Pools published"


def test_update_rejects_blank_message(client, fake_db, published, user_token):
    vienna, _ = published
    response = client.post(f"/tournaments/{vienna['id']}/updates", json={"message": " \n\t "}, headers=auth(user_token))
    assert response.status_code == 400
    assert response.json()["detail"] == "Message is required"
    assert fake_db.tables["tournament_updates"] == []


def test_update_requires_ownership(client, published, other_token, admin_token):
    vienna, _ = published
    url = f"/tournaments/{vienna['id']}/updates"
    assert client.post(url, json={"message": "hi"}, headers=auth(other_token)).status_code == 403
    assert client.post(url, json={"message": "hi"}, headers=auth(admin_token)).status_code == 200
    assert client.post(url, json={"message": "hi"}).status_code == 401


def test_update_on_missing_tournament_is_not_found(client, fake_db, published, admin_token):
    response = client.post("/tournaments/999/updates", json={"message": "hi"}, headers=auth(admin_token))
    assert response.status_code == 404
    assert fake_db.tables["tournament_updates"] == []


def test_list_reads_updates_for_listed_tournaments_only(client, fake_db, published):
    vienna, gothenburg = published
    client.get("/tournaments")
    scoped = [within for table, _, within in fake_db.queries if table == "tournament_updates"]
    assert scoped == [{"tournament_id": [vienna["id"], gothenburg["id"]]}]


def test_list_survives_malformed_coordinates(client, fake_db, published):
    fake_db.create_document("tournaments", {"name": "Broken", "date": "2025-12-01", "coordinates": []})
    response = client.get("/tournaments")
    assert response.status_code == 200
    assert response.json()[-1]["coordinates"] is None
