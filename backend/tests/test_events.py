import re

import pytest

from conftest import auth_headers, create_user, event_payload
from mywish.core.config import settings
from mywish.core.media import blob_store
from mywish.services import events as event_service


@pytest.mark.anyio
async def test_create_event_returns_slug_and_host_membership(async_client, session_factory):
    host = await create_user(session_factory)
    res = await async_client.post("/events", json=event_payload(), headers=auth_headers(host))
    assert res.status_code == 201
    body = res.json()
    assert re.fullmatch(r"ana-silva-ana-souza-cha-de-panela-\d{4}", body["slug"])

    membership = await async_client.get(f"/events/{body['event_id']}/membership", headers=auth_headers(host))
    assert membership.json()["role"] == "host"

    mine = (await async_client.get("/events/mine", headers=auth_headers(host))).json()
    assert mine == [{"event_id": body["event_id"], "role": "host", "name": "Chá de Panela", "slug": body["slug"]}]


@pytest.mark.anyio
async def test_create_event_requires_auth(async_client):
    res = await async_client.post("/events", json=event_payload())
    assert res.status_code == 401
    assert res.json()["code"] == "unauthenticated"


@pytest.mark.anyio
async def test_create_event_validation(async_client, session_factory):
    host = await create_user(session_factory)
    headers = auth_headers(host)

    res = await async_client.post("/events", json=event_payload(hosts=["  ", ""]), headers=headers)
    assert res.status_code == 422
    assert res.json()["code"] == "validation_error"

    res = await async_client.post("/events", json=event_payload(event_type="other"), headers=headers)
    assert res.status_code == 422
    assert res.json()["code"] == "validation_error"

    res = await async_client.post(
        "/events",
        json=event_payload(event_type="other", custom_event_type="Open house"),
        headers=headers,
    )
    assert res.status_code == 201


@pytest.mark.anyio
async def test_create_event_caps_hosts(async_client, session_factory):
    host = await create_user(session_factory)
    many = [f"Host {i}" for i in range(settings.event_max_hosts + 3)]
    created = await async_client.post("/events", json=event_payload(hosts=many), headers=auth_headers(host))
    slug = created.json()["slug"]
    event = (await async_client.get(f"/events/by-slug/{slug}")).json()
    assert event["hosts"] == many[: settings.event_max_hosts]


@pytest.mark.anyio
async def test_get_by_slug(async_client, session_factory):
    host = await create_user(session_factory)
    created = (await async_client.post("/events", json=event_payload(), headers=auth_headers(host))).json()

    event = (await async_client.get(f"/events/by-slug/{created['slug']}")).json()
    assert event["id"] == created["event_id"]
    assert event["event_type_label"] == "Chá de panela"
    assert event["display_host_names"] == ["Ana S.", "Ana S."]
    assert event["partner_one_name"] == "Ana Silva"
    assert event["partner_two_name"] == "Ana Souza"
    assert event["created_by_partner"] == "partnerOne"

    missing = await async_client.get("/events/by-slug/nao-existe-1234")
    assert missing.status_code == 200
    assert missing.json() is None


@pytest.mark.anyio
async def test_update_event_keeps_slug_and_tri_state(async_client, session_factory):
    host = await create_user(session_factory)
    guest = await create_user(session_factory)
    created = (
        await async_client.post(
            "/events",
            json=event_payload(location="Salão Azul", description="Traga alegria"),
            headers=auth_headers(host),
        )
    ).json()
    event_id = created["event_id"]

    res = await async_client.patch(f"/events/{event_id}", json={"name": "Outro nome"}, headers=auth_headers(guest))
    assert res.status_code == 403
    assert res.json()["code"] == "forbidden_not_host"

    res = await async_client.patch(
        f"/events/{event_id}",
        json={"name": "Chá da Ana", "location": None},
        headers=auth_headers(host),
    )
    assert res.status_code == 200
    body = res.json()
    assert body["name"] == "Chá da Ana"
    assert body["slug"] == created["slug"]
    assert body["location"] is None
    assert body["description"] == "Traga alegria"

    res = await async_client.patch(f"/events/{event_id}", json={"hosts": None}, headers=auth_headers(host))
    assert res.status_code == 422


@pytest.mark.anyio
async def test_update_event_type_clears_custom_label(async_client, session_factory):
    host = await create_user(session_factory)
    created = (
        await async_client.post(
            "/events",
            json=event_payload(event_type="other", custom_event_type="Open house"),
            headers=auth_headers(host),
        )
    ).json()
    event = (await async_client.get(f"/events/by-slug/{created['slug']}")).json()
    assert event["event_type_label"] == "Open house"

    res = await async_client.patch(
        f"/events/{created['event_id']}",
        json={"event_type": "birthday"},
        headers=auth_headers(host),
    )
    assert res.json()["custom_event_type"] is None
    assert res.json()["event_type_label"] == "Aniversário"
    assert res.json()["created_by_partner"] is None


@pytest.mark.anyio
async def test_delete_event_cascades(async_client, session_factory):
    host = await create_user(session_factory)
    guest = await create_user(session_factory)
    ref = blob_store.store(b"img", "png")
    created = (await async_client.post("/events", json=event_payload(), headers=auth_headers(host))).json()
    event_id = created["event_id"]

    gift = await async_client.post(
        f"/events/{event_id}/gifts",
        json={"name": "Torradeira", "image_ref": ref},
        headers=auth_headers(host),
    )
    gift_id = gift.json()["gift_id"]
    assert (await async_client.post(f"/gifts/{gift_id}/reserve", headers=auth_headers(guest))).status_code == 204
    await async_client.put(
        f"/events/{event_id}/config",
        json={"key": "theme", "value": "rosa"},
        headers=auth_headers(host),
    )

    res = await async_client.delete(f"/events/{event_id}", headers=auth_headers(guest))
    assert res.status_code == 403

    res = await async_client.delete(f"/events/{event_id}", headers=auth_headers(host))
    assert res.status_code == 204

    assert (await async_client.get(f"/events/{event_id}/gifts")).json() == []
    assert (await async_client.get(f"/events/{event_id}/config")).json() == []
    assert (await async_client.get(f"/events/by-slug/{created['slug']}")).json() is None
    assert (await async_client.get(f"/events/{event_id}/membership", headers=auth_headers(guest))).json() is None
    assert blob_store.resolve(ref) is None


@pytest.mark.anyio
async def test_search_public_events(async_client, session_factory, monkeypatch):
    host = await create_user(session_factory)
    headers = auth_headers(host)
    await async_client.post("/events", json=event_payload(), headers=headers)
    await async_client.post(
        "/events",
        json=event_payload(name="Casamento Secreto", event_type="wedding", is_public=False),
        headers=headers,
    )
    await async_client.post(
        "/events",
        json=event_payload(name="Aniversário do João", event_type="birthday", hosts=["João"]),
        headers=headers,
    )

    found = (await async_client.get("/events/search", params={"search": "CHA DE PANELA"})).json()
    assert [event["name"] for event in found] == ["Chá de Panela"]

    found = (await async_client.get("/events/search", params={"search": "joao"})).json()
    assert [event["name"] for event in found] == ["Aniversário do João"]

    found = (await async_client.get("/events/search", params={"search": "secreto"})).json()
    assert found == []

    everything = (await async_client.get("/events/search")).json()
    assert len(everything) == 2

    monkeypatch.setattr(settings, "event_search_limit", 1)
    assert len((await async_client.get("/events/search")).json()) == 1


@pytest.mark.anyio
async def test_mine_grouped_and_join(async_client, session_factory):
    host = await create_user(session_factory)
    guest = await create_user(session_factory)
    created = (await async_client.post("/events", json=event_payload(), headers=auth_headers(host))).json()
    event_id = created["event_id"]

    res = await async_client.post(f"/events/{event_id}/join")
    assert res.status_code == 401

    res = await async_client.post(f"/events/{event_id}/join", headers=auth_headers(guest))
    assert res.status_code == 200
    assert res.json()["role"] == "guest"

    res = await async_client.post(f"/events/{event_id}/join", headers=auth_headers(host))
    assert res.json()["role"] == "host"

    grouped = (await async_client.get("/events/mine/grouped", headers=auth_headers(guest))).json()
    assert grouped["host"] == []
    assert [event["id"] for event in grouped["guest"]] == [event_id]

    grouped = (await async_client.get("/events/mine/grouped", headers=auth_headers(host))).json()
    assert [event["id"] for event in grouped["host"]] == [event_id]

    assert (await async_client.get("/events/mine")).json() == []


@pytest.mark.anyio
async def test_event_config_is_host_only(async_client, session_factory):
    host = await create_user(session_factory)
    guest = await create_user(session_factory)
    event_id = (await async_client.post("/events", json=event_payload(), headers=auth_headers(host))).json()[
        "event_id"
    ]

    res = await async_client.put(
        f"/events/{event_id}/config",
        json={"key": "theme", "value": "azul"},
        headers=auth_headers(guest),
    )
    assert res.status_code == 403

    await async_client.put(f"/events/{event_id}/config", json={"key": "theme", "value": "azul"}, headers=auth_headers(host))
    await async_client.put(f"/events/{event_id}/config", json={"key": "theme", "value": "verde"}, headers=auth_headers(host))
    await async_client.put(f"/events/{event_id}/config", json={"key": "music", "value": "samba"}, headers=auth_headers(host))

    entries = (await async_client.get(f"/events/{event_id}/config")).json()
    assert entries == [{"key": "music", "value": "samba"}, {"key": "theme", "value": "verde"}]


@pytest.mark.anyio
async def test_missing_event_is_not_found(async_client, session_factory):
    host = await create_user(session_factory)
    res = await async_client.patch("/events/999", json={"name": "X"}, headers=auth_headers(host))
    assert res.status_code == 404
    assert res.json()["code"] == "not_found"

    res = await async_client.post("/events/999/gifts", json={"name": "X"}, headers=auth_headers(host))
    assert res.status_code == 404


def test_event_types_catalog(test_client):
    res = test_client.get("/events/types")
    assert res.status_code == 200
    by_value = {item["value"]: item for item in res.json()}
    assert by_value["wedding"] == {"value": "wedding", "label": "Casamento", "supports_pair_names": True}
    assert by_value["birthday"]["supports_pair_names"] is False
    assert "other" in by_value


def test_display_host_names():
    assert event_service.display_host_names(["Ana Silva", "Ana Souza", "Bruno Lima"]) == ["Ana S.", "Ana S.", "Bruno"]
    assert event_service.display_host_names(["Carla", "carla"]) == ["Carla", "carla"]
    assert event_service.display_host_names(["  Dani  ", ""]) == ["Dani"]


def test_normalize_hosts():
    assert event_service.normalize_hosts([" Ana ", "", "  ", "Bia"]) == ["Ana", "Bia"]
    assert event_service.normalize_hosts(None) == []
