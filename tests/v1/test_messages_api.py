# tests/v1/test_messages_api.py
"""Tests for channel pages, threads and thread context."""

import pytest
from fastapi import status

from factories import record


@pytest.fixture
def thread(graph) -> None:
    graph.ingest(record("A", 1))
    graph.ingest(record("B", 2, parents=["A"], sender="bob"))
    graph.ingest(record("C", 3, parents=["A"]))
    graph.ingest(record("D", 4, parents=["B", "C"]))
    graph.ingest(record("edit", 5, text="A, revised", edit_of="A"))


def test_channel_messages_are_folded(client, thread) -> None:
    response = client.get("/api/v1/channels/general/messages")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert [message["id"] for message in data] == ["A", "B", "C", "D"]
    assert data[0]["text"] == "A, revised"
    assert data[0]["edited"] is True
    assert data[3]["parent_ids"] == ["B", "C"]


def test_channel_messages_limit(client, thread) -> None:
    response = client.get("/api/v1/channels/general/messages", params={"limit": 2})
    assert response.status_code == status.HTTP_200_OK
    assert [message["id"] for message in response.json()] == ["C", "D"]

    assert client.get(
        "/api/v1/channels/general/messages", params={"limit": 0}
    ).status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_channel_messages_page_back_with_id_cursor(client, graph) -> None:
    for message_id in ("m1", "m2", "m3", "m4"):
        graph.ingest(record(message_id, 1))

    newest = client.get("/api/v1/channels/general/messages", params={"limit": 2}).json()
    assert [message["id"] for message in newest] == ["m3", "m4"]

    older = client.get(
        "/api/v1/channels/general/messages",
        params={"limit": 2, "before": newest[0]["created_at"], "before_id": newest[0]["id"]},
    ).json()
    assert [message["id"] for message in older] == ["m1", "m2"]


def test_empty_channel(client) -> None:
    response = client.get("/api/v1/channels/nowhere/messages")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == []


def test_thread(client, thread) -> None:
    response = client.get("/api/v1/messages/D/thread")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["root_id"] == "D"
    assert data["truncated"] is False
    assert [message["id"] for message in data["messages"]] == ["A", "B", "C", "D"]
    by_id = {message["id"]: message for message in data["messages"]}
    assert by_id["D"]["parent_ids"] == ["B", "C"]
    assert by_id["A"]["parent_ids"] == []


def test_thread_truncation_flag(client, thread) -> None:
    response = client.get("/api/v1/messages/A/thread", params={"max_nodes": 2})
    data = response.json()
    assert len(data["messages"]) == 2
    assert data["truncated"] is True


def test_thread_unknown_message(client) -> None:
    response = client.get("/api/v1/messages/missing/thread")
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_thread_context(client, thread) -> None:
    response = client.get("/api/v1/messages/B/context")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["focus"]["id"] == "B"
    assert [m["id"] for m in data["ancestors"]] == ["A"]
    assert [m["id"] for m in data["descendants"]] == ["D"]
    assert [m["id"] for m in data["siblings"]] == ["C"]
    assert data["sibling_parent_ids"] == ["C"]
    assert data["parent_map"]["D"] == ["B", "C"]


def test_thread_context_unknown_message(client) -> None:
    response = client.get("/api/v1/messages/missing/context")
    assert response.status_code == status.HTTP_404_NOT_FOUND
