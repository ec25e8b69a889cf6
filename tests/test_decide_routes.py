"""Tests for the decide endpoint."""

from policy_api.core.config import LLMSettings


def test_decide_returns_classification(client) -> None:
    resp = client.post("/api/decide", json={"question": "Should I go for a run?"}, headers={"X-Request-ID": "d-1"})

    assert resp.status_code == 200
    assert resp.json() == {"c": "yes", "v": "yes", "request_id": "d-1"}
    assert resp.headers["X-RateLimit-Limit"] == "20"


def test_short_question_is_unclear(client) -> None:
    resp = client.post("/api/decide", json={"question": "?"})

    assert resp.json()["c"] == "unclear"
    assert resp.json()["v"] == "Ask a question"


def test_restricted_question_is_filtered(client) -> None:
    resp = client.post("/api/decide", json={"question": "Should I buy more ETH?"})

    assert resp.json()["c"] == "filtered"


def test_provider_failure_degrades_to_unclear(make_client, fake_llm) -> None:
    fake_llm.error = RuntimeError("OpenAI API error: timeout")
    client = make_client(llm=fake_llm)

    resp = client.post("/api/decide", json={"question": "Should I go for a run?"})

    assert resp.status_code == 200
    assert resp.json()["c"] == "unclear"
    assert resp.json()["v"] == "try again"


def test_missing_llm_key_degrades_to_unclear(make_client) -> None:
    client = make_client(llm_settings=LLMSettings(api_key=None))

    resp = client.post("/api/decide", json={"question": "Should I go for a run?"})

    assert resp.status_code == 200
    assert resp.json()["c"] == "unclear"


def test_non_string_question_is_400(client) -> None:
    resp = client.post("/api/decide", json={"question": ["a", "b"]})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_question"


def test_decide_quota_returns_429(make_client, fake_llm) -> None:
    client = make_client(llm=fake_llm, decide_rate_limit_requests=2)

    for _ in range(2):
        assert client.post("/api/decide", json={"question": "Is it sunny?"}).status_code == 200
    blocked = client.post("/api/decide", json={"question": "Is it sunny?"})

    assert blocked.status_code == 429
    assert blocked.json()["error"]["details"]["retry_after"] >= 1


def test_pipe_question_scores_options(make_client, fake_llm) -> None:
    fake_llm.scores = [4, 9.5]
    client = make_client(llm=fake_llm)

    resp = client.post("/api/decide", json={"question": "weekend: hike | museum"}, headers={"X-Request-ID": "m-1"})

    assert resp.status_code == 200
    assert resp.json() == {
        "c": "ok",
        "v": "ok",
        "request_id": "m-1",
        "stem": "weekend",
        "winner_index": 1,
        "tie": False,
        "tie_indices": [1],
        "scores": [4.0, 9.5],
        "options": [
            {"index": 0, "option": "hike", "score": 4.0},
            {"index": 1, "option": "museum", "score": 9.5},
        ],
    }


def test_explicit_stem_and_options(make_client, fake_llm) -> None:
    fake_llm.scores = [8, 8, 3]
    client = make_client(llm=fake_llm)

    resp = client.post(
        "/api/decide",
        json={"mode": "MULTI", "stem": "team lunch", "options": ["ramen", " pho ", "", "salad"]},
    )

    data = resp.json()
    assert data["stem"] == "team lunch"
    assert [option["option"] for option in data["options"]] == ["ramen", "pho", "salad"]
    assert data["tie"] is True
    assert data["tie_indices"] == [0, 1]


def test_multi_mode_needs_two_options(client) -> None:
    resp = client.post("/api/decide", json={"mode": "multi", "question": "just one thing"})

    assert resp.status_code == 200
    assert resp.json()["c"] == "unclear"
    assert resp.json()["v"] == "Need 2-8 options"


def test_multi_mode_provider_failure_degrades(make_client, fake_llm) -> None:
    fake_llm.error = RuntimeError("OpenAI API error: timeout")
    client = make_client(llm=fake_llm)

    resp = client.post("/api/decide", json={"question": "a | b"})

    assert resp.status_code == 200
    assert resp.json()["c"] == "unclear"
    assert "scores" not in resp.json()
