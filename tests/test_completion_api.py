import json

from dreamlog.services import prompts
from dreamlog.services.completion import CompletionError, CompletionTimeout


def _create_dream(client, headers, **fields):
    body = {"dreamText": "I walked through a flooded library"}
    body.update(fields)
    return client.post("/dreams", json=body, headers=headers).json()


def test_summarize(client, auth_headers, fake_completion):
    fake_completion.content = "'A dream about searching for something lost.'"

    response = client.post(
        "/summarize",
        json={"history": [{"role": "user", "content": "I was lost"}], "blockText": "lost", "existingSummary": "so far"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"summary": "A dream about searching for something lost."}
    call = fake_completion.calls[0]
    assert call["messages"][1]["content"].endswith("so far")
    assert {"role": "user", "content": "I was lost"} in call["messages"]


def test_analyze_returns_sanitized_raw_response(client, auth_headers, fake_completion):
    fake_completion.content = "What did the water feel like?\n```json\n{}\n```"

    response = client.post(
        "/analyze",
        json={"blockText": "water everywhere", "lastTurns": [{"role": "assistant", "content": "Hello"}]},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == "cmpl-test"
    assert body["choices"][0]["message"]["content"] == "What did the water feel like?"


def test_analyze_requires_json_content_type(client, auth_headers):
    response = client.post(
        "/analyze",
        content=json.dumps({"blockText": "x"}),
        headers={**auth_headers, "Content-Type": "text/plain"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_analyze_pulls_stored_dream_context(client, auth_headers, fake_completion):
    dream = _create_dream(client, auth_headers)
    client.put(f"/dreams/{dream['id']}", json={"dreamSummary": "stored notes"}, headers=auth_headers)
    fake_completion.content = "ok"

    client.post(
        "/analyze",
        json={"blockText": "x", "dreamId": dream["id"], "blockId": "artwork__1"},
        headers=auth_headers,
    )

    messages = fake_completion.calls[0]["messages"]
    assert messages[0]["content"] == prompts.ART_DIALOG_PERSONA
    assert any(m["content"].endswith("stored notes") for m in messages)


def test_find_similar(client, auth_headers, fake_completion):
    fake_completion.content = json.dumps(
        [{"motif": "water", "works": [{"title": "A", "author": "B"}, {"title": "C", "author": "D"}]}]
    )

    response = client.post("/find_similar", json={"dreamText": "water"}, headers=auth_headers)

    assert response.status_code == 200
    similar = response.json()["similar"]
    assert [(item["title"], item["author"]) for item in similar] == [("A", "B"), ("C", "D")]


def test_find_similar_requires_dream_text(client, auth_headers, fake_completion):
    response = client.post("/find_similar", json={"globalFinalInterpretation": "x"}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "validation_error", "message": "No dreamText"}
    assert fake_completion.calls == []


def test_completion_endpoints_require_auth(client):
    for path in ("/summarize", "/analyze", "/find_similar", "/generate_auto_summary"):
        assert client.post(path, json={}).status_code == 401


def test_upstream_failure_is_internal_error(client, auth_headers, fake_completion):
    fake_completion.error = CompletionError("completion service returned HTTP 502")

    response = client.post("/summarize", json={"history": []}, headers=auth_headers)

    assert response.status_code == 500
    assert response.json() == {
        "error": "internal_error",
        "message": "completion service returned HTTP 502",
        "reason": "upstream_error",
    }


def test_upstream_timeout_is_distinguishable(client, auth_headers, fake_completion):
    fake_completion.error = CompletionTimeout("completion service did not answer within 30s")

    response = client.post("/find_similar", json={"dreamText": "x"}, headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["reason"] == "upstream_timeout"


def test_generate_auto_summary_caches_until_text_changes(client, auth_headers, fake_completion):
    dream = _create_dream(client, auth_headers)
    fake_completion.content = "A flooded library."
    body = {"dreamId": dream["id"], "dreamText": dream["dreamText"]}

    response = client.post("/generate_auto_summary", json=body, headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "autoSummary": "A flooded library."}

    fake_completion.content = "Something else."
    response = client.post("/generate_auto_summary", json=body, headers=auth_headers)
    assert response.json()["autoSummary"] == "A flooded library."
    assert len(fake_completion.calls) == 1

    stored = client.get(f"/dreams/{dream['id']}", headers=auth_headers).json()
    assert stored["autoSummary"] == "A flooded library."

    updated = client.put(f"/dreams/{dream['id']}", json={"dreamText": "A dry library"}, headers=auth_headers).json()
    assert updated["autoSummary"] is None


def test_generate_auto_summary_validation(client, auth_headers, login_headers):
    response = client.post("/generate_auto_summary", json={"dreamId": "x"}, headers=auth_headers)
    assert response.status_code == 400

    other = login_headers("other@x.com", "p")
    dream = _create_dream(client, other)
    response = client.post(
        "/generate_auto_summary",
        json={"dreamId": dream["id"], "dreamText": dream["dreamText"]},
        headers=auth_headers,
    )
    assert response.status_code == 404
