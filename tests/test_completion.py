import asyncio
import json

import httpx
import pytest

from dreamlog.services import completion, prompts
from dreamlog.services.completion import CompletionClient, CompletionError, CompletionTimeout


def _reply(content):
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


def _client(handler, api_key="k"):
    return CompletionClient(
        api_key=api_key,
        url="https://completions.test/v1/chat/completions",
        model="test-model",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


def test_flatten_motif_groups():
    items = [{"motif": "water", "works": [{"title": "A", "author": "B"}, {"title": "C", "author": "D"}]}]

    flat = completion.flatten_similar_artworks(items)

    assert flat == [
        {"title": "A", "author": "B", "desc": "", "value": "", "type": "default"},
        {"title": "C", "author": "D", "desc": "", "value": "", "type": "default"},
    ]


def test_flatten_caps_across_motifs():
    items = [
        {"motif": f"m{m}", "works": [{"title": f"t{m}{w}", "author": "x", "type": "music"} for w in range(3)]}
        for m in range(3)
    ]

    flat = completion.flatten_similar_artworks(items)

    assert len(flat) == 5
    assert [item["title"] for item in flat] == ["t00", "t01", "t02", "t10", "t11"]
    assert flat[0]["type"] == "music"


def test_flatten_leaves_flat_and_unknown_shapes_alone():
    flat = [{"title": "A", "author": "B", "extra": 1}]
    odd = [{"name": "something else"}]

    assert completion.flatten_similar_artworks(flat) is flat
    assert completion.flatten_similar_artworks(odd) is odd
    assert completion.flatten_similar_artworks([]) == []


def test_parse_similar_accepts_fenced_json():
    raw = '```json\n[{"title": "A", "author": "B"}]\n```'
    assert completion.parse_similar(raw) == [{"title": "A", "author": "B"}]


def test_parse_similar_accepts_works_object():
    raw = json.dumps({"works": [{"title": "A", "author": "B"}]})
    assert completion.parse_similar(raw) == [{"title": "A", "author": "B"}]


def test_parse_similar_falls_back_to_raw_text():
    assert completion.parse_similar("Sorry, I cannot help") == [
        {"title": "", "type": "default", "author": "", "desc": "Sorry, I cannot help", "value": ""}
    ]


def test_clean_plain_text_strips_fences_and_quotes():
    assert completion.clean_plain_text('"The dream speaks of loss."\n```python\nprint(1)\n```') == (
        "The dream speaks of loss."
    )


def test_sanitize_reply_keeps_raw_when_only_code():
    response = completion.sanitize_reply(_reply("```\nonly code\n```"))
    assert response["choices"][0]["message"]["content"] == "```\nonly code\n```"

    response = completion.sanitize_reply(_reply("Tell me more.\n```x```"))
    assert response["choices"][0]["message"]["content"] == "Tell me more."

    with pytest.raises(CompletionError):
        completion.sanitize_reply({"choices": []})


def test_analyze_messages_order_and_windows():
    turns = [{"role": "user", "content": str(i)} for i in range(15)]

    messages = completion.build_analyze_messages(
        "x" * 5000,
        last_turns=turns,
        rolling_summary="rolling",
        extra_system_prompt="extra",
        dream_summary="context",
        auto_summary="digest",
    )

    assert messages[0] == {"role": "system", "content": prompts.DIALOG_PERSONA}
    assert [m["content"].split(":")[0] for m in messages[1:4]] == [
        "Dream digest",
        "Context from the dreamer",
        "Rolling summary of the dialogue",
    ]
    assert messages[4]["content"] == "Current block:\n" + "x" * 4000
    assert [m["content"] for m in messages[5:15]] == [str(i) for i in range(5, 15)]
    assert messages[-1] == {"role": "system", "content": "extra"}


def test_artwork_block_switches_persona():
    messages = completion.build_analyze_messages("text", block_id="artwork__3")
    assert messages[0]["content"] == prompts.ART_DIALOG_PERSONA

    messages = completion.build_analyze_messages("text", block_id="block_3")
    assert messages[0]["content"] == prompts.DIALOG_PERSONA


def test_summary_messages_keep_last_thirty_turns():
    history = [{"role": "assistant", "content": str(i)} for i in range(40)]

    messages = completion.build_summary_messages(history, block_text="dream", existing_summary=None)

    assert messages[1]["content"] == "Dream text:\ndream"
    assert messages[2]["content"] == "10"
    assert messages[-1] == {"role": "user", "content": prompts.FINAL_INTERPRETATION_PROMPT}


def test_client_posts_chat_completion_request():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_reply('"Short."'))

    summary = asyncio.run(completion.summarize(_client(handler), [{"role": "user", "content": "hi"}]))

    assert summary == "Short."
    assert seen["auth"] == "Bearer k"
    assert seen["body"]["model"] == "test-model"
    assert seen["body"]["stream"] is False
    assert seen["body"]["messages"][-2] == {"role": "user", "content": "hi"}


def test_client_timeout_is_distinguished():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(CompletionTimeout):
        asyncio.run(_client(handler).complete([], max_tokens=10, temperature=0.1))


def test_client_upstream_rejection():
    def handler(request):
        return httpx.Response(401, json={"error": {"message": "bad key"}})

    with pytest.raises(CompletionError) as excinfo:
        asyncio.run(_client(handler).complete([], max_tokens=10, temperature=0.1))

    assert not isinstance(excinfo.value, CompletionTimeout)
    assert "401" in str(excinfo.value)


def test_client_requires_api_key():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(CompletionError):
        asyncio.run(_client(handler, api_key=None).complete([], max_tokens=10, temperature=0.1))


def test_find_similar_end_to_end():
    groups = [{"motif": "water", "works": [{"title": f"W{i}", "author": "A"} for i in range(7)]}]

    def handler(request):
        return httpx.Response(200, json=_reply("```json\n" + json.dumps(groups) + "\n```"))

    similar = asyncio.run(completion.find_similar(_client(handler), "I swam"))

    assert [item["title"] for item in similar] == ["W0", "W1", "W2", "W3", "W4"]


def test_flatten_drops_works_repeated_across_motifs():
    items = [
        {"motif": "water", "works": [{"title": "A", "author": "B"}, {"title": "C", "author": "D"}]},
        {"motif": "flight", "works": [{"title": "A", "author": "B"}, {"title": "E", "author": "F"}]},
    ]

    flat = completion.flatten_similar_artworks(items)

    assert [(item["title"], item["author"]) for item in flat] == [("A", "B"), ("C", "D"), ("E", "F")]


def test_repeats_do_not_take_slots_from_distinct_works():
    repeated = {"title": "Same", "author": "X"}
    items = [
        {"motif": "m1", "works": [repeated, {"title": "t1", "author": "a"}]},
        {"motif": "m2", "works": [repeated, {"title": "t2", "author": "a"}, {"title": "t3", "author": "a"}]},
        {"motif": "m3", "works": [repeated, {"title": "t4", "author": "a"}, {"title": "t5", "author": "a"}]},
    ]

    flat = completion.flatten_similar_artworks(items)

    assert [item["title"] for item in flat] == ["Same", "t1", "t2", "t3", "t4"]


def test_parse_similar_empty_reply_uses_fallback():
    for raw in ("", "   ", "```json\n```"):
        assert completion.parse_similar(raw) == [
            {"title": "", "type": "default", "author": "", "desc": "", "value": ""}
        ]
