import asyncio

import httpx
import pytest
from data_loader import parse_csv
from insights import (
    InsightsError,
    dataset_prompt,
    extract_text,
    regression_prompt,
    rollup_prompt,
    summarize,
)
from regression import regress


def _answer(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _run(handler):
    async def call():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await summarize("hello", url="http://proxy.test/ai-insights", client=client)

    return asyncio.run(call())


def test_summarize_posts_prompt_and_returns_text():
    seen = {}

    def handler(request):
        seen["body"] = request.content
        return httpx.Response(200, json=_answer("All good."))

    assert _run(handler) == "All good."
    assert b'"prompt"' in seen["body"]


def test_summarize_raises_on_http_error():
    with pytest.raises(InsightsError):
        _run(lambda request: httpx.Response(500, json={"error": "boom"}))


def test_summarize_raises_on_unexpected_shape():
    with pytest.raises(InsightsError):
        _run(lambda request: httpx.Response(200, json={"candidates": []}))


def test_summarize_raises_on_non_json():
    with pytest.raises(InsightsError):
        _run(lambda request: httpx.Response(200, text="not json"))


def test_extract_text():
    assert extract_text(_answer("x")) == "x"
    with pytest.raises(InsightsError):
        extract_text({})


def test_dataset_prompt_mentions_headers_and_sample_size():
    dataset = parse_csv("Branch,Sales\nA,1\nB,2\nC,3\n")
    prompt = dataset_prompt(dataset, sample_size=2)
    assert "Branch, Sales" in prompt
    assert "first 2 rows" in prompt


def test_regression_and_rollup_prompts_embed_their_reports():
    rows = [{"y": 2 * x + 1, "x": x} for x in range(5)]
    assert "Dependent Variable (Y): y" in regression_prompt(regress(rows, "y", ["x"]))
    assert rollup_prompt("Branch: A").endswith("Branch: A")
