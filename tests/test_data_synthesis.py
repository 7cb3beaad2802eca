"""Tests for textbook search and chunk-level data synthesis."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from servers.clients.textbook_search import SupabaseAuth, TextbookSearchClient
from servers.practice_agents.data_synthesis import ChunkAnalysis, DataSynthesisWorkflow
from tests.conftest import make_fake_llm

AUTH = SupabaseAuth(email="t@example.com", password="pw", authorization="token")


def analysis(question: str) -> ChunkAnalysis:
    return ChunkAnalysis(analysis=[{
        "question": question,
        "response": "回答",
        "chain_of_thought": "思路",
    }])


class TestTextbookSearchClient:
    @pytest.mark.asyncio
    async def test_posts_query_with_auth_headers(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=[{"content": "片段"}])

        client = TextbookSearchClient(
            base_url="https://search.example.com/functions/v1/",
            transport=httpx.MockTransport(handler),
        )
        chunks = await client.search("煤矸石", AUTH, top_k=3, ext_k=2)

        assert chunks == [{"content": "片段"}]
        assert seen["url"] == "https://search.example.com/functions/v1/textbook_search"
        assert seen["headers"]["email"] == "t@example.com"
        assert seen["headers"]["password"] == "pw"
        assert seen["headers"]["authorization"] == "Bearer token"
        assert seen["body"] == {"query": "煤矸石", "topK": 3, "extK": 2}

    @pytest.mark.asyncio
    async def test_http_error_propagates(self) -> None:
        client = TextbookSearchClient(
            base_url="https://search.example.com",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )

        with pytest.raises(httpx.HTTPStatusError):
            await client.search("煤矸石", AUTH, top_k=1, ext_k=1)


class TestDataSynthesisWorkflow:
    @pytest.mark.asyncio
    async def test_analyses_every_chunk(self) -> None:
        search_client = MagicMock()
        search_client.search = AsyncMock(return_value=[{"content": "片段一"}, {"content": "片段二"}])
        llm = make_fake_llm({ChunkAnalysis: [analysis("问题一"), analysis("问题二")]})
        workflow = DataSynthesisWorkflow(llm, search_client)

        result = await workflow.synthesize("煤矸石", AUTH)

        assert sorted(item["question"] for item in result) == ["问题一", "问题二"]
        search_client.search.assert_awaited_once_with("煤矸石", AUTH, top_k=3, ext_k=2)

        chunk_texts = sorted(
            call.args[0][1].content
            for call in llm.structured_runners[ChunkAnalysis].ainvoke.call_args_list
        )
        assert chunk_texts == ["片段一", "片段二"]

    @pytest.mark.asyncio
    async def test_no_chunks(self) -> None:
        search_client = MagicMock()
        search_client.search = AsyncMock(return_value=[])
        workflow = DataSynthesisWorkflow(make_fake_llm(), search_client)

        assert await workflow.synthesize("无结果", AUTH) == []
