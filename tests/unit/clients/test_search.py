"""
Unit tests for clients.search module.

Tests:
- ElasticsearchConfig defaults
- build_query() with and without a time window
- find() request shape, hit conversion and error mapping
- The zero-hit diagnostic probe
- Session ownership
"""

from __future__ import annotations

import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from pydantic import SecretStr

from newsbridge.clients.search import ElasticsearchConfig, SourceQuery, _total_hits
from newsbridge.core.exceptions import SourceQueryError
from newsbridge.services.connector.configs import CityConfig


SINCE = datetime.datetime(2026, 3, 13, 12, 0, tzinfo=datetime.UTC)


def _hits(*docs: dict, total: int | None = None) -> dict:
    hits = [{"_id": f"es-{i}", "_source": doc} for i, doc in enumerate(docs)]
    return {"hits": {"total": {"value": len(hits) if total is None else total}, "hits": hits}}


@pytest.fixture
def es_config() -> ElasticsearchConfig:
    return ElasticsearchConfig(url="http://es:9200/")


@pytest.fixture
def session() -> MagicMock:
    return MagicMock()


@pytest.fixture
def query(es_config: ElasticsearchConfig, session: MagicMock) -> SourceQuery:
    return SourceQuery(es_config, keywords=["arrest", "police"], size=50, session=session)


# ============================================================================
# Config
# ============================================================================


class TestElasticsearchConfig:
    def test_defaults(self) -> None:
        config = ElasticsearchConfig(url="http://localhost:9200")
        assert config.username == ""
        assert config.timeout == 30.0

    def test_url_required(self) -> None:
        with pytest.raises(ValueError):
            ElasticsearchConfig(url="")


# ============================================================================
# build_query()
# ============================================================================


class TestBuildQuery:
    """Search body construction."""

    def test_with_since(self, query: SourceQuery) -> None:
        body = query.build_query(SINCE)
        must = body["query"]["bool"]["must"]

        assert must[0] == {"range": {"published_at": {"gte": "2026-03-13T12:00:00+00:00"}}}
        assert must[1]["multi_match"] == {
            "query": "arrest police",
            "fields": ["title^2", "content"],
            "type": "best_fields",
            "operator": "or",
        }
        assert body["size"] == 50
        assert body["sort"] == [{"published_at": {"order": "desc"}}]

    def test_without_since_omits_range(self, query: SourceQuery) -> None:
        must = query.build_query(None)["query"]["bool"]["must"]
        assert len(must) == 1
        assert "multi_match" in must[0]


# ============================================================================
# find()
# ============================================================================


class TestFind:
    """Searching a city's index."""

    async def test_posts_to_default_index(
        self, query: SourceQuery, session: MagicMock, make_response, city: CityConfig
    ) -> None:
        session.post.return_value = make_response(
            body=_hits({"id": "article-a", "title": "Police arrest suspect"})
        )

        articles = await query.find(city, SINCE)

        url = session.post.call_args.args[0]
        assert url == "http://es:9200/sudbury_articles/_search"
        assert session.post.call_args.kwargs["json"] == query.build_query(SINCE)
        assert [a.id for a in articles] == ["article-a"]
        assert articles[0].title == "Police arrest suspect"

    async def test_uses_configured_index(
        self, query: SourceQuery, session: MagicMock, make_response
    ) -> None:
        city = CityConfig(name="timmins", index="timmins_news", group_id="g-1")
        session.post.return_value = make_response(body=_hits({"title": "x"}))

        await query.find(city, None)

        assert session.post.call_args.args[0] == "http://es:9200/timmins_news/_search"

    async def test_hit_without_id_skipped(
        self, query: SourceQuery, session: MagicMock, make_response, city: CityConfig
    ) -> None:
        body = {
            "hits": {
                "total": {"value": 2},
                "hits": [{"_source": {"title": "orphan"}}, {"_id": "es-9", "_source": {}}],
            }
        }
        session.post.return_value = make_response(body=body)

        with patch.object(query._logger, "warning") as mock_warning:
            articles = await query.find(city, None)

        assert [a.id for a in articles] == ["es-9"]
        assert mock_warning.call_args.args[0] == "hit_skipped"

    @pytest.mark.parametrize(
        "bad_hit",
        [{"_id": "es-bad", "_source": ["police"]}, "police"],
        ids=["list_source", "string_hit"],
    )
    async def test_malformed_hit_skipped_others_kept(
        self,
        query: SourceQuery,
        session: MagicMock,
        make_response,
        city: CityConfig,
        bad_hit: object,
    ) -> None:
        body = {
            "hits": {
                "total": {"value": 2},
                "hits": [
                    {"_id": "good", "_source": {"title": "Police arrest suspect"}},
                    bad_hit,
                ],
            }
        }
        session.post.return_value = make_response(body=body)

        articles = await query.find(city, None)

        assert [a.id for a in articles] == ["good"]

    async def test_out_of_range_timestamp_kept_without_date(
        self, query: SourceQuery, session: MagicMock, make_response, city: CityConfig
    ) -> None:
        session.post.return_value = make_response(
            body=_hits(
                {"id": "good", "title": "Police arrest suspect"},
                {"id": "far-future", "title": "Police chase", "published_at": 10**25},
            )
        )

        articles = await query.find(city, None)

        assert [a.id for a in articles] == ["good", "far-future"]
        assert articles[1].published_at is None

    async def test_non_2xx_with_json_body(
        self, query: SourceQuery, session: MagicMock, make_response, city: CityConfig
    ) -> None:
        session.post.return_value = make_response(
            status=404, body={"error": {"type": "index_not_found_exception"}}, reason="Not Found"
        )

        with pytest.raises(SourceQueryError, match="elasticsearch error: ") as exc_info:
            await query.find(city, None)

        assert exc_info.value.status == 404
        assert exc_info.value.index == "sudbury_articles"
        assert "index_not_found_exception" in str(exc_info.value)

    async def test_non_2xx_without_json_body(
        self, query: SourceQuery, session: MagicMock, make_response, city: CityConfig
    ) -> None:
        session.post.return_value = make_response(
            status=503, body=b"<html>down</html>", reason="Service Unavailable"
        )

        with pytest.raises(
            SourceQueryError, match="elasticsearch error response: 503 Service Unavailable"
        ):
            await query.find(city, None)

    async def test_transport_error(
        self, query: SourceQuery, session: MagicMock, city: CityConfig
    ) -> None:
        session.post.side_effect = aiohttp.ClientConnectionError("connection refused")

        with pytest.raises(SourceQueryError, match="search error: connection refused"):
            await query.find(city, None)

    async def test_undecodable_body(
        self, query: SourceQuery, session: MagicMock, make_response, city: CityConfig
    ) -> None:
        session.post.return_value = make_response(body=b"not json")

        with pytest.raises(SourceQueryError, match="decode response"):
            await query.find(city, None)

    async def test_non_object_body(
        self, query: SourceQuery, session: MagicMock, make_response, city: CityConfig
    ) -> None:
        session.post.return_value = make_response(body=[1, 2])

        with pytest.raises(SourceQueryError, match="expected object, got list"):
            await query.find(city, None)


# ============================================================================
# Zero-hit probe
# ============================================================================


class TestProbe:
    """Diagnostic match_all probe on zero hits."""

    async def test_empty_index_warns(
        self, query: SourceQuery, session: MagicMock, make_response, city: CityConfig
    ) -> None:
        session.post.side_effect = [
            make_response(body=_hits()),
            make_response(body=_hits(total=0)),
        ]

        with patch.object(query._logger, "warning") as mock_warning:
            articles = await query.find(city, SINCE)

        assert articles == []
        assert session.post.call_count == 2
        assert session.post.call_args.kwargs["json"] == {"query": {"match_all": {}}, "size": 1}
        assert mock_warning.call_args.args[0] == "index_empty"

    async def test_no_keyword_matches_logs_info(
        self, query: SourceQuery, session: MagicMock, make_response, city: CityConfig
    ) -> None:
        session.post.side_effect = [
            make_response(body=_hits()),
            make_response(body=_hits(total=1234)),
        ]

        with patch.object(query._logger, "info") as mock_info:
            await query.find(city, SINCE)

        events = [c.args[0] for c in mock_info.call_args_list]
        assert events == ["articles_found", "no_keyword_matches"]
        assert mock_info.call_args.kwargs["documents"] == 1234

    async def test_probe_failure_does_not_raise(
        self, query: SourceQuery, session: MagicMock, make_response, city: CityConfig
    ) -> None:
        session.post.side_effect = [
            make_response(body=_hits()),
            make_response(status=500, body=b"", reason="Internal Server Error"),
        ]

        assert await query.find(city, SINCE) == []

    async def test_no_probe_when_hits_found(
        self, query: SourceQuery, session: MagicMock, make_response, city: CityConfig
    ) -> None:
        session.post.return_value = make_response(body=_hits({"title": "x"}))
        await query.find(city, SINCE)
        assert session.post.call_count == 1


# ============================================================================
# _total_hits()
# ============================================================================


class TestTotalHits:
    @pytest.mark.parametrize(
        ("hits", "expected"),
        [
            ({"total": {"value": 7, "relation": "eq"}}, 7),
            ({"total": 3}, 3),
            ({}, 0),
            ({"total": None}, 0),
            ({"total": "many"}, 0),
        ],
    )
    def test_forms(self, hits: dict, expected: int) -> None:
        assert _total_hits(hits) == expected


# ============================================================================
# Session ownership
# ============================================================================


class TestSession:
    async def test_injected_session_not_closed(
        self, query: SourceQuery, session: MagicMock
    ) -> None:
        session.close = AsyncMock()
        async with query:
            pass
        session.close.assert_not_awaited()

    async def test_owned_session_created_with_auth(self, es_config: ElasticsearchConfig) -> None:
        config = es_config.model_copy(
            update={"username": "elastic", "password": SecretStr("changeme")}
        )
        query = SourceQuery(config, keywords=["arrest"])

        with patch("newsbridge.clients.search.aiohttp.ClientSession") as mock_cls:
            mock_cls.return_value.close = AsyncMock()
            async with query:
                pass

        auth = mock_cls.call_args.kwargs["auth"]
        assert auth.login == "elastic"
        assert auth.password == "changeme"
        mock_cls.return_value.close.assert_awaited_once()
