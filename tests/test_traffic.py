"""Tests for the traffic aggregator and call filtering."""

import pytest

from streamlens.core.traffic import (
    TrafficAggregator,
    call_search_text,
    canonical_key,
    filter_calls,
    filter_edges,
    matches_status,
    select_call,
)
from streamlens.models.enums import EdgeSort, StatusFilter, Visibility
from streamlens.models.traffic import (
    Correlation,
    EdgeStats,
    ExternalEntity,
    FlowEdgeKey,
    GrpcEdgeKey,
    HttpEdgeKey,
    Peer,
    TrafficCall,
    TrafficEdge,
    Transport,
    UnknownEntity,
    WorkloadEntity,
)

WEB = WorkloadEntity("web")
API = WorkloadEntity("api")


def _edge(route: str, count: int, last_seen: int, **stats) -> TrafficEdge:
    return TrafficEdge(
        key=HttpEdgeKey(WEB, API, "GET", route),
        stats=EdgeStats(count=count, **stats),
        last_seen_ms=last_seen,
    )


def _call(seq: int, status: int | None = 200, **kwargs) -> TrafficCall:
    return TrafficCall(seq=seq, status=status, **kwargs)


class TestCanonicalKey:
    def test_equal_keys_equal_strings(self):
        a = HttpEdgeKey(WorkloadEntity("web"), WorkloadEntity("api"), "GET", "/x")
        b = HttpEdgeKey(WorkloadEntity("web"), WorkloadEntity("api"), "GET", "/x")
        assert canonical_key(a) == canonical_key(b)

    def test_kinds_distinguished(self):
        http = HttpEdgeKey(WEB, API, "users", "get")
        grpc = GrpcEdgeKey(WEB, API, "users", "get")
        assert canonical_key(http) != canonical_key(grpc)

    def test_entity_kinds_distinguished(self):
        a = FlowEdgeKey(WEB, ExternalEntity("1.1.1.1"), Transport(), 443)
        b = FlowEdgeKey(WEB, UnknownEntity(), Transport(), 443)
        assert canonical_key(a) != canonical_key(b)


class TestAggregator:
    def test_update_replaces_by_key(self):
        agg = TrafficAggregator()
        agg.apply_update(_edge("/a", 1, 10))
        agg.apply_update(_edge("/a", 7, 20))
        assert len(agg) == 1
        stored = agg.get_edge(HttpEdgeKey(WEB, API, "GET", "/a"))
        assert stored.stats.count == 7
        assert stored.last_seen_ms == 20

    def test_update_is_last_write_not_sum(self):
        agg = TrafficAggregator()
        agg.apply_update(_edge("/a", 10, 10))
        agg.apply_update(_edge("/a", 3, 5))
        assert agg.ranked_view()[0].stats.count == 3

    def test_snapshot_clears(self):
        agg = TrafficAggregator()
        agg.apply_update(_edge("/old", 1, 1))
        agg.apply_snapshot([_edge("/a", 1, 1), _edge("/b", 2, 2)])
        assert {e.key.route for e in agg.ranked_view()} == {"/a", "/b"}

    def test_ranking_ties_by_last_seen(self):
        agg = TrafficAggregator()
        agg.apply_snapshot([_edge("/old", 5, 100), _edge("/new", 5, 200), _edge("/small", 2, 300)])
        assert [e.key.route for e in agg.ranked_view()] == ["/new", "/old", "/small"]

    def test_ranked_view_capped(self):
        agg = TrafficAggregator(ranked_limit=200)
        agg.apply_snapshot([_edge(f"/{i}", i, i) for i in range(250)])
        view = agg.ranked_view()
        assert len(view) == 200
        assert view[0].stats.count == 249

    def test_ranked_view_is_fresh_list(self):
        agg = TrafficAggregator()
        agg.apply_update(_edge("/a", 1, 1))
        view = agg.ranked_view()
        view.clear()
        assert len(agg.ranked_view()) == 1

    def test_other_sorts(self):
        agg = TrafficAggregator()
        agg.apply_snapshot(
            [
                _edge("/a", 9, 1, errors=0, bytes_in=10, p95_ms=None),
                _edge("/b", 1, 2, errors=4, bytes_in=500, p95_ms=80),
            ]
        )
        assert agg.ranked_view(EdgeSort.ERRORS)[0].key.route == "/b"
        assert agg.ranked_view(EdgeSort.BYTES)[0].key.route == "/b"
        assert agg.ranked_view(EdgeSort.P95)[0].key.route == "/b"
        assert agg.ranked_view(EdgeSort.LAST_SEEN)[0].key.route == "/b"
        assert agg.ranked_view(EdgeSort.COUNT)[0].key.route == "/a"

    def test_call_ring_buffer(self):
        agg = TrafficAggregator(call_limit=3)
        for seq in range(1, 6):
            agg.append_call(_call(seq))
        assert [c.seq for c in agg.calls()] == [3, 4, 5]
        assert [c.seq for c in agg.recent_calls()] == [5, 4, 3]

    def test_replace_calls_keeps_most_recent(self):
        agg = TrafficAggregator(call_limit=2)
        agg.replace_calls([_call(1), _call(2), _call(3)])
        assert [c.seq for c in agg.calls()] == [2, 3]
        assert agg.call_limit == 2


class TestFilterEdges:
    def test_query_matches_labels_and_detail(self):
        edges = [
            _edge("/users", 1, 1),
            TrafficEdge(
                key=FlowEdgeKey(WEB, ExternalEntity("10.0.0.1", "pg.internal"), Transport(), 5432),
                stats=EdgeStats(count=1, visibility=Visibility.L4_FLOW),
                last_seen_ms=1,
            ),
        ]
        assert len(filter_edges(edges, "USERS")) == 1
        assert len(filter_edges(edges, "pg.internal")) == 1
        assert len(filter_edges(edges, "5432")) == 1
        assert len(filter_edges(edges, "  ")) == 2


class TestStatusFilter:
    @pytest.mark.parametrize("flt", ["2xx", "3xx", "4xx", "5xx"])
    def test_missing_status_excluded_from_classes(self, flt):
        assert not matches_status(_call(1, None), flt)

    def test_missing_status_is_error(self):
        assert matches_status(_call(1, None), StatusFilter.ERROR)

    def test_404(self):
        call = _call(1, 404)
        assert matches_status(call, "4xx")
        assert matches_status(call, "error")
        assert not matches_status(call, "2xx")

    def test_boundaries(self):
        assert matches_status(_call(1, 299), "2xx")
        assert not matches_status(_call(1, 300), "2xx")
        assert not matches_status(_call(1, 399), "error")
        assert matches_status(_call(1, 500), "error")

    def test_all(self):
        assert matches_status(_call(1, None), StatusFilter.ALL)


class TestQuery:
    def _rich_call(self) -> TrafficCall:
        return TrafficCall(
            seq=9,
            method="POST",
            path="/orders",
            status=201,
            request_headers=(("Host", "shop.local"),),
            correlation=Correlation(request_id="req-77"),
            peer=Peer(src=WEB, dst=ExternalEntity("10.1.1.1", "payments.example")),
        )

    def test_search_text_fields(self):
        text = call_search_text(self._rich_call())
        for part in ("post", "/orders", "shop.local", "req-77", "web", "payments.example", "201"):
            assert part in text

    def test_query_case_insensitive(self):
        calls = [self._rich_call(), _call(1, 200, method="GET", path="/health")]
        assert [c.seq for c in filter_calls(calls, "all", "PAYMENTS")] == [9]
        assert [c.seq for c in filter_calls(calls, "all", "")] == [9, 1]

    def test_status_and_query_combined(self):
        calls = [self._rich_call(), _call(2, 500, path="/orders")]
        assert [c.seq for c in filter_calls(calls, "5xx", "orders")] == [2]


class TestSelectCall:
    def test_pinned_survives(self):
        calls = [_call(3), _call(2), _call(1)]
        assert select_call(calls, 2).seq == 2

    def test_pinned_filtered_out_falls_back(self):
        assert select_call([_call(3), _call(1)], 2).seq == 3

    def test_empty(self):
        assert select_call([], 2) is None
        assert select_call([], None) is None
