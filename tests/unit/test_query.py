"""Unit tests for the query builders: BaseQuery, Query, RawQuery."""

import pytest


class TestBaseQuery:
    """Test select, sort and paging shared by all queries."""

    def test_empty_query_serializes_to_empty_body(self):
        """Test Query.create() has no query and no aggs key."""
        from elastic_repository.core.search.query import Query

        assert Query.create().to_dict() == {}

    def test_select_dedup_keeps_order(self):
        """Test duplicate select fields are dropped in order."""
        from elastic_repository.core.search.query import Query

        assert Query.create().select(["foo", "bar", "foo"]).to_dict() == {"_source": ["foo", "bar"]}

    def test_select_empty_disables_source(self):
        """Test empty select sends _source false."""
        from elastic_repository.core.search.query import Query

        assert Query.create().select([]).to_dict() == {"_source": False}

    def test_sort_same_field_overrides(self):
        """Test sorting a field twice keeps the last order, in its first position."""
        from elastic_repository.core.search.query import Query, SortOrder

        query = Query.create().sort("a").sort("b", SortOrder.DESC).sort("a", "desc", {"missing": "_last"})

        sort = query.to_dict()["sort"]
        assert list(sort) == ["a", "b"]
        assert sort == {"a": {"order": "desc", "missing": "_last"}, "b": {"order": "desc"}}

    def test_sort_mapping_form(self):
        """Test sort accepts {field: {order, options}}."""
        from elastic_repository.core.search.query import Query

        query = Query.create().sort(
            {"a": {"order": "desc"}, "b": {"options": {"mode": "avg"}}}
        )

        assert query.to_dict()["sort"] == {
            "a": {"order": "desc"},
            "b": {"order": "asc", "mode": "avg"},
        }

    def test_invalid_sort_order(self):
        """Test invalid sort direction is rejected."""
        from elastic_repository.core.errors import InvalidSortOrderError
        from elastic_repository.core.search.query import Query

        with pytest.raises(InvalidSortOrderError):
            Query.create().sort("a", "sideways")

    def test_limit_and_skip_override(self):
        """Test calling limit/skip again overrides the previous value."""
        from elastic_repository.core.search.query import Query

        query = Query.create().limit(10).limit(20).skip(5).skip(40)

        assert query.to_dict() == {"size": 20, "from": 40}
        assert query.get_limit() == 20
        assert query.get_offset() == 40


class TestQuery:
    """Test full Query assembly."""

    def test_end_to_end_example(self):
        """Test filter, select, sort and limit together."""
        from elastic_repository.core.search.criteria import Filter
        from elastic_repository.core.search.query import Query

        query = Query.create(Filter.create("status", "active")).select(["name"]).sort("name").limit(10)

        assert query.to_dict() == {
            "query": {"bool": {"filter": {"bool": {"must": [{"term": {"status": "active"}}]}}}},
            "_source": ["name"],
            "sort": {"name": {"order": "asc"}},
            "size": 10,
        }

    def test_filters_always_wrapped_in_must(self):
        """Test one and many filters share the same bool.filter.bool.must shape."""
        from elastic_repository.core.search.criteria import Filter
        from elastic_repository.core.search.query import Query

        one = Query.create(Filter.create("a", 1)).to_dict()
        many = Query.create(*[Filter.create(f"f{i}", i) for i in range(5)]).to_dict()

        assert one["query"]["bool"]["filter"]["bool"]["must"] == [{"term": {"a": 1}}]
        assert len(many["query"]["bool"]["filter"]["bool"]["must"]) == 5

    def test_should_searches_have_minimum_should_match(self):
        """Test default search operator adds minimum_should_match."""
        from elastic_repository.core.search.criteria import Search
        from elastic_repository.core.search.query import Query

        query = Query.create(Search.create(["title"], "foo"))

        assert query.to_dict() == {
            "query": {
                "bool": {
                    "should": [{"query_string": {"fields": ["title"], "query": "foo"}}],
                    "minimum_should_match": 1,
                }
            }
        }

    def test_must_searches_have_no_minimum(self):
        """Test must operator drops minimum_should_match."""
        from elastic_repository.core.search.criteria import Search
        from elastic_repository.core.search.query import Query

        query = Query.create(Search.create(["title"], "foo")).set_search_operator("must")

        assert query.to_dict() == {
            "query": {"bool": {"must": [{"query_string": {"fields": ["title"], "query": "foo"}}]}}
        }

    def test_searches_and_filters_share_bool(self):
        """Test filters and searches coexist under one bool clause."""
        from elastic_repository.core.search.criteria import Filter, Search
        from elastic_repository.core.search.query import Query

        query = Query.create(Filter.create("a", 1), Search.create(["title"], "foo", Search.MATCH))

        assert query.to_dict() == {
            "query": {
                "bool": {
                    "should": [{"match": {"title": {"query": "foo"}}}],
                    "filter": {"bool": {"must": [{"term": {"a": 1}}]}},
                    "minimum_should_match": 1,
                }
            }
        }

    def test_children_are_routed_by_kind(self):
        """Test constructor routes filters, searches and aggregations."""
        from elastic_repository.core.search.aggregations import Aggregation, Metric
        from elastic_repository.core.search.criteria import Filter, Must, Search
        from elastic_repository.core.search.query import Query

        f = Filter.create("a", 1)
        b = Must.create(Filter.create("b", 2))
        s = Search.create(["c"], "x")
        agg = Aggregation.create("d", Metric.SUM, "sum_d")

        query = Query.create(f, None, s, agg, b)

        assert query.filters == [f, b]
        assert query.searches == [s]
        assert query.aggregations == [agg]

    def test_unknown_child_reports_argument_position(self):
        """Test unknown child types are reported by position."""
        from elastic_repository.core.errors import UnknownChildArgumentTypeError
        from elastic_repository.core.search.criteria import Filter
        from elastic_repository.core.search.query import Query

        with pytest.raises(UnknownChildArgumentTypeError, match="Argument #0 is of unknown type"):
            Query.create(object())

        with pytest.raises(UnknownChildArgumentTypeError, match="Argument #1 is of unknown type"):
            Query.create(Filter.create("field", "value"), "not a criterion")

    def test_search_rejects_filter(self):
        """Test search() only accepts search, bool or nested criteria."""
        from elastic_repository.core.errors import InvalidSearchArgumentError
        from elastic_repository.core.search.criteria import Filter
        from elastic_repository.core.search.query import Query

        with pytest.raises(InvalidSearchArgumentError, match=r"Argument \$search must be one of \["):
            Query.create().search(Filter.create("field", "value"))

    def test_where_and_aggregate(self):
        """Test where() adds a filter and aggregate() an aggregation."""
        from elastic_repository.core.search.aggregations import Aggregation, Metric
        from elastic_repository.core.search.criteria import Filter
        from elastic_repository.core.search.query import Query

        query = (
            Query.create()
            .where(Filter.create("a", 1))
            .aggregate(Aggregation.create("price", Metric.AVG, "avg_price"))
            .aggregate(Aggregation.create("price", Metric.MAX, "max_price"))
        )

        body = query.to_dict()
        assert body["aggs"] == {
            "avg_price": {"avg": {"field": "price"}},
            "max_price": {"max": {"field": "price"}},
        }
        assert body["query"]["bool"]["filter"]["bool"]["must"] == [{"term": {"a": 1}}]

    def test_min_score(self):
        """Test min_score is only emitted when set."""
        from elastic_repository.core.search.query import Query

        query = Query.create()
        assert query.get_option(Query.OPTION_MIN_SCORE) is None
        assert "min_score" not in query.to_dict()

        query.set_min_score(42)
        assert query.get_option(Query.OPTION_MIN_SCORE) == 42
        assert query.to_dict() == {"min_score": 42}

    def test_search_operator(self):
        """Test search operator accepts must/should only."""
        from elastic_repository.core.errors import InvalidSearchOperatorError
        from elastic_repository.core.search.query import Query

        query = Query.create()
        assert query.get_search_operator() == "should"
        assert query.set_search_operator("must").get_search_operator() == "must"

        with pytest.raises(InvalidSearchOperatorError, match="The value 'must_not' is not valid."):
            Query.create().set_search_operator("must_not")

    def test_unknown_option(self):
        """Test unknown option names are rejected."""
        from elastic_repository.core.errors import UnknownOptionError
        from elastic_repository.core.search.query import Query

        with pytest.raises(UnknownOptionError):
            Query.create().set_option("boost", 2)
        with pytest.raises(UnknownOptionError):
            Query.create().get_option("boost")


class TestNestedQuery:
    """Test nested sub-queries."""

    def test_create_nested_options(self):
        """Test create_nested sets the path and nothing else."""
        from elastic_repository.core.search.criteria import Filter
        from elastic_repository.core.search.query import Query

        query = Query.create_nested("my_field", Filter.create("my_field.subfield", "foobar"))

        assert query.get_option(Query.OPTION_PATH) == "my_field"
        assert query.get_option(Query.OPTION_SCORE_MODE) is None
        assert query.get_option(Query.OPTION_IGNORE_UNMAPPED) is None

    def test_nested_query_as_filter(self):
        """Test nested query passed to create() lands among the filters."""
        from elastic_repository.core.search.criteria import Filter
        from elastic_repository.core.search.query import Query

        query = Query.create(
            Query.create_nested("my_field", Filter.create("my_field.subfield", "foobar"))
            .set_option(Query.OPTION_SCORE_MODE, "max")
            .set_option(Query.OPTION_IGNORE_UNMAPPED, True)
        )

        assert query.to_dict() == {
            "query": {
                "bool": {
                    "filter": {
                        "bool": {
                            "must": [
                                {
                                    "nested": {
                                        "path": "my_field",
                                        "score_mode": "max",
                                        "ignore_unmapped": True,
                                        "query": {
                                            "bool": {
                                                "filter": {
                                                    "bool": {
                                                        "must": [
                                                            {"term": {"my_field.subfield": "foobar"}}
                                                        ]
                                                    }
                                                }
                                            }
                                        },
                                    }
                                }
                            ]
                        }
                    }
                }
            }
        }

    def test_nested_query_as_search(self):
        """Test nested query passed to search() lands among the searches."""
        from elastic_repository.core.search.criteria import Filter
        from elastic_repository.core.search.query import Query

        query = Query.create().search(
            Query.create_nested("my_field", Filter.create("my_field.subfield", "foobar"))
        )

        assert query.to_dict() == {
            "query": {
                "bool": {
                    "should": [
                        {
                            "nested": {
                                "path": "my_field",
                                "query": {
                                    "bool": {
                                        "filter": {
                                            "bool": {
                                                "must": [{"term": {"my_field.subfield": "foobar"}}]
                                            }
                                        }
                                    }
                                },
                            }
                        }
                    ],
                    "minimum_should_match": 1,
                }
            }
        }


class TestRawQuery:
    """Test RawQuery passthrough."""

    def test_raw_body_with_base_fields(self):
        """Test raw body is merged with select, sort and paging."""
        from elastic_repository.core.search.query import RawQuery

        query = RawQuery.create({"query": {"match_all": {}}}).select(["a"]).sort("a", "desc").limit(5).skip(10)

        assert query.to_dict() == {
            "query": {"match_all": {}},
            "_source": ["a"],
            "sort": {"a": {"order": "desc"}},
            "size": 5,
            "from": 10,
        }

    def test_base_fields_win_on_collision(self):
        """Test limit overrides a size given in the raw body."""
        from elastic_repository.core.search.query import RawQuery

        assert RawQuery.create({"size": 100}).limit(0).to_dict() == {"size": 0}

    def test_aggregations_merge_with_raw_aggs(self):
        """Test aggregate() adds to raw aggs."""
        from elastic_repository.core.search.aggregations import Aggregation, Metric
        from elastic_repository.core.search.query import RawQuery

        query = RawQuery.create({"aggs": {"raw": {"max": {"field": "x"}}}}).aggregate(
            Aggregation.create("y", Metric.MIN, "min_y")
        )

        assert query.to_dict() == {
            "aggs": {"raw": {"max": {"field": "x"}}, "min_y": {"min": {"field": "y"}}}
        }


class TestQueryChildValidation:
    """Test which builders may be placed inside a query."""

    def test_base_query_is_abstract(self):
        """Test BaseQuery cannot be instantiated without to_dict."""
        from elastic_repository.core.search.query import BaseQuery

        with pytest.raises(TypeError):
            BaseQuery()

    def test_plain_query_is_not_a_child(self):
        """Test a query without a nested path is rejected as filter or search."""
        from elastic_repository.core.errors import InvalidSearchArgumentError, UnknownChildArgumentTypeError
        from elastic_repository.core.search.criteria import Filter
        from elastic_repository.core.search.query import Query

        with pytest.raises(UnknownChildArgumentTypeError, match="Argument #1 is of unknown type"):
            Query.create(Filter.create("a", 1), Query.create())

        with pytest.raises(InvalidSearchArgumentError):
            Query.create().search(Query.create(Filter.create("a", 1)))

    def test_composite_builder_is_not_an_aggregation(self):
        """Test aggregate() refuses a composite builder, which renders a whole body."""
        from elastic_repository.core.errors import UnknownChildArgumentTypeError
        from elastic_repository.core.search.aggregations import CompositeAggregationBuilder
        from elastic_repository.core.search.query import Query

        builder = CompositeAggregationBuilder.create().with_name("agg")

        with pytest.raises(UnknownChildArgumentTypeError):
            Query.create().aggregate(builder)
        with pytest.raises(UnknownChildArgumentTypeError):
            Query.create(builder)
