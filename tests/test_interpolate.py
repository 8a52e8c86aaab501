from dataclasses import dataclass
from typing import Any, List

import pytest

from querygen import bindvars, interpolate


myArgsQuery = "SELECT * from {{TableName: str}} WHERE id = {{WantId: int}}"


@interpolate.query_params
@dataclass
class myArgsQueryParams:
    TableName: str
    WantId: int

    def format_specifiers(self) -> List[str]:
        return ["%s", "%d"]

    def format_args(self) -> List[Any]:
        return [self.TableName, self.WantId]


def test_do_renders_postgres_bind_vars():
    q = interpolate.do(myArgsQuery, myArgsQueryParams(TableName="T", WantId=1))
    assert q.render() == "SELECT * from $1 WHERE id = $2"
    assert q.args == ["T", 1]


def test_other_bind_var_styles():
    q = interpolate.do(myArgsQuery, myArgsQueryParams("T", 1))
    assert q.render("simple") == "SELECT * from ? WHERE id = ?"
    assert q.render("sqlserver") == "SELECT * from @p1 WHERE id = @p2"
    assert q.render("oracle") == "SELECT * from :1 WHERE id = :2"


def test_literal_percent_is_kept():
    q = interpolate.Query("SELECT '100%%' WHERE x = %d", [1])
    assert q.render() == "SELECT '100%' WHERE x = $1"


def test_arg_count_mismatch():
    with pytest.raises(ValueError, match="2 format verbs but 1 arguments"):
        interpolate.Query("%d %s", [1]).render()


def test_query_without_interpolation_is_rejected():
    with pytest.raises(interpolate.QueryDoesntUseInterpolationError):
        interpolate.do("SELECT 1", myArgsQueryParams("T", 1))
    with pytest.raises(ValueError, match="query doesn't use interpolation: SELECT 1"):
        interpolate.must_do("SELECT 1", myArgsQueryParams("T", 1))


def test_marker_checks_the_contract():
    assert isinstance(myArgsQueryParams("T", 1), interpolate.QueryParams)

    class Broken:
        def format_args(self) -> List[Any]:
            return []

    with pytest.raises(TypeError, match="missing format_specifiers"):
        interpolate.query_params(Broken)


def test_unknown_bind_var_style():
    with pytest.raises(KeyError, match="Unknown bind var style"):
        bindvars.get("nope")
    assert {"postgres", "simple", "sqlserver", "oracle"} <= set(bindvars.available())
