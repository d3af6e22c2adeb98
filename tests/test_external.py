from pqgateway.constraint import Matcher, MatchType
from pqgateway.external import (
    external_label_names,
    external_label_values,
    match_external_labels,
    sort_unique,
)


EXT = {"foo": "bar", "replica": "r1"}


def test_matcher_on_external_label_is_consumed():
    consumed = Matcher(MatchType.EQUAL, "foo", "bar")
    other = Matcher(MatchType.EQUAL, "baz", "x")
    assert match_external_labels(EXT, [consumed, other]) == [other]


def test_regex_matcher_on_external_label_is_consumed():
    m = Matcher(MatchType.REGEXP, "foo", "b.*")
    assert match_external_labels(EXT, [m]) == []


def test_rejecting_matcher_excludes_everything():
    m = Matcher(MatchType.NOT_EQUAL, "foo", "bar")
    assert match_external_labels(EXT, [m]) is None


def test_no_external_labels_keeps_all_matchers():
    matchers = [Matcher(MatchType.EQUAL, "foo", "bar"), Matcher(MatchType.NOT_REGEXP, "a", "b")]
    assert match_external_labels({}, matchers) == matchers


def test_external_label_values():
    assert external_label_values(EXT, ["replica"], "foo") == "bar"
    assert external_label_values(EXT, ["replica"], "replica") == ""
    assert external_label_values(EXT, ["replica"], "missing") == ""
    assert external_label_values(EXT, [], "replica") == "r1"


def test_external_label_names_skip_replicas():
    assert external_label_names(EXT, ["replica"]) == ["foo"]
    assert external_label_names(EXT, []) == ["foo", "replica"]
    assert external_label_names({}, ["replica"]) == []


def test_sort_unique():
    result = sort_unique(["b", "a", "b", "c", "a"])
    assert result == ["a", "b", "c"]
    assert sort_unique([]) == []