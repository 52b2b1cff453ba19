from sshs.searchable import Searchable, fuzzy_match, host_matches, search_hosts
from sshs.ssh_config import Host


def _contains(item, query):
    return query in item


def test_empty_query_matches_everything():
    view = Searchable(["a", "b", "c"], "", _contains)

    assert view.matched_indices == (0, 1, 2)
    assert list(view) == ["a", "b", "c"]


def test_matches_keep_original_order():
    view = Searchable(["xa", "b", "ya", "a"], "a", _contains)

    assert view.matched_indices == (0, 2, 3)
    assert [view[i] for i in range(len(view))] == ["xa", "ya", "a"]


def test_search_is_pure_and_repeatable():
    items = ["alpha", "beta", "gamma"]
    view = Searchable(items, "", _contains)

    view.search("a")
    first = view.matched_indices
    view.search("zzz")
    view.search("a")

    assert view.matched_indices == first
    assert items == ["alpha", "beta", "gamma"]
    assert list(view.all_items()) == items


def test_no_matches():
    view = Searchable(["a"], "z", _contains)

    assert len(view) == 0
    assert list(view) == []
    assert view.query == "z"


def test_fuzzy_match_is_an_ordered_subsequence():
    assert fuzzy_match("production-db", "prdb")
    assert fuzzy_match("Production", "PROD")
    assert not fuzzy_match("production", "dbp")
    assert fuzzy_match("anything", "")


def test_host_matches_name_alias_and_destination():
    host = Host(name="web", aliases=("frontend",), hostname="10.0.0.5")

    assert host_matches(host, "web")
    assert host_matches(host, "front")
    assert host_matches(host, "10.0")
    assert not host_matches(host, "db")


def test_search_hosts():
    hosts = [Host(name="web"), Host(name="db"), Host(name="web2")]

    view = search_hosts(hosts, "web")

    assert [h.name for h in view] == ["web", "web2"]
    assert len(list(view.all_items())) == 3
