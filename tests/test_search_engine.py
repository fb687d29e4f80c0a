from routefinder.domain.models import Endpoint
from routefinder.search.engine import SearchEngine, score_endpoint


def ep(method_name: str, full_path: str, class_name: str = "Misc", http: str = "GET", file: str = "/src/A.java") -> Endpoint:
    return Endpoint(
        full_path=full_path,
        raw_path=full_path,
        original_method_path=full_path,
        http_method=http,
        class_name=class_name,
        method_name=method_name,
        file_path=file,
    )


def test_empty_or_blank_query_returns_nothing():
    endpoints = [ep("users", "/users")]
    assert SearchEngine().search("", endpoints) == []
    assert SearchEngine().search("   ", endpoints) == []


def test_score_is_additive_across_fields():
    assert score_endpoint(ep("users", "/users", class_name="UsersController"), "users") == 100 + 50 + 40
    assert score_endpoint(ep("x", "/api/users"), "/api/users") == 90
    assert score_endpoint(ep("x", "/api/users"), "/api") == 70
    assert score_endpoint(ep("listUsers", "/x"), "list") == 80
    assert score_endpoint(ep("x", "/y"), "users") == 0


def test_results_are_ranked_by_score():
    by_method_contains = ep("getUser", "/api/items", class_name="ItemController")
    by_method_exact = ep("user", "/x")
    by_path_contains = ep("other", "/user")
    by_class = ep("other", "/y", class_name="UserController")
    unrelated = ep("nothing", "/z")

    results = SearchEngine().search(
        "user",
        [by_method_contains, by_method_exact, by_path_contains, by_class, unrelated],
    )

    assert results == [by_method_exact, by_method_contains, by_path_contains, by_class]


def test_query_is_trimmed_and_case_insensitive():
    endpoints = [ep("getUser", "/api/Users")]
    assert SearchEngine().search("  USER ", endpoints) == SearchEngine().search("user", endpoints)
    assert len(SearchEngine().search("  USER ", endpoints)) == 1


def test_equal_scores_keep_input_order():
    first = ep("a", "/orders/1", class_name="A")
    second = ep("b", "/orders/2", class_name="B")

    assert SearchEngine().search("orders", [first, second]) == [first, second]
    assert SearchEngine().search("orders", [second, first]) == [second, first]


def test_duplicates_across_files_are_collapsed():
    original = ep("list", "/api/orders", class_name="Orders", file="/src/main/Orders.java")
    copy = ep("list", "/api/orders", class_name="Orders", file="/build/generated/Orders.java")
    post = ep("create", "/api/orders", class_name="Orders", http="POST")

    results = SearchEngine().search("orders", [original, copy, post])

    assert [r.file_path for r in results] == ["/src/main/Orders.java", "/src/A.java"]
    assert [r.http_method for r in results] == ["GET", "POST"]


def test_dedup_keeps_the_best_scoring_instance():
    weak = ep("other", "/api/list", class_name="Orders", file="/a/Orders.java")
    strong = ep("list", "/api/list", class_name="Orders", file="/b/Orders.java")

    # same (class, path, verb); the stronger match wins even though it comes later
    (only,) = SearchEngine().search("list", [weak, strong])
    assert only.file_path == "/b/Orders.java"
