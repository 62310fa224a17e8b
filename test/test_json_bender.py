from fixreconcile.json_bender import (
    bend,
    S,
    K,
    F,
    Context,
    AsInt,
    AsSortedSet,
    EmptyToNone,
    ShortName,
    SelfLinkV1,
    ForallBend,
)


def test_or_else() -> None:
    assert bend(S("a").or_else(K("b")), {"a": "a"}) == "a"
    assert bend(S("a").or_else(K("b")), {}) == "b"
    assert bend((S("a") >> EmptyToNone).or_else(K("EXTERNAL")), {"a": ""}) == "EXTERNAL"


def test_context() -> None:
    mapping = {"project": Context() >> S("project"), "name": S("name")}
    assert bend(mapping, {"name": "n"}, {"project": "p"}) == {"project": "p", "name": "n"}
    assert bend(mapping, {"name": "n"}) == {"project": None, "name": "n"}


def test_forall() -> None:
    errors = {"error": {"errors": [{"code": "A", "message": "a"}, {"code": "B"}]}}
    assert bend(S("error", "errors") >> ForallBend({"code": S("code")}), errors) == [{"code": "A"}, {"code": "B"}]
    assert bend(S("error", "errors") >> ForallBend({"code": S("code")}), {}) is None


def test_conversions() -> None:
    assert bend(AsInt(), "1000") == 1000
    assert bend(AsInt(), "abc") is None
    assert bend(AsSortedSet(), ["b", "a", "b"]) == ["a", "b"]
    assert bend(AsSortedSet(), None) is None
    assert bend(F(lambda x, y: x + y, 2), 1) == 3


def test_links() -> None:
    link = "https://www.googleapis.com/compute/beta/projects/p/regions/us-east1/subnetworks/s1"
    assert bend(ShortName, link) == "s1"
    assert bend(ShortName, "s1") == "s1"
    assert bend(SelfLinkV1, link) == "https://www.googleapis.com/compute/v1/projects/p/regions/us-east1/subnetworks/s1"
