import pytest

from offcache import Policy, ProxyConfig, Request, RequestClassifier

ORIGIN = "https://app.example.com"


@pytest.fixture()
def classifier() -> RequestClassifier:
    return RequestClassifier(ProxyConfig(origin=ORIGIN))


@pytest.mark.parametrize(
    "url, expected",
    [
        (f"{ORIGIN}/", Policy.CACHE_FIRST_REFRESH),
        (f"{ORIGIN}/index.html", Policy.CACHE_FIRST_REFRESH),
        (f"{ORIGIN}/dashboard?tab=units", Policy.CACHE_FIRST_REFRESH),
        (f"{ORIGIN}/favicon.svg", Policy.CACHE_FIRST_REFRESH),
        (f"{ORIGIN}/assets/index-4f2a.js", Policy.NETWORK_FIRST),
        (f"{ORIGIN}/assets/index-4f2a.CSS", Policy.NETWORK_FIRST),
        (f"{ORIGIN}/assets/app.js?v=3", Policy.NETWORK_FIRST),
        (f"{ORIGIN}/assets/app.json", Policy.CACHE_FIRST_REFRESH),
        (f"{ORIGIN}/api/residents", Policy.PASSTHROUGH),
        (f"{ORIGIN}/auth/callback", Policy.PASSTHROUGH),
        (f"{ORIGIN}/realtime/v1", Policy.PASSTHROUGH),
        ("https://abc.supabase.co/rest/v1/condos", Policy.PASSTHROUGH),
        ("https://ABC.SUPABASE.CO/storage/v1/logo.js", Policy.PASSTHROUGH),
        (f"{ORIGIN}/index.html?next=/author", Policy.CACHE_FIRST_REFRESH),
        (f"{ORIGIN}/assets/app.js?from=/api/", Policy.NETWORK_FIRST),
        (f"{ORIGIN}/login#/auth/callback", Policy.CACHE_FIRST_REFRESH),
        ("https://cdn.example.net/lib.js", Policy.IGNORE),
        ("https://fonts.example.net/", Policy.IGNORE),
        ("http://app.example.com/index.html", Policy.IGNORE),
        ("https://app.example.com:8443/index.html", Policy.IGNORE),
        ("https://app.example.com:443/index.html", Policy.CACHE_FIRST_REFRESH),
    ],
)
def test_get_requests(classifier: RequestClassifier, url: str, expected: Policy) -> None:
    assert classifier.classify(Request(method="GET", url=url)) is expected


@pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE", "HEAD"])
@pytest.mark.parametrize("path", ["/index.html", "/app.js", "/api/units"])
def test_non_get_requests_are_ignored(classifier: RequestClassifier, method: str, path: str) -> None:
    assert classifier.classify(Request(method=method, url=ORIGIN + path)) is Policy.IGNORE


def test_method_is_case_insensitive(classifier: RequestClassifier) -> None:
    assert classifier.classify(Request(method="get", url=f"{ORIGIN}/app.js")) is Policy.NETWORK_FIRST


def test_bypass_metadata(classifier: RequestClassifier) -> None:
    request = Request(method="GET", url=f"{ORIGIN}/index.html", metadata={"offcache_bypass": True})
    assert classifier.classify(request) is Policy.IGNORE


def test_without_origin_everything_is_same_origin() -> None:
    classifier = RequestClassifier(ProxyConfig())

    assert classifier.classify(Request(method="GET", url="https://anywhere.example/app.js")) is Policy.NETWORK_FIRST
    assert classifier.classify(Request(method="GET", url="https://anywhere.example/")) is Policy.CACHE_FIRST_REFRESH


def test_custom_patterns_and_extensions() -> None:
    classifier = RequestClassifier(
        ProxyConfig(origin=ORIGIN, never_cache_patterns=("/graphql",), static_extensions=(".mjs", ".woff2"))
    )

    assert classifier.classify(Request(method="GET", url=f"{ORIGIN}/graphql")) is Policy.PASSTHROUGH
    assert classifier.classify(Request(method="GET", url=f"{ORIGIN}/api/units")) is Policy.CACHE_FIRST_REFRESH
    assert classifier.classify(Request(method="GET", url=f"{ORIGIN}/font.woff2")) is Policy.NETWORK_FIRST
    assert classifier.classify(Request(method="GET", url=f"{ORIGIN}/app.js")) is Policy.CACHE_FIRST_REFRESH


def test_is_never_cache(classifier: RequestClassifier) -> None:
    assert classifier.is_never_cache(f"{ORIGIN}/API/units")
    assert not classifier.is_never_cache(f"{ORIGIN}/index.html")
    assert not classifier.is_never_cache(f"{ORIGIN}/index.html?redirect=/auth/login")
