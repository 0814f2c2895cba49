import pytest

from chatdispatch import EndpointConfig, TransportFailed, build_url

EXPECTED = (
    "https://unit.openai.azure.com/openai/deployments/gpt4o-prod/chat/completions"
    "?api-version=2024-10-21"
)


@pytest.mark.parametrize(
    "base",
    [
        "https://unit.openai.azure.com",
        "https://unit.openai.azure.com/",
        "https://unit.openai.azure.com///",
    ],
)
def test_trailing_slashes_are_normalized(base):
    assert build_url(EndpointConfig(base, "gpt4o-prod")) == EXPECTED


def test_existing_path_is_kept_and_query_replaced():
    cfg = EndpointConfig("https://gateway.example.com/azure/?foo=bar", "dep", "2025-01-01")
    assert build_url(cfg) == (
        "https://gateway.example.com/azure/openai/deployments/dep/chat/completions"
        "?api-version=2025-01-01"
    )


def test_deterministic():
    cfg = EndpointConfig("https://unit.openai.azure.com/", "gpt4o-prod")
    assert build_url(cfg) == build_url(cfg)


def test_invalid_base_url():
    with pytest.raises(TransportFailed):
        build_url(EndpointConfig("unit.openai.azure.com", "dep"))
