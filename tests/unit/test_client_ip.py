"""
Unit tests for client address detection.
"""

import pytest
from starlette.requests import Request

from koban.config import settings
from koban.core.client_ip import get_client_ip, get_ip_variants, is_private_ip, normalize_ip


def make_request(headers: dict[str, str] | None = None, client: tuple[str, int] | None = ("10.0.0.5", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


@pytest.mark.unit
class TestNormalizeIp:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("8.8.8.8:443", "8.8.8.8"),
            ("[2606:4700::1111]:8080", "2606:4700::1111"),
            ("::ffff:8.8.8.8", "8.8.8.8"),
            ('"1.1.1.1"', "1.1.1.1"),
            ("  9.9.9.9 ", "9.9.9.9"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_ip(raw) == expected

    @pytest.mark.parametrize(
        "ip",
        ["127.0.0.1", "::1", "10.1.2.3", "172.16.0.1", "172.31.255.255", "192.168.0.1", "169.254.1.1", "fd00::1", "fe80::1"],
    )
    def test_private_ranges(self, ip):
        assert is_private_ip(ip) is True

    @pytest.mark.parametrize("ip", ["8.8.8.8", "1.1.1.1", "172.32.0.1", "2606:4700::1111"])
    def test_public_addresses(self, ip):
        assert is_private_ip(ip) is False


@pytest.mark.unit
class TestGetClientIp:

    def test_ignores_proxy_headers_by_default(self):
        request = make_request(
            {"X-Forwarded-For": "8.8.8.8", "CF-Connecting-IP": "1.1.1.1"},
            client=("127.0.0.1", 1),
        )

        assert get_client_ip(request, "public", trust_headers=False) == "127.0.0.1"
        assert get_ip_variants(request, "public", trust_headers=False) == {
            "public_ip": None,
            "private_ip": "127.0.0.1",
        }

    def test_setting_controls_header_trust(self, monkeypatch):
        request = make_request({"X-Forwarded-For": "8.8.8.8"}, client=("127.0.0.1", 1))

        monkeypatch.setattr(settings, "trust_proxy_headers", False)
        assert get_client_ip(request, "public") == "127.0.0.1"

        monkeypatch.setattr(settings, "trust_proxy_headers", True)
        assert get_client_ip(request, "public") == "8.8.8.8"

    def test_prefers_public_address_from_forwarded_for(self):
        request = make_request({"X-Forwarded-For": "10.0.0.1, 8.8.8.8"}, client=("127.0.0.1", 1))

        assert get_client_ip(request, "public", trust_headers=True) == "8.8.8.8"

    def test_cdn_header_comes_before_forwarded_for(self):
        request = make_request({"CF-Connecting-IP": "1.1.1.1", "X-Forwarded-For": "8.8.8.8"})

        assert get_client_ip(request, "public", trust_headers=True) == "1.1.1.1"

    def test_forwarded_header_with_ipv6_and_port(self):
        request = make_request({"Forwarded": 'for="[2606:4700::1111]:443";proto=https'})

        assert get_client_ip(request, "public", trust_headers=True) == "2606:4700::1111"

    def test_forwarded_header_list(self):
        request = make_request({"Forwarded": "for=192.168.1.2, for=8.8.4.4:1234"})

        assert get_client_ip(request, "public", trust_headers=True) == "8.8.4.4"

    def test_falls_back_to_socket_address(self):
        request = make_request(client=("192.168.1.10", 4000))

        assert get_client_ip(request, "public", trust_headers=True) == "192.168.1.10"

    def test_private_preference_uses_socket_first(self):
        request = make_request({"X-Forwarded-For": "8.8.8.8"}, client=("10.0.0.5", 4000))

        assert get_client_ip(request, "private", trust_headers=True) == "10.0.0.5"

    def test_unknown_when_nothing_parses(self):
        request = make_request({"X-Real-IP": "garbage"}, client=None)

        assert get_client_ip(request, "public", trust_headers=True) == "unknown"
        assert get_client_ip(request, "public", trust_headers=False) == "unknown"

    def test_variants(self):
        request = make_request({"X-Forwarded-For": "10.0.0.9, 8.8.8.8"}, client=("127.0.0.1", 1))

        assert get_ip_variants(request, "public", trust_headers=True) == {
            "public_ip": "8.8.8.8",
            "private_ip": "10.0.0.9",
        }
