import pytest

from bridge_common import DeepLinkError
from deeplink import rewrite_bankid_url

class TestRewriteBankIdUrl:
    def test_replaces_last_query_parameter(self):
        url = "https://app.bankid.com/?autostarttoken=abc-123&redirect=null"
        assert rewrite_bankid_url(url) == "https://app.bankid.com/?autostarttoken=abc-123&redirect=bankid:///"

    def test_only_the_last_parameter_is_dropped(self):
        url = "https://app.bankid.com/start?a=1&b=2&c=3"
        assert rewrite_bankid_url(url) == "https://app.bankid.com/start?a=1&b=2&redirect=bankid:///"

    def test_single_parameter(self):
        assert rewrite_bankid_url("https://x.example/?a=1") == "https://x.example/?redirect=bankid:///"

    def test_fragment_is_kept(self):
        assert rewrite_bankid_url("https://x.example/p?a=1&b=2#top") == "https://x.example/p?a=1&redirect=bankid:///#top"

    def test_without_query_is_unchanged(self):
        assert rewrite_bankid_url("https://x.example/path") == "https://x.example/path"

    @pytest.mark.parametrize("bad", ["", "   ", "no-scheme/path?a=1", None, "http://[::1/?a=1"])
    def test_unusable_urls(self, bad):
        with pytest.raises(DeepLinkError):
            rewrite_bankid_url(bad)

    def test_bankid_scheme_keeps_empty_authority(self):
        url = "bankid:///?autostarttoken=abc&redirect=null"
        assert rewrite_bankid_url(url) == "bankid:///?autostarttoken=abc&redirect=bankid:///"

    def test_kept_parameters_are_not_reencoded(self):
        url = "bankid:///?autostarttoken=a+b%2Fc&redirect=null"
        assert rewrite_bankid_url(url) == "bankid:///?autostarttoken=a+b%2Fc&redirect=bankid:///"
