#Filename: deeplink.py
"""
DEEP LINK HANDOFF
Rewrites an authentication-app URL so the app returns to us when it is done:
the last query parameter is dropped and redirect=bankid:/// appended.
Everything else in the URL is kept as the raw text it arrived as.
"""

from urllib.parse import urlsplit

from bridge_common import DeepLinkError, DEEP_LINK_REDIRECT_PARAM, DEEP_LINK_REDIRECT_VALUE

def rewrite_bankid_url(raw_url: str) -> str:
    """
    Returns the rewritten URL. A URL without a query string is returned unchanged.
    Raises DeepLinkError if the URL cannot be parsed.
    """
    if not isinstance(raw_url, str) or not raw_url.strip():
        raise DeepLinkError("Deep link URL is empty")
    url = raw_url.strip()
    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise DeepLinkError(f"Unparsable deep link: {e}") from e
    if not parts.scheme:
        raise DeepLinkError(f"Deep link has no scheme: {raw_url!r}")

    if not parts.query:
        return raw_url

    # Raw text, so an empty authority (bankid:///) and existing escapes survive
    base, hash_sep, fragment = url.partition('#')
    prefix, _, query = base.partition('?')

    cut = query.rfind('&')
    kept = query[:cut + 1] if cut >= 0 else ''
    rewritten = f"{prefix}?{kept}{DEEP_LINK_REDIRECT_PARAM}={DEEP_LINK_REDIRECT_VALUE}"
    return rewritten + hash_sep + fragment
