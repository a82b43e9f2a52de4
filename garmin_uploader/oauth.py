"""OAuth1 request signing for the Garmin Connect OAuth service.

Signing itself is delegated to ``oauthlib``; this module only prepares the
URL and form body so the signature covers exactly what is sent.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlencode

from oauthlib.oauth1 import Client as OAuth1Client

from .models import OAuth1Token

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class SignedRequest:
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None


class OAuth1Signer:
    """HMAC-SHA1 signer bound to a consumer key/secret pair.

    Parameters
    ----------
    consumer_key: str
        Long-lived consumer key of the Garmin Connect mobile app.
    consumer_secret: str
        Matching consumer secret.
    """

    def __init__(self, consumer_key: str, consumer_secret: str) -> None:
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret

    def sign(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        token: OAuth1Token | None = None,
        form: Mapping[str, str] | None = None,
    ) -> SignedRequest:
        if params:
            url = f"{url}?{urlencode(params)}"
        client = OAuth1Client(
            self.consumer_key,
            client_secret=self.consumer_secret,
            resource_owner_key=token.token if token else None,
            resource_owner_secret=token.secret if token else None,
        )
        body = None
        headers: dict[str, str] = {}
        if form:
            body = urlencode(form)
            headers["Content-Type"] = FORM_CONTENT_TYPE
        signed_url, signed_headers, _ = client.sign(url, http_method=method, body=body, headers=headers)
        return SignedRequest(url=signed_url, headers=dict(signed_headers), body=body)


def parse_oauth1_response(text: str) -> OAuth1Token:
    """Parse the urlencoded body of the ``preauthorized`` endpoint.

    Raises ``KeyError`` when the token or secret is missing.
    """
    values = {k: v[0] for k, v in parse_qs(text.strip()).items()}
    return OAuth1Token(
        token=values["oauth_token"],
        secret=values["oauth_token_secret"],
        mfa_token=values.get("mfa_token"),
    )
