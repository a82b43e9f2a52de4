import logging
import re
import time
from typing import Callable

from .config import ClientConfig
from .diagnostics import DiagnosticsSink
from .enums import AuthStatus
from .errors import AuthenticationError, GarminClientException, MFAStateError, TokenExchangeError, TransportError
from .models import AuthResult, Credentials, OAuth1Token, OAuth2Token
from .oauth import OAuth1Signer, parse_oauth1_response
from .token_store import TokenStore
from .transport import HttpResponse, Transport

logger = logging.getLogger(__name__)

CSRF_RE = re.compile(r'name="_csrf"\s+value="(.+?)"')
TITLE_RE = re.compile(r"<title>(.+?)</title>", re.DOTALL)
TICKET_RE = re.compile(r'embed\?ticket=([^"]+)"')


def extract_continuation_token(body: str) -> str:
    """Return the CSRF value embedded in an SSO sign-in page."""
    match = CSRF_RE.search(body)
    if not match:
        raise AuthenticationError("Could not find CSRF token in SSO page", diagnostic=body[:500])
    return match.group(1)


def extract_ticket(body: str) -> str:
    match = TICKET_RE.search(body)
    if not match:
        raise AuthenticationError("Could not find service ticket in SSO response", diagnostic=body[:500])
    return match.group(1)


def page_title(body: str) -> str:
    match = TITLE_RE.search(body)
    return match.group(1).strip() if match else ""


class AuthFlow:
    """Garmin SSO login followed by the OAuth1 -> OAuth2 exchange.

    ``authenticate`` either finishes the login, stops at an MFA challenge
    (``AuthResult(mfa_requested=True)``) or raises ``AuthenticationError``.
    After an MFA challenge exactly one ``complete_mfa`` call resolves the
    attempt; a new ``authenticate`` abandons it.

    The pending CSRF value and the OAuth1 token are plain instance state.
    One flow must not be driven from several tasks at once.
    """

    EMBED_WIDGET_ID = "gauth-widget"
    MFA_FROM_PAGE = "setupEnterMfaCode"

    def __init__(
        self,
        config: ClientConfig,
        transport: Transport,
        token_store: TokenStore,
        diagnostics: DiagnosticsSink,
        signer: OAuth1Signer | None = None,
        token_extractor: Callable[[str], str] = extract_continuation_token,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.transport = transport
        self.token_store = token_store
        self.diagnostics = diagnostics
        self.signer = signer or OAuth1Signer(config.consumer_key, config.consumer_secret)
        self.extract_token = token_extractor
        self.clock = clock

        self._status = AuthStatus.NOT_AUTHENTICATED
        self._pending_csrf: str | None = None
        self._oauth1: OAuth1Token | None = None
        self._last_url: str | None = None

    @property
    def status(self) -> AuthStatus:
        return self._status

    @property
    def mfa_pending(self) -> bool:
        return self._pending_csrf is not None

    @property
    def sso_embed_url(self) -> str:
        return f"{self.config.sso_url}/embed"

    def _embed_params(self) -> dict[str, str]:
        return {
            "id": self.EMBED_WIDGET_ID,
            "embedWidget": "true",
            "gauthHost": self.config.sso_url,
        }

    def _signin_params(self) -> dict[str, str]:
        embed = self.sso_embed_url
        return {
            **self._embed_params(),
            "gauthHost": embed,
            "service": embed,
            "source": embed,
            "redirectAfterAccountLoginUrl": embed,
            "redirectAfterAccountCreationUrl": embed,
        }

    def _headers(self) -> dict[str, str]:
        headers = {"User-Agent": self.config.user_agent}
        if self._last_url:
            headers["referer"] = self._last_url
        return headers

    async def authenticate(self, credentials: Credentials) -> AuthResult:
        """Run the SSO login with ``credentials``."""
        if self._pending_csrf is not None:
            logger.info("Abandoning pending MFA challenge for a new login")
        self._pending_csrf = None
        self._last_url = None
        self.diagnostics.info(f"Logging in to Garmin Connect as {credentials.identifier}")
        try:
            csrf = await self._start()
            response = await self.transport.post(
                f"{self.config.sso_url}/signin",
                params=self._signin_params(),
                headers=self._headers(),
                data={
                    "username": credentials.identifier,
                    "password": credentials.secret,
                    "embed": "true",
                    "_csrf": csrf,
                },
            )
            self._last_url = response.url
            return await self._handle_signin_response(response, csrf, allow_mfa=True)
        except AuthenticationError:
            self._mark_failed()
            raise
        except GarminClientException as e:
            self._mark_failed()
            raise AuthenticationError(f"Login failed: {e}", diagnostic=e.diagnostic) from e

    async def complete_mfa(self, code: str) -> AuthResult:
        """Answer the pending MFA challenge with ``code``.

        Raises ``MFAStateError`` when no challenge is pending.
        """
        if self._pending_csrf is None:
            raise MFAStateError("No MFA challenge pending; call authenticate() first")
        csrf, self._pending_csrf = self._pending_csrf, None
        self.diagnostics.info("Submitting MFA code")
        try:
            response = await self.transport.post(
                f"{self.config.sso_url}/verifyMFA/loginEnterMfaCode",
                params=self._signin_params(),
                headers=self._headers(),
                data={
                    "mfa-code": code,
                    "embed": "true",
                    "_csrf": csrf,
                    "fromPage": self.MFA_FROM_PAGE,
                },
            )
            self._last_url = response.url
            return await self._handle_signin_response(response, csrf, allow_mfa=False)
        except AuthenticationError:
            self._mark_failed()
            raise
        except GarminClientException as e:
            self._mark_failed()
            raise AuthenticationError(f"Login failed: {e}", diagnostic=e.diagnostic) from e

    async def refresh(self) -> bool:
        """Get a new OAuth2 token from the OAuth1 token of an earlier login.

        Returns False when there is nothing to refresh from or the exchange
        fails; the caller then has to log in again.
        """
        if self._oauth1 is None:
            return False
        try:
            token = await self._exchange_oauth2(self._oauth1)
        except GarminClientException as e:
            self.diagnostics.warning(f"OAuth2 token refresh failed: {e}")
            self._oauth1 = None
            return False
        self.token_store.set(token)
        self._status = AuthStatus.AUTHENTICATED
        self.diagnostics.info("Refreshed OAuth2 token")
        return True

    def resume(self) -> bool:
        """Accept a still-valid token already in the store as a login."""
        if not self.token_store.is_valid():
            return False
        self._status = AuthStatus.AUTHENTICATED
        return True

    async def _start(self) -> str:
        # the embed page sets the SSO cookies the sign-in form expects
        embed = await self.transport.get(self.sso_embed_url, params=self._embed_params(), headers=self._headers())
        self._last_url = embed.url
        signin = await self.transport.get(
            f"{self.config.sso_url}/signin", params=self._signin_params(), headers=self._headers()
        )
        self._last_url = signin.url
        return self.extract_token(signin.text)

    async def _handle_signin_response(self, response: HttpResponse, csrf: str, allow_mfa: bool) -> AuthResult:
        title = page_title(response.text)
        if "MFA" in title:
            if not allow_mfa:
                raise AuthenticationError("Garmin requested another MFA code", diagnostic=title)
            try:
                self._pending_csrf = self.extract_token(response.text)
            except AuthenticationError:
                self._pending_csrf = csrf
            self._status = AuthStatus.NEEDS_MFA
            self.diagnostics.info("Garmin requested an MFA code")
            return AuthResult(is_success=False, mfa_requested=True)

        if title != "Success":
            raise AuthenticationError(f"Login failed, unexpected SSO page {title!r}", diagnostic=response.text[:500])

        ticket = extract_ticket(response.text)
        oauth1 = await self._get_oauth1_token(ticket)
        token = await self._exchange_oauth2(oauth1)
        self._oauth1 = oauth1
        self.token_store.set(token)
        self._status = AuthStatus.AUTHENTICATED
        self.diagnostics.info(f"Authenticated, OAuth2 token valid until {token.expires_at:.0f}")
        return AuthResult(is_success=True, mfa_requested=False)

    async def _get_oauth1_token(self, ticket: str) -> OAuth1Token:
        signed = self.signer.sign(
            "GET",
            f"{self.config.connect_api_url}/oauth-service/oauth/preauthorized",
            params={
                "ticket": ticket,
                "login-url": self.sso_embed_url,
                "accepts-mfa-tokens": "true",
            },
        )
        try:
            response = await self.transport.get(
                signed.url, headers={**signed.headers, "User-Agent": self.config.user_agent}
            )
        except TransportError as e:
            raise TokenExchangeError(f"Ticket exchange failed: {e}", diagnostic=e.body) from e
        try:
            return parse_oauth1_response(response.text)
        except KeyError as e:
            raise TokenExchangeError("OAuth1 response is missing a token", diagnostic=response.text[:500]) from e

    async def _exchange_oauth2(self, oauth1: OAuth1Token) -> OAuth2Token:
        form = {"mfa_token": oauth1.mfa_token} if oauth1.mfa_token else None
        signed = self.signer.sign(
            "POST",
            f"{self.config.connect_api_url}/oauth-service/oauth/exchange/user/2.0",
            token=oauth1,
            form=form,
        )
        try:
            response = await self.transport.post(
                signed.url,
                headers={**signed.headers, "User-Agent": self.config.user_agent},
                data=signed.body,
            )
        except TransportError as e:
            raise TokenExchangeError(f"OAuth2 exchange failed: {e}", diagnostic=e.body) from e
        try:
            data = response.json()
            return OAuth2Token(
                access_token=data["access_token"],
                expires_at=self.clock() + int(data["expires_in"]),
                refresh_token=data.get("refresh_token"),
                scope=data.get("scope"),
                token_type=data.get("token_type", "Bearer"),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise TokenExchangeError("Unexpected OAuth2 exchange response", diagnostic=response.text[:500]) from e

    def _mark_failed(self) -> None:
        self._status = AuthStatus.FAILED
        self._pending_csrf = None
