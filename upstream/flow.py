"""
Tagged states of the three-legged OAuth 1.0a dance:
NoToken -> RequestTokenObtained -> Authorized -> AccessTokenObtained.
The two-legged profile flow yields AccessTokenObtained directly.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class NoToken:
    pass


@dataclass(frozen=True)
class RequestTokenObtained:
    token: str
    secret: str
    callback_confirmed: bool = False

    def authorize(self, verifier: str) -> "Authorized":
        return Authorized(request=self, verifier=verifier)


@dataclass(frozen=True)
class Authorized:
    """User approved at the provider; verifier came back on the callback."""

    request: RequestTokenObtained
    verifier: str


@dataclass(frozen=True)
class AccessTokenObtained:
    """Long-lived token pair. user_id is set by the three-legged exchange only."""

    token: str
    secret: str
    user_id: str | None = None


FlowState = NoToken | RequestTokenObtained | Authorized | AccessTokenObtained
