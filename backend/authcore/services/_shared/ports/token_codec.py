from __future__ import annotations

from typing import Protocol

from authcore.services._shared.dto import Principal, RefreshClaims, TokenClaims


class TokenCodec(Protocol):
    """
    Port for issuing and verifying signed access/refresh tokens.

    Every verification failure is reported as ``AuthError(INVALID_TOKEN)``.
    """

    def issue_access(self, principal: Principal) -> str: ...

    def issue_refresh(self, user_id: str) -> str: ...

    def parse_access(self, token: str) -> TokenClaims: ...

    def parse_refresh(self, token: str, *, verify_expiry: bool = True) -> RefreshClaims: ...
