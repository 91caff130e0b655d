"""ORCiD identity provider adapter."""

import logging
import re
from typing import Any

from idlink.domain.auth.model.profile import ExternalProfile
from idlink.domain.shared.error import ExternalServiceError
from idlink.infrastructure.auth.oauth import OAuth2IdentityProvider

logger = logging.getLogger(__name__)

ORCID_PATTERN = re.compile(r"^\d{4}-\d{4}-\d{4}-\d{3}[\dX]$")


class OrcidIdentityProvider(OAuth2IdentityProvider):
    """IdentityProvider implementation for ORCiD OAuth."""

    name = "orcid"
    default_scope = ["/authenticate"]

    @property
    def base_url(self) -> str:
        return "https://sandbox.orcid.org" if self._config.sandbox else "https://orcid.org"

    @property
    def authorize_url(self) -> str:
        return f"{self.base_url}/oauth/authorize"

    @property
    def token_url(self) -> str:
        return f"{self.base_url}/oauth/token"

    async def _fetch_profile(self, access_token: str, token_data: dict[str, Any]) -> ExternalProfile:
        # ORCiD returns user info directly in token response
        # {
        #   "access_token": "...",
        #   "token_type": "bearer",
        #   "scope": "/authenticate",
        #   "name": "Jane Doe",
        #   "orcid": "0000-0001-2345-6789"
        # }
        orcid_id = token_data.get("orcid")
        if not orcid_id or not ORCID_PATTERN.match(orcid_id):
            raise ExternalServiceError(
                "ORCiD response missing orcid field",
                code="oauth_error",
            )

        raw = {k: v for k, v in token_data.items() if k not in ("access_token", "refresh_token")}
        return ExternalProfile(
            provider_name=self.name,
            provider_id=orcid_id,
            display_name=token_data.get("name") or None,
            raw=raw,  # ORCiD doesn't return email in basic auth
        )
