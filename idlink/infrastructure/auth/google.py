"""Google identity provider adapter."""

from typing import Any

from idlink.domain.auth.model.profile import ExternalProfile, ProfileEmail
from idlink.domain.shared.error import ExternalServiceError
from idlink.infrastructure.auth.oauth import OAuth2IdentityProvider

USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


class GoogleIdentityProvider(OAuth2IdentityProvider):
    """IdentityProvider implementation for Google OAuth 2.0."""

    name = "google"
    default_scope = ["email"]
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"

    async def _fetch_profile(self, access_token: str, token_data: dict[str, Any]) -> ExternalProfile:
        info = await self._get_json(USERINFO_URL, access_token)
        if not isinstance(info, dict) or not info.get("sub"):
            raise ExternalServiceError("Google userinfo missing sub", code="oauth_error")

        email = info.get("email")
        return ExternalProfile(
            provider_name=self.name,
            provider_id=str(info["sub"]),
            display_name=info.get("name"),
            first_name=info.get("given_name"),
            last_name=info.get("family_name"),
            emails=(ProfileEmail(value=email),) if email else (),
            raw=info,
        )
