"""GitHub identity provider adapter."""

import logging
from typing import Any

from idlink.domain.auth.model.profile import ExternalProfile, ProfileEmail
from idlink.domain.shared.error import ExternalServiceError
from idlink.infrastructure.auth.oauth import OAuth2IdentityProvider

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"


class GithubIdentityProvider(OAuth2IdentityProvider):
    """IdentityProvider implementation for GitHub OAuth apps."""

    name = "github"
    default_scope = ["user:email"]
    authorize_url = "https://github.com/login/oauth/authorize"
    token_url = "https://github.com/login/oauth/access_token"

    async def _fetch_profile(self, access_token: str, token_data: dict[str, Any]) -> ExternalProfile:
        user = await self._get_json(f"{API_URL}/user", access_token)
        if not isinstance(user, dict) or user.get("id") is None:
            raise ExternalServiceError("GitHub user response missing id", code="oauth_error")

        emails = await self._emails(access_token, user.get("email"))
        return ExternalProfile(
            provider_name=self.name,
            provider_id=str(user["id"]),
            display_name=user.get("name"),
            username=user.get("login"),
            emails=tuple(ProfileEmail(value=e) for e in emails),
            raw=user,
        )

    async def _emails(self, access_token: str, public_email: str | None) -> list[str]:
        """Verified addresses, primary first; the public email when listing fails."""
        try:
            listed = await self._get_json(f"{API_URL}/user/emails", access_token)
        except ExternalServiceError as e:
            logger.warning("GitHub email listing failed: %s", e.message)
            return [public_email] if public_email else []

        verified = [
            item for item in listed if isinstance(item, dict) and item.get("verified") and item.get("email")
        ]
        verified.sort(key=lambda item: not item.get("primary"))
        emails = [item["email"] for item in verified]
        if public_email and public_email not in emails:
            emails.append(public_email)
        return emails
