"""External profile asserted by an identity provider."""

from typing import Any

from pydantic import Field

from idlink.domain.shared.model.value import ValueObject


class ProfileEmail(ValueObject):
    value: str


class ExternalProfile(ValueObject):
    """A verified user profile returned by a provider after the handshake.

    Only the fields needed for resolution are projected out; `raw` keeps the
    provider response so it can be cached on the AuthMethod.
    """

    provider_name: str
    provider_id: str | None = None
    display_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    emails: tuple[ProfileEmail, ...] = ()
    username: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def primary_email(self) -> str | None:
        """First email the provider listed, if any."""
        for email in self.emails:
            if email.value:
                return email.value
        return None

    @property
    def has_key(self) -> bool:
        """Whether the profile has anything to key an account on."""
        return bool(self.provider_id) or self.primary_email is not None

    def cached_profile(self) -> dict[str, Any]:
        """Projection stored on the AuthMethod."""
        return {
            "id": self.provider_id,
            "displayName": self.display_name,
            "name": {"givenName": self.first_name, "familyName": self.last_name},
            "emails": [{"value": e.value} for e in self.emails],
            "username": self.username,
            "raw": self.raw,
        }


class ProviderAssertion(ValueObject):
    """Result of a completed provider handshake: verified profile plus token."""

    profile: ExternalProfile
    access_token: str
