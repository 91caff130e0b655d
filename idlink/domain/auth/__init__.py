"""Auth domain: accounts, linked provider identities, federated login."""
