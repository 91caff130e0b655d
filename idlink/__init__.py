"""Federated identity resolution and account provisioning."""
