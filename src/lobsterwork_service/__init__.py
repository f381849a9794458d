"""LobsterWork task marketplace service."""
