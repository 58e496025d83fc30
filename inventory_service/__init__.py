"""Inventory service: reservation coordinator, catalog bootstrap, consuming loops and HTTP API."""
