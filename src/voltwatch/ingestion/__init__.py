"""Ingestion layer.

Turns raw vendor and datastore payloads into the public
:class:`~voltwatch.models.charger.Charger` snapshot.
"""
