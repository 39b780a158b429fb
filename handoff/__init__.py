"""Handoff API: routes conversation messages between an AI assistant and human workflows."""
