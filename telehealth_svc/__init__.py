"""Telehealth Admin Service."""
