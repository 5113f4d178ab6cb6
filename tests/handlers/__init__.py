"""Tests of the REST API routes."""
