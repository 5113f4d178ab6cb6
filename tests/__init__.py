"""Tests for the cluster manager."""
