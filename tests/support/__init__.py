"""Support code for the cluster manager tests."""
