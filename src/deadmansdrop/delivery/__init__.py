"""Delivery of distributed videos."""
