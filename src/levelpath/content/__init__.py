"""Bundled level catalog and placement test content."""
