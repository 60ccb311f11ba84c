"""Bundled level definitions, one JSON file per level."""
