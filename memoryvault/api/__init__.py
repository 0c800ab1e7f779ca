"""HTTP surface: one route per screen-level action."""
