"""Agent runtime: model resolution, sessions, tools and the delegation tool."""
