"""HTTP routers of the mission control API."""
