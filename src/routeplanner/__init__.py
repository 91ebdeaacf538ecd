"""Route planner API."""
