"""API Gateway Lambda handlers."""
