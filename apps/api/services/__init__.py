"""Domain services used by the API routers."""
