"""Domain services shared by the route blueprints."""
