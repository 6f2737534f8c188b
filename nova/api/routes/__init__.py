"""HTTP routers; each module owns one resource and is mounted by `nova.main.create_app`."""
