"""HTTP routers, one per API area."""
