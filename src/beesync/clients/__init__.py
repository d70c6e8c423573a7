"""HTTP clients for the services beesync reads from and writes to."""
