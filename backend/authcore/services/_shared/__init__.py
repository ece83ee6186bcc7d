"""Building blocks shared by the auth services (errors, records, ports)."""
