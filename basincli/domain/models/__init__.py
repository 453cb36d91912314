"""Domain models shared by the request engine and the bulk runner."""
