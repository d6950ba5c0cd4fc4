"""FastAPI server for the dumpster rental directory and lead marketplace."""
