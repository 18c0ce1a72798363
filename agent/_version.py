# Rewritten by release builds.
version = "DEV"
