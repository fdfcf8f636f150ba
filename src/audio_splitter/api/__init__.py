"""HTTP API for the transcode-and-split service."""
