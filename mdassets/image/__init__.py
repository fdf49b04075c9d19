"""Image fetching, path generation and transcoding."""
