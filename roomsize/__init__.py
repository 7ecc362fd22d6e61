"""RoomSize - room dimensions for UK new-build house types."""
