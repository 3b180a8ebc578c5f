"""Index internals: chunking, discovery, embedding and persistence."""
