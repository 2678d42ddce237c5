"""reposcope: AST-aware chunking, embedding and semantic search for code repositories."""
