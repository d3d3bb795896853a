"""Quote submission endpoint: request parsing, the pipeline service, file persistence."""
