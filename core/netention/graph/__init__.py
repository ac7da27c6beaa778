"""Graph maintenance and Note execution: builder, executor, retry, snapshot."""
