from .langfuse import get_langfuse, init_langfuse_observability, record_output, trace_span

__all__ = ["get_langfuse", "init_langfuse_observability", "record_output", "trace_span"]
