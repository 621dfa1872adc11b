from .sinks import FileSink, NotificationSink, SendGridSink, create_sink

__all__ = ["FileSink", "NotificationSink", "SendGridSink", "create_sink"]
