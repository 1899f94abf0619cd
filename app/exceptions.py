"""
Errors raised when an upstream collaborator (WhatsApp Cloud API, Supabase,
LLM provider) fails. They are caught and logged by the orchestrator; nothing
is retried.
"""


class UpstreamError(Exception):
    """An external service call failed."""


class WhatsAppSendError(UpstreamError):
    """The WhatsApp Cloud API rejected or never received an outbound message."""


class MediaDownloadError(UpstreamError):
    """A media object could not be fetched from WhatsApp or stored in Supabase."""
