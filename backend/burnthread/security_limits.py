"""
Payload size and rate limits used by REST and WebSocket handlers.
"""

# Opaque field limits (characters of the client-supplied strings).
MAX_MESSAGE_CONTENT_CHARS = 64 * 1024
MAX_THREAD_ID_CHARS = 64
MAX_USER_ID_CHARS = 128
MAX_EMOJI_CHARS = 32

# WebSocket limits.
MAX_WS_MESSAGES_PER_WINDOW = 30
WS_RATE_WINDOW_SECONDS = 10
WS_SEND_TIMEOUT_SECONDS = 5.0
