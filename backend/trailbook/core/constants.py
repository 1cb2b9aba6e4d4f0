# backend/trailbook/core/constants.py
"""Shared constants for the connection, messaging and task pipeline."""

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"

# Task queues
FILE_UPLOAD_QUEUE = "file-upload"
NOTIFY_QUEUE = "notify"
DEAD_LETTER_SUFFIX = ".dlq"
FILE_UPLOAD_DLQ = f"{FILE_UPLOAD_QUEUE}{DEAD_LETTER_SUFFIX}"
NOTIFY_DLQ = f"{NOTIFY_QUEUE}{DEAD_LETTER_SUFFIX}"
RETRY_COUNT_HEADER = "x-retry-count"

# Celery task names
FILE_UPLOAD_TASK = "chat.process_file_upload"
NOTIFY_TASK = "chat.send_notification"
REEVALUATE_TRAILS_TASK = "trail_connections.reevaluate"

# Message log
MESSAGE_PAGE_DEFAULT_LIMIT = 50
MESSAGE_PAGE_MAX_LIMIT = 100

# Realtime gateway events (server -> client)
EVENT_CONNECTED = "connected"
EVENT_ERROR = "error"
EVENT_NEW_MESSAGE = "new_message"
EVENT_MESSAGE_SENT = "message_sent"
EVENT_USER_TYPING = "user_typing"
EVENT_MESSAGES_READ = "messages_read"

# Realtime gateway events (client -> server)
EVENT_SEND_MESSAGE = "send_message"
EVENT_TYPING = "typing"
EVENT_MARK_READ = "mark_read"

CHAT_RELAY_CHANNEL = "trailbook:chat:relay"

# Notification bodies keyed by MIME type
NOTIFICATION_FILE_LABELS = {
    "image": "📷 Sent a photo",
    "application/pdf": "📄 Sent a PDF",
    "text/plain": "📝 Sent a text file",
}
NOTIFICATION_DEFAULT_TITLE = "Someone"
