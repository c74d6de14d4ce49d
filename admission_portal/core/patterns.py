"""Field rules shared by the API schemas and the admin client."""

PHONE_PATTERN = r"^[6-9]\d{9}$"
NAME_PATTERN = r"^[A-Za-z ]+$"

MESSAGE_MIN_LENGTH = 10
MESSAGE_MAX_LENGTH = 5000

MAX_ATTACHMENTS = 5
ATTACHMENT_EXTENSIONS = {".pdf", ".doc", ".docx", ".jpg", ".jpeg", ".png", ".txt"}
