import re
import secrets
from datetime import datetime

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def format_datetime(datetime_obj):
    """Format datetime to a readable string."""
    if not datetime_obj:
        return None
    return datetime_obj.strftime('%Y-%m-%d %H:%M:%S')


def generate_object_id():
    """24 hex chars, the shape catalog primary keys have always had."""
    return secrets.token_hex(12)


def is_object_id(value):
    if value is None or isinstance(value, bool):
        return False
    return bool(OBJECT_ID_PATTERN.match(str(value).strip()))


def utcnow():
    return datetime.utcnow()
