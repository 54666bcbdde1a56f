"""
utils/whatsapp_utils.py

Purpose: WhatsApp Cloud API message builders

- Constructs text, button, list and document payloads
- Enforces WhatsApp limits (3 buttons, 20/24 char titles, 10 rows)
- Parses interactive replies from webhook messages
"""

from typing import List, Dict, Optional, Any

MAX_BUTTONS = 3
MAX_BUTTON_TITLE = 20
MAX_ROW_TITLE = 24
MAX_ROW_DESCRIPTION = 72
MAX_ROWS = 10
MAX_BODY = 1024


def create_text_message(text: str, preview_url: bool = False) -> Dict[str, Any]:
    """
    Creates a simple text message payload.

    Args:
        text: Message text (supports WhatsApp markdown)
        preview_url: Whether to show URL preview

    Returns:
        Message payload dict
    """
    return {
        "type": "text",
        "text": {"body": text, "preview_url": preview_url}
    }


def create_button_message(
    text: str,
    buttons: List[Dict[str, str]],
    header: Optional[str] = None,
    footer: Optional[str] = None
) -> Dict[str, Any]:
    """
    Creates a message with interactive reply buttons.

    Args:
        text: Body text
        buttons: List of button dicts with 'id' and 'title' keys
                 Max 3 buttons, each title max 20 chars
        header: Optional header text
        footer: Optional footer text

    Returns:
        Interactive button payload

    Raises:
        ValueError: if more than 3 buttons are given
    """
    if len(buttons) > MAX_BUTTONS:
        raise ValueError(f"WhatsApp allows at most {MAX_BUTTONS} reply buttons")

    interactive = {
        "type": "button",
        "body": {"text": text[:MAX_BODY]},
        "action": {
            "buttons": [
                {
                    "type": "reply",
                    "reply": {
                        "id": btn["id"],
                        "title": btn["title"][:MAX_BUTTON_TITLE]
                    }
                }
                for btn in buttons
            ]
        }
    }

    if header:
        interactive["header"] = {"type": "text", "text": header}
    if footer:
        interactive["footer"] = {"text": footer}

    return {"type": "interactive", "interactive": interactive}


def create_list_message(
    text: str,
    button_text: str,
    sections: List[Dict[str, Any]],
    header: Optional[str] = None,
    footer: Optional[str] = None
) -> Dict[str, Any]:
    """
    Creates a message with a list picker (interactive list).

    Args:
        text: Body text
        button_text: Button text to open the list (max 20 chars)
        sections: List sections with title and rows
        header: Optional header text
        footer: Optional footer text

    Returns:
        Interactive list payload

    Raises:
        ValueError: if the sections hold more than 10 rows in total
    """
    total_rows = sum(len(s.get("rows", [])) for s in sections)
    if total_rows > MAX_ROWS:
        raise ValueError(f"WhatsApp lists allow at most {MAX_ROWS} rows")

    clean_sections = []
    for section in sections:
        rows = []
        for row in section.get("rows", []):
            item = {"id": row["id"], "title": row["title"][:MAX_ROW_TITLE]}
            if row.get("description"):
                item["description"] = row["description"][:MAX_ROW_DESCRIPTION]
            rows.append(item)
        clean_sections.append({"title": section.get("title", "Options")[:MAX_ROW_TITLE], "rows": rows})

    interactive = {
        "type": "list",
        "body": {"text": text[:MAX_BODY]},
        "action": {
            "button": button_text[:MAX_BUTTON_TITLE],
            "sections": clean_sections
        }
    }

    if header:
        interactive["header"] = {"type": "text", "text": header}
    if footer:
        interactive["footer"] = {"text": footer}

    return {"type": "interactive", "interactive": interactive}


def create_document_message(
    document_url: str,
    filename: str,
    caption: Optional[str] = None
) -> Dict[str, Any]:
    """
    Creates a document message (for PDFs).

    Args:
        document_url: Public URL of the document
        filename: Document filename
        caption: Optional caption

    Returns:
        Document message payload
    """
    payload = {
        "type": "document",
        "document": {
            "link": document_url,
            "filename": filename
        }
    }

    if caption:
        payload["document"]["caption"] = caption

    return payload


def parse_button_response(message: Dict[str, Any]) -> Optional[str]:
    """
    Parses button click response from webhook.

    Args:
        message: Webhook message payload

    Returns:
        Button ID that was clicked, or None
    """
    if message.get("type") == "interactive":
        interactive = message.get("interactive", {})
        if interactive.get("type") == "button_reply":
            return interactive.get("button_reply", {}).get("id")

    return None


def parse_list_response(message: Dict[str, Any]) -> Optional[str]:
    """
    Parses list selection response from webhook.

    Args:
        message: Webhook message payload

    Returns:
        Selected list item ID, or None
    """
    if message.get("type") == "interactive":
        interactive = message.get("interactive", {})
        if interactive.get("type") == "list_reply":
            return interactive.get("list_reply", {}).get("id")

    return None


def get_message_text(message: Dict[str, Any]) -> Optional[str]:
    """
    Extracts text content from any message type.

    Args:
        message: Webhook message payload

    Returns:
        Message text content
    """
    msg_type = message.get("type")

    if msg_type == "text":
        return message.get("text", {}).get("body")
    elif msg_type == "interactive":
        interactive = message.get("interactive", {})
        reply_type = interactive.get("type")

        if reply_type == "button_reply":
            return interactive.get("button_reply", {}).get("title")
        elif reply_type == "list_reply":
            return interactive.get("list_reply", {}).get("title")
    elif msg_type == "button":
        return message.get("button", {}).get("text")

    return None
