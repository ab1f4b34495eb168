from __future__ import annotations

from enum import Enum

# Component custom ids. These are baked into already-posted panels and
# welcome messages, so changing them orphans existing buttons.
CREATE_TICKET_ID = "create_ticket"
CLOSE_TICKET_ID = "close_ticket"

PANEL_BUTTON_LABEL = "Open Ticket"
CLOSE_BUTTON_LABEL = "Close Ticket"


class InteractionKind(str, Enum):
    BUTTON = "button"
