"""Email templates for booking notifications, keyed by (audience, event)."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from html import escape
from typing import Callable, Dict, Optional, Tuple

from ...domain.entities.booking import BookingStatus

THEME = {
    "primary": "#2563eb",
    "border": "#eeeeee",
    "panel": "#f9fafb",
    "text_muted": "#6b7280",
}


class Audience(Enum):
    """Recipient side of a booking."""
    CUSTOMER = "customer"
    PROVIDER = "provider"


class NotificationEvent(Enum):
    """Lifecycle events that produce email."""
    CREATED = "created"
    STATUS_CHANGED = "status_changed"


@dataclass(frozen=True)
class TemplateContext:
    """Values available to every template."""

    booking_reference: str
    recipient_name: str
    customer_name: str
    service_title: str
    scheduled_at: datetime
    amount: Decimal
    status: BookingStatus
    previous_status: Optional[BookingStatus] = None
    note: Optional[str] = None

    @property
    def formatted_date(self) -> str:
        return self.scheduled_at.strftime("%A, %B %d, %Y")

    @property
    def formatted_time(self) -> str:
        return self.scheduled_at.strftime("%H:%M %Z").strip()


@dataclass(frozen=True)
class RenderedEmail:
    """Subject and bodies of a rendered template."""

    subject: str
    text: str
    html: str


def get_base_template(title: str, greeting_name: str, content: str) -> str:
    """Wrap template content in the shared layout."""
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; border: 1px solid {THEME['border']}; border-radius: 5px;">
      <h2 style="color: {THEME['primary']};">{escape(title)}</h2>
      <p>Hello {escape(greeting_name)},</p>
      {content}
      <p style="color: {THEME['text_muted']}; font-size: 12px;">This is an automated message about your booking.</p>
    </div>
    """


def _details_panel(context: TemplateContext) -> str:
    rows = [
        ("Service", context.service_title),
        ("Date", context.formatted_date),
        ("Time", context.formatted_time),
        ("Amount", f"{context.amount:.2f}"),
        ("Status", context.status.display_name),
    ]
    if context.note:
        rows.append(("Notes", context.note))
    lines = "".join(f"<p><strong>{label}:</strong> {escape(str(value))}</p>" for label, value in rows)
    return f'<div style="background-color: {THEME["panel"]}; padding: 15px; border-radius: 5px; margin: 20px 0;">{lines}</div>'


def _details_text(context: TemplateContext) -> str:
    lines = [
        f"Service: {context.service_title}",
        f"Date: {context.formatted_date}",
        f"Time: {context.formatted_time}",
        f"Amount: {context.amount:.2f}",
        f"Status: {context.status.display_name}",
    ]
    if context.note:
        lines.append(f"Notes: {context.note}")
    return "\n".join(lines)


def customer_created_template(context: TemplateContext) -> RenderedEmail:
    """Booking confirmation for the customer"""
    intro = "Thank you for your booking. Here are your booking details:"
    return RenderedEmail(
        subject=f"Booking Confirmation - #{context.booking_reference}",
        text=f"Hello {context.recipient_name},\n\n{intro}\n\n{_details_text(context)}\n",
        html=get_base_template(
            "Booking Received",
            context.recipient_name,
            f"<p>{intro}</p>{_details_panel(context)}"
        ),
    )


def provider_created_template(context: TemplateContext) -> RenderedEmail:
    """New booking notification for the provider"""
    intro = f"{context.customer_name} has booked one of your services."
    return RenderedEmail(
        subject=f"New Booking Assigned - #{context.booking_reference}",
        text=f"Hello {context.recipient_name},\n\n{intro}\n\n{_details_text(context)}\n",
        html=get_base_template(
            "New Booking",
            context.recipient_name,
            f"<p>{escape(intro)}</p>{_details_panel(context)}"
        ),
    )


def _status_intro(context: TemplateContext) -> str:
    previous = context.previous_status.display_name if context.previous_status else "New"
    return f"The booking status changed from {previous} to {context.status.display_name}."


def customer_status_changed_template(context: TemplateContext) -> RenderedEmail:
    """Status update for the customer"""
    intro = _status_intro(context)
    return RenderedEmail(
        subject=f"Booking Status Update - #{context.booking_reference} - {context.status.display_name}",
        text=f"Hello {context.recipient_name},\n\n{intro}\n\n{_details_text(context)}\n",
        html=get_base_template(
            f"Booking {context.status.display_name}",
            context.recipient_name,
            f"<p>{intro}</p>{_details_panel(context)}"
        ),
    )


def provider_status_changed_template(context: TemplateContext) -> RenderedEmail:
    """Status update for the provider"""
    intro = f"{_status_intro(context)} Customer: {context.customer_name}."
    return RenderedEmail(
        subject=f"Booking Status Update - #{context.booking_reference} - {context.status.display_name}",
        text=f"Hello {context.recipient_name},\n\n{intro}\n\n{_details_text(context)}\n",
        html=get_base_template(
            f"Booking {context.status.display_name}",
            context.recipient_name,
            f"<p>{escape(intro)}</p>{_details_panel(context)}"
        ),
    )


TEMPLATES: Dict[Tuple[Audience, NotificationEvent], Callable[[TemplateContext], RenderedEmail]] = {
    (Audience.CUSTOMER, NotificationEvent.CREATED): customer_created_template,
    (Audience.PROVIDER, NotificationEvent.CREATED): provider_created_template,
    (Audience.CUSTOMER, NotificationEvent.STATUS_CHANGED): customer_status_changed_template,
    (Audience.PROVIDER, NotificationEvent.STATUS_CHANGED): provider_status_changed_template,
}


def render(audience: Audience, event: NotificationEvent, context: TemplateContext) -> RenderedEmail:
    """Render the template registered for an audience and event."""
    return TEMPLATES[(audience, event)](context)
