"""
HTML bodies for transactional emails.

Each builder returns (subject, html). Values are escaped; amounts are
formatted with the currency code.
"""

from datetime import datetime
from decimal import Decimal
from html import escape
from typing import List, Tuple

from common.core.config import settings


def format_date(value: datetime) -> str:
    """Format as e.g. 'January 28, 2024'."""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def format_amount(amount: Decimal, currency: str) -> str:
    if currency.upper() == "USD":
        return f"${amount:,.2f}"
    return f"{amount:,.2f} {currency.upper()}"


def username_from_email(email: str) -> str:
    return email.split("@")[0]


def _layout(
    heading: str,
    paragraphs: List[str],
    items: List[str],
    button: Tuple[str, str],
    footer: str,
) -> str:
    body = "".join(f"<p>{escape(p)}</p>" for p in paragraphs)
    bullet_list = "".join(f"<li>{escape(i)}</li>" for i in items)
    label, href = button
    return (
        "<html><body style=\"font-family: sans-serif; background: #f3f4f6;\">"
        "<div style=\"max-width: 560px; margin: 0 auto; padding: 32px;\">"
        f"<h1 style=\"text-align: center;\">{escape(heading)}</h1>"
        "<div style=\"background: #ffffff; padding: 24px; border-radius: 8px;\">"
        f"{body}"
        f"<ul>{bullet_list}</ul>"
        f"<p><a href=\"{escape(href)}\">{escape(label)}</a></p>"
        f"<p style=\"color: #6b7280; font-size: 12px;\">{escape(footer)}</p>"
        "</div></div></body></html>"
    )


def paid_subscription_email(
    email: str,
    plan_name: str,
    amount: Decimal,
    currency: str,
    billing_interval: str,
    credits: int,
    next_billing_date: datetime,
    subject: str = "Welcome to Your New Subscription!",
) -> Tuple[str, str]:
    html = _layout(
        heading=f"Welcome to {plan_name}!",
        paragraphs=[
            f"Hi {username_from_email(email)},",
            f"Thank you for subscribing to our {plan_name} plan! "
            "Your subscription has been successfully activated.",
            "Subscription Details:",
        ],
        items=[
            f"Plan: {plan_name}",
            f"Amount: {format_amount(amount, currency)}",
            f"Credits: {credits}",
            f"Billing Interval: {billing_interval.lower()}",
            f"Next Billing Date: {format_date(next_billing_date)}",
        ],
        button=("Manage Subscription", f"{settings.frontend_url}/dashboard/billing"),
        footer="If you have any questions about your subscription, "
        "please don't hesitate to contact our support team.",
    )
    return subject, html


def free_subscription_email(email: str, end_date: datetime) -> Tuple[str, str]:
    html = _layout(
        heading="Welcome to Your Free Subscription!",
        paragraphs=[
            f"Hi {username_from_email(email)},",
            "Thank you for signing up! Your free subscription has been successfully activated.",
            "With your free subscription, you'll have access to:",
        ],
        items=[
            "Basic features and functionality",
            f"Access until {format_date(end_date)}",
            "Community support",
        ],
        button=("View Subscription Details", f"{settings.frontend_url}/dashboard"),
        footer="If you have any questions, feel free to reply to this email.",
    )
    return "Welcome to Your Free Subscription!", html


def cancelled_subscription_email(
    email: str, plan_name: str, end_date: datetime
) -> Tuple[str, str]:
    html = _layout(
        heading="Subscription Cancelled",
        paragraphs=[
            f"Hi {username_from_email(email)},",
            f"We're sorry to see you go. Your {plan_name} subscription has been cancelled as requested.",
            "Important Information:",
        ],
        items=[
            f"You'll continue to have access to {plan_name} features until {format_date(end_date)}",
            "After this date, your account will be converted to a free plan",
            "You can reactivate your subscription at any time",
        ],
        button=("Reactivate Subscription", f"{settings.frontend_url}/dashboard"),
        footer="If you change your mind or have any questions, we're here to help.",
    )
    return "Your Subscription Has Been Cancelled", html
