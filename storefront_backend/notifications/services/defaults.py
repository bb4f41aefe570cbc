# notifications/services/defaults.py
"""
Default transactional templates installed per store by seed_email_templates.

Templates use Django template syntax. Pre-rendered HTML fragments
(items_html) must be marked |safe; everything else is autoescaped.
"""

from __future__ import annotations

from django.db import transaction

from notifications.models import EmailTemplate

_WRAPPER = """<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
{body}
<p style="color:#888;font-size:12px;">&copy; {{{{ current_year }}}} {{{{ store_name }}}}</p>
</body>
</html>"""


DEFAULT_TEMPLATES = {
    EmailTemplate.SIGNUP: {
        "subject": "Welcome to {{ store_name }}!",
        "html": """<h1>Welcome to {{ store_name }}!</h1>
<p>Hi <strong>{{ customer_first_name }}</strong>,</p>
<p>Your account has been created. You can now track your orders and manage your preferences.</p>
<p><a href="{{ login_url }}">Log in to your account</a></p>
<p>Account created on {{ signup_date }}.</p>""",
    },
    EmailTemplate.ORDER_SUCCESS: {
        "subject": "Order {{ order_number }} confirmed",
        "html": """<h1>Thank you for your order!</h1>
<p>Hi {{ customer_first_name }}, we received your order <strong>{{ order_number }}</strong> on {{ order_date }}.</p>
{{ items_html|safe }}
<p>Subtotal: {{ order_subtotal }}<br>
Discount: -{{ order_discount }}<br>
Shipping: {{ order_shipping }}<br>
Tax: {{ order_tax }}<br>
Payment fee: {{ order_fee }}<br>
<strong>Total: {{ order_total }}</strong></p>
{% if shipping_address %}<p>Shipping to: {{ shipping_address }}</p>{% endif %}
{% if delivery_instructions %}<p>Delivery instructions: {{ delivery_instructions }}</p>{% endif %}
<p><a href="{{ order_details_url }}">View your order</a></p>""",
    },
    EmailTemplate.INVOICE: {
        "subject": "Invoice {{ invoice_number }} for order {{ order_number }}",
        "html": """<h1>Invoice {{ invoice_number }}</h1>
<p>Hi {{ customer_first_name }}, here is the invoice for order <strong>{{ order_number }}</strong> ({{ invoice_date }}).</p>
{{ items_html|safe }}
<p><strong>Total: {{ order_total }}</strong></p>
{% if billing_address %}<p>Billing address: {{ billing_address }}</p>{% endif %}""",
    },
    EmailTemplate.SHIPMENT: {
        "subject": "Your order {{ order_number }} has shipped",
        "html": """<h1>Your order is on its way!</h1>
<p>Hi {{ customer_first_name }}, order <strong>{{ order_number }}</strong> has shipped.</p>
<p>Tracking number: {{ tracking_number }}{% if carrier %} ({{ carrier }}){% endif %}</p>
{% if tracking_url %}<p><a href="{{ tracking_url }}">Track your package</a></p>{% endif %}
<p>Estimated delivery: {{ estimated_delivery }}</p>
{{ items_html|safe }}""",
    },
    EmailTemplate.CREDIT_PURCHASE: {
        "subject": "{{ credits_purchased }} credits added to your account",
        "html": """<h1>Credits purchased</h1>
<p>Hi {{ customer_first_name }}, your purchase of <strong>{{ credits_purchased }} credits</strong> for {{ amount }} is complete.</p>
<p>New balance: {{ balance }} credits</p>
<p>Transaction: {{ transaction_id }} ({{ purchase_date }})</p>""",
    },
}


@transaction.atomic
def seed_default_templates(*, store, overwrite: bool = False) -> tuple[int, int]:
    """
    Install the default templates for one store.
    Returns (created, updated).
    """
    created = updated = 0

    for identifier, definition in DEFAULT_TEMPLATES.items():
        html = _WRAPPER.format(body=definition["html"])
        template = EmailTemplate.objects.filter(store=store, identifier=identifier).first()

        if template is None:
            EmailTemplate.objects.create(
                store=store,
                identifier=identifier,
                subject=definition["subject"],
                html_content=html,
            )
            created += 1
            continue

        if overwrite:
            template.subject = definition["subject"]
            template.html_content = html
            template.is_active = True
            template.save(update_fields=["subject", "html_content", "is_active", "updated_at"])
            updated += 1

    return created, updated
