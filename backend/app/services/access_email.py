"""
Access instructions email sent after an approved purchase.

Public API:
  build_access_email(details, sender, login_url) -> OutboundEmail
"""

from html import escape

from app.models.cakto_webhook import PurchaseDetails
from app.services.mailer import OutboundEmail

_PLACEHOLDER = "-"

_HTML_TEMPLATE = """
  <div style="font-family: sans-serif; font-size: 15px; color: #111;">
    <h2>Bem-vindo(a) ao {product_name} 🎯</h2>
    <p>Oi {name}, tudo bem?</p>
    <p>Sua compra foi confirmada com sucesso ✅</p>
    <p>Agora você já tem acesso ao painel.</p>
    <p><b>Área de acesso:</b><br/>
      <a href="{login_url}" target="_blank">
        {login_url}
      </a>
    </p>
    <p>Faça login usando este e-mail: <b>{email}</b></p>
    <p>Se for seu primeiro acesso, clique em "Esqueci minha senha"
    para definir sua senha nova.</p>

    <hr/>
    <p>Pedido: {order_id}<br/>
    Checkout: {checkout_url}</p>

    <p>Qualquer dúvida, responde este e-mail </p>
  </div>
"""

_TEXT_TEMPLATE = """Bem-vindo(a) ao {product_name}!

Oi {name}, tudo bem?
Sua compra foi confirmada com sucesso. Agora você já tem acesso ao painel.

Área de acesso: {login_url}
Faça login usando este e-mail: {email}
Se for seu primeiro acesso, clique em "Esqueci minha senha" para definir sua senha nova.

Pedido: {order_id}
Checkout: {checkout_url}

Qualquer dúvida, responde este e-mail.
"""


def access_email_subject(product_name: str) -> str:
    return f"Seu acesso ao {product_name} está liberado ✨"


def build_access_email(details: PurchaseDetails, sender: str, login_url: str) -> OutboundEmail:
    """
    Compose the welcome email for ``details.email``.

    Buyer-supplied values are HTML-escaped in the HTML part. Missing order
    id and checkout URL are shown as "-".
    """
    values = {
        "product_name": details.product_name,
        "name": details.name,
        "email": details.email or "",
        "order_id": details.order_id or _PLACEHOLDER,
        "checkout_url": details.checkout_url or _PLACEHOLDER,
        "login_url": login_url,
    }
    html_values = {key: escape(value) for key, value in values.items()}

    return OutboundEmail(
        sender=sender,
        recipient=details.email or "",
        subject=access_email_subject(details.product_name),
        html=_HTML_TEMPLATE.format(**html_values),
        text=_TEXT_TEMPLATE.format(**values),
    )
