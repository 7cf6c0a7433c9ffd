"""HTML bodies for outbound notification emails."""
from html import escape

_CELL = 'style="border: 1px solid #ddd; padding: 8px;"'


def _table(headers, rows) -> str:
    head = "".join(f"<th {_CELL}>{escape(str(h))}</th>" for h in headers)
    body = "".join(
        "<tr>" + "".join(f"<td {_CELL}>{escape(str(v))}</td>" for v in row) + "</tr>"
        for row in rows
    )
    return (
        '<table style="border-collapse: collapse; width: 100%;">'
        f'<tr style="background-color: #f2f2f2;">{head}</tr>{body}</table>'
    )


def order_request(order_number: str, customer_name: str, customer_email: str,
                  total_amount: float, items: list) -> tuple:
    """items: dicts with name, quantity, price."""
    rows = [
        (i["name"], i["quantity"], f"Rs. {i['price']:.2f}", f"Rs. {i['quantity'] * i['price']:.2f}")
        for i in items
    ]
    html = (
        "<h2>New Order Request</h2>"
        f"<p><strong>Order Number:</strong> {escape(order_number)}</p>"
        f"<p><strong>Customer Name:</strong> {escape(customer_name)}</p>"
        f"<p><strong>Customer Email:</strong> {escape(customer_email)}</p>"
        f"<p><strong>Total Amount:</strong> Rs. {total_amount:.2f}</p>"
        "<h3>Order Items:</h3>"
        + _table(("Product", "Quantity", "Price", "Total"), rows)
        + "<p>Please review this order and update its status accordingly.</p>"
    )
    return f"New Order Request - {order_number}", html


def low_stock(products: list) -> tuple:
    """products: dicts with name, brand, total_stock."""
    rows = [(p["name"], p["total_stock"], p["brand"]) for p in products]
    html = (
        "<h2>Low Stock Alert</h2>"
        "<p>The following products are running low on stock:</p>"
        + _table(("Product Name", "Current Stock", "Brand"), rows)
        + "<p>Please take necessary action to replenish the stock.</p>"
    )
    return "Low Stock Alert", html


def out_of_stock(product_name: str, order_number: str, requested: int, available: int) -> tuple:
    html = (
        "<h2>Out of Stock Alert</h2>"
        f"<p>Order <strong>{escape(order_number)}</strong> could not be shipped.</p>"
        + _table(
            ("Product Name", "Requested", "Available in Oldest Batch"),
            [(product_name, requested, available)],
        )
        + "<p>Please add a new batch before shipping this order.</p>"
    )
    return f"Out of Stock Alert - {product_name}", html


def restock_request(products: list) -> tuple:
    """products: dicts with name, brand, category, current_stock, recommended_quantity."""
    rows = [
        (p["name"], p["brand"], p["category"], p["current_stock"], p["recommended_quantity"])
        for p in products
    ]
    html = (
        "<h2>Restock Request</h2>"
        "<p>The following products require restocking:</p>"
        + _table(("Product Name", "Brand", "Category", "Current Stock", "Quantity"), rows)
        + "<p>Please process this restock request at your earliest convenience.</p>"
        "<p>Best regards,<br>QuickMed Pharmacy Team</p>"
    )
    return "Restock Request - QuickMed Pharmacy", html


def configuration_check() -> tuple:
    html = (
        "<h2>Test Email</h2>"
        "<p>This is a test email to verify the email configuration is working correctly.</p>"
        "<p>If you receive this email, your email service is properly configured.</p>"
    )
    return "Test Email - QuickMed Pharmacy", html
