"""
HTML templates for the products viewer.

Both pages share one stylesheet; the page bodies are Jinja templates
rendered with ``render_template_string``.
"""

_STYLE = """
    <style>
        body {
            margin: 0;
            font-family: system-ui, sans-serif;
            background: #10141f;
            color: #e6e9f0;
        }
        main {
            max-width: 760px;
            margin: 0 auto;
            padding: 24px 16px;
        }
        h1 {
            font-size: 1.6rem;
            margin: 0 0 4px;
        }
        .summary {
            color: #8a93a8;
            margin: 0 0 24px;
        }
        table {
            width: 100%;
            border-collapse: collapse;
        }
        th, td {
            text-align: left;
            vertical-align: top;
            padding: 10px 8px;
            border-bottom: 1px solid #262d3d;
        }
        th {
            color: #8a93a8;
            font-weight: 500;
        }
        .codes span {
            display: inline-block;
            margin: 0 6px 6px 0;
            padding: 2px 8px;
            border-radius: 4px;
            background: #1d2435;
            font-family: ui-monospace, monospace;
        }
        .count {
            font-variant-numeric: tabular-nums;
        }
        button {
            margin-top: 24px;
            padding: 8px 18px;
            border: 0;
            border-radius: 6px;
            background: #c2413b;
            color: #fff;
            cursor: pointer;
        }
        .empty {
            margin-top: 30vh;
            text-align: center;
        }
        .empty pre {
            display: inline-block;
            padding: 12px 20px;
            border-radius: 6px;
            background: #1d2435;
        }
    </style>
"""

PRODUCTS_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Scanned products ({{ total_products }})</title>
""" + _STYLE + """
</head>
<body>
<main>
    <h1>Scanned products</h1>
    <p class="summary">{{ total_products }} products, {{ total_scans }} codes</p>

    <table>
        <thead>
            <tr><th>Product</th><th>Items</th><th>Codes</th></tr>
        </thead>
        <tbody>
        {% for product in products %}
            <tr>
                <td>{{ product.id }}</td>
                <td class="count">{{ product.count }}</td>
                <td class="codes">
                    {% for code in product.codes %}<span>{{ code }}</span>{% endfor %}
                </td>
            </tr>
        {% endfor %}
        </tbody>
    </table>

    <button type="button" onclick="clearScans()">Clear all scans</button>
</main>
<script>
    function clearScans() {
        if (!confirm('Delete all stored scans?')) return;
        fetch('/api/clear', {method: 'POST'}).then(() => location.reload());
    }
</script>
</body>
</html>
"""

EMPTY_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Scanned products</title>
""" + _STYLE + """
</head>
<body>
<main class="empty">
    <h1>No products scanned yet</h1>
    <p class="summary">Scan codes with the camera, or replay a recorded session:</p>
    <pre>qrscan replay frames.jsonl</pre>
</main>
</body>
</html>
"""
