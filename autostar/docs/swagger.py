"""Swagger UI page pointing at the served OpenAPI document."""

from html import escape

from autostar.core.constants import SWAGGER_UI_VERSION

SWAGGER_UI_CDN = f"https://unpkg.com/swagger-ui-dist@{SWAGGER_UI_VERSION}"

_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <meta name="description" content="SwaggerUI" />
    <title>{title}</title>
    <link rel="stylesheet" href="{cdn}/swagger-ui.css" />
</head>
<body>
    <div id="swagger-ui"></div>
    <script src="{cdn}/swagger-ui-bundle.js" crossorigin></script>
    <script>
        window.onload = () => {{
            window.ui = SwaggerUIBundle({{
                url: '{openapi_url}',
                dom_id: '#swagger-ui',
            }});
        }};
    </script>
</body>
</html>
"""


def swagger_ui_html(openapi_url: str, title: str = "SwaggerUI") -> str:
    """Render the Swagger UI page for the document served at ``openapi_url``."""
    return _TEMPLATE.format(
        title=escape(title),
        cdn=SWAGGER_UI_CDN,
        openapi_url=escape(openapi_url, quote=True),
    )
