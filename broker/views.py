"""
Inline HTML for the authorize step and the upstream callback. Every interpolated
value is escaped for XSS.
"""
import html
from dataclasses import dataclass


def e(s: str | None) -> str:
    return html.escape(s or "")


@dataclass
class AuthorizeParams:
    """OAuth parameters carried from GET to POST as hidden fields; re-validated on POST. Scope is fixed."""

    client_id: str
    redirect_uri: str
    state: str
    code_challenge: str
    code_challenge_method: str

    def hidden_fields(self) -> str:
        return "".join(
            f'<input type="hidden" name="{name}" value="{e(value)}"/>'
            for name, value in (
                ("client_id", self.client_id),
                ("redirect_uri", self.redirect_uri),
                ("state", self.state),
                ("code_challenge", self.code_challenge),
                ("code_challenge_method", self.code_challenge_method),
            )
        )


def _error_block(error: str | None) -> str:
    return f'<p class="error" style="color:red;">{e(error)}</p>' if error else ""


def render_consent(params: AuthorizeParams, client_name: str | None, masked_identity: str) -> str:
    app_name = client_name or "An application"
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Authorize Access</title></head>
<body>
  <h1>Authorize Access</h1>
  <p><strong>{e(app_name)}</strong> wants to access your nutrition data.</p>
  <ul>
    <li>Search foods and recipes</li>
    <li>Read your food diary</li>
    <li>Add food entries</li>
    <li>View weight data</li>
  </ul>
  <p>Connected as: <code>{e(masked_identity)}</code></p>
  <form method="post" action="/oauth2/authorize">
    {params.hidden_fields()}
    <button type="submit" name="action" value="allow">Allow</button>
    <button type="submit" name="action" value="deny">Deny</button>
  </form>
</body>
</html>"""


def render_credentials(params: AuthorizeParams, client_name: str | None, error: str | None = None) -> str:
    app_name = client_name or "An application"
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Connect &amp; Authorize</title></head>
<body>
  <h1>Connect &amp; Authorize</h1>
  <p><strong>{e(app_name)}</strong> wants to access your nutrition data. Enter your API credentials to connect.</p>
  {_error_block(error)}
  <form method="post" action="/oauth2/authorize">
    {params.hidden_fields()}
    <input type="hidden" name="action" value="credentials"/>
    <label>Client ID: <input type="text" name="upstream_client_id" required/></label><br/>
    <label>Client Secret (OAuth 2.0): <input type="password" name="upstream_client_secret" required/></label><br/>
    <label>Consumer Secret (OAuth 1.0): <input type="password" name="upstream_consumer_secret"/></label><br/>
    <button type="submit">Connect &amp; Authorize</button>
  </form>
</body>
</html>"""


def render_verifier_form() -> str:
    return """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Complete Authorization</title></head>
<body>
  <h1>Complete Authorization</h1>
  <p>Paste the state and verifier shown by the provider.</p>
  <form method="get" action="/oauth/callback">
    <label>State: <input type="text" name="state" required/></label><br/>
    <label>Verifier: <input type="text" name="oauth_verifier" required/></label><br/>
    <button type="submit">Complete</button>
  </form>
</body>
</html>"""


def render_callback_success(user_id: str | None) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Account Connected</title></head>
<body>
  <h1>Account Connected</h1>
  <p>Upstream user: <code>{e(user_id or "N/A")}</code></p>
  <p>You can close this window.</p>
</body>
</html>"""


def render_callback_error(message: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Connection Failed</title></head>
<body>
  <h1>Connection Failed</h1>
  {_error_block(message)}
  <p>Start the connection again.</p>
</body>
</html>"""
