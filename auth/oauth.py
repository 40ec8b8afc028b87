"""
auth/oauth.py -- OAuth constants shared with the gateway and the store.

Mastodon scopes:
  read, write, push are the three top-level scopes. Requesting a top-level
  scope grants every sub-scope under it (read:accounts, write:statuses, ...),
  so FULL_SCOPE is the complete permission set an app can ask for.

Redirect:
  The out-of-band sentinel tells the instance not to redirect anywhere. The
  client never runs the browser-based authorization code flow; it only uses
  the client-credentials and password grants, which need no callback.

Layer rule: no imports from cache/. Import from core/ is allowed.
"""

from core.config import DEFAULT_CLIENT_NAME

NO_REDIRECT = "urn:ietf:wg:oauth:2.0:oob"

READ_SCOPE = "read"
WRITE_SCOPE = "write"
PUSH_SCOPE = "push"

FULL_SCOPE = " ".join((READ_SCOPE, WRITE_SCOPE, PUSH_SCOPE))

CLIENT_NAME = DEFAULT_CLIENT_NAME
